"""Release delta computed purely through the GitHub REST API.

Used for repositories too large to clone. The diff is a single compare call
fetched as raw diff text; commit history is the tricky part. Listings are
anchored to the new commit and bounded by the committer dates of the two
commits. GitHub's commit listing accepts a ``path`` filter, but a
path-filtered listing never includes merge commits, and in a PR-based
workflow the merge commit is the main unit of change. So commit messages are
gathered in two phases:

  DIRECT          one path-filtered listing per included prefix
  RECONCILIATION  an unfiltered listing of the same window, keeping only
                  "Merge pull request #N" commits whose PR touched an
                  in-scope file

Without a path spec the unfiltered listing already contains the merge
commits, so reconciliation is skipped:

  PENDING → DIRECT → RECONCILIATION → DONE
  PENDING → DIRECT → DONE                    (no spec)

There are no retries: any failed page or PR lookup aborts the whole fetch.
"""

from __future__ import annotations

import enum
import logging
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta
from functools import partial
from typing import TYPE_CHECKING, Callable, Iterator

from shiplog_core.fetchers.base import RangeFetcher

if TYPE_CHECKING:
    from shiplog_core.gh.client import GitHubRepoClient
    from shiplog_core.paths import TargetPathSpec

logger = logging.getLogger(__name__)

MERGE_COMMIT_PREFIX = "Merge pull request"

# First "#123" in the message. Approximate: a merge message that mentions an
# issue before the PR number would pick the issue.
_PR_NUMBER_RE = re.compile(r"#(\d+)")


class CommitPhase(enum.Enum):
    PENDING = "pending"
    DIRECT = "direct"
    RECONCILIATION = "reconciliation"
    DONE = "done"


def extract_pr_number(message: str) -> int | None:
    match = _PR_NUMBER_RE.search(message)
    return int(match.group(1)) if match else None


def _pages(fetch_page: Callable[[int], list]) -> Iterator[list]:
    """Yield pages until the API returns an empty one."""
    page = 0
    while True:
        items = fetch_page(page)
        if not items:
            return
        yield items
        page += 1


class RemoteReconciliationFetcher(RangeFetcher):
    NAME = "remote"
    ORDERED = False

    def __init__(self, client: GitHubRepoClient, max_workers: int = 8):
        self.client = client
        self.max_workers = max_workers
        self.phase = CommitPhase.PENDING
        self.phases: list[CommitPhase] = [CommitPhase.PENDING]

    def diff(self, old_sha: str, new_sha: str, spec: TargetPathSpec | None) -> str:
        return self.apply_scope(self.client.compare_diff(old_sha, new_sha), spec)

    def commit_messages(self, old_sha: str, new_sha: str, spec: TargetPathSpec | None) -> list[str]:
        # The old commit itself was already released; start one second later.
        since = self.client.get_commit_date(old_sha) + timedelta(seconds=1)
        until = self.client.get_commit_date(new_sha)
        return self.commit_messages_in_window(since, until, spec, head_sha=new_sha)

    def commit_messages_in_window(
        self,
        since: datetime,
        until: datetime,
        spec: TargetPathSpec | None,
        head_sha: str | None = None,
    ) -> list[str]:
        """Deduplicated in-scope commit messages committed in [since, until].

        Listings walk back from ``head_sha`` so commits on other branches in the
        same window are left out. Order is unspecified.
        """
        self.phase = CommitPhase.PENDING
        self.phases = [CommitPhase.PENDING]
        self._enter(CommitPhase.DIRECT)
        # Insertion-ordered set of messages.
        messages: dict[str, None] = {}
        for path in _query_paths(spec):
            for page in _pages(partial(self.client.get_commits_page, since, until, path=path, sha=head_sha)):
                messages.update(dict.fromkeys(c.message for c in page))
        logger.info("Direct phase found %d commit message(s)", len(messages))

        if spec is not None:
            self._enter(CommitPhase.RECONCILIATION)
            reconciled = self._reconcile_merge_commits(since, until, spec, head_sha)
            logger.info("Reconciliation phase recovered %d merge commit(s)", len(reconciled))
            messages.update(dict.fromkeys(reconciled))

        self._enter(CommitPhase.DONE)
        return list(messages)

    def _reconcile_merge_commits(
        self,
        since: datetime,
        until: datetime,
        spec: TargetPathSpec,
        head_sha: str | None,
    ) -> list[str]:
        candidates: dict[str, int] = {}
        for page in _pages(partial(self.client.get_commits_page, since, until, sha=head_sha)):
            for commit in page:
                if not commit.message.startswith(MERGE_COMMIT_PREFIX):
                    continue
                number = extract_pr_number(commit.message)
                if number is None:
                    logger.debug("Merge commit %s has no PR number", commit.sha[:7])
                    continue
                candidates.setdefault(commit.message, number)

        if not candidates:
            return []

        # PR lookups are independent; all must finish before the union is used.
        reconciled: set[str] = set()
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(candidates))) as executor:
            futures = {
                executor.submit(self._pull_touches_scope, number, spec): message
                for message, number in candidates.items()
            }
            try:
                for future in as_completed(futures):
                    if future.result():
                        reconciled.add(futures[future])
            except Exception:
                for future in futures:
                    future.cancel()
                raise

        # as_completed order is arbitrary; keep the listing order instead.
        return [m for m in candidates if m in reconciled]

    def _pull_touches_scope(self, number: int, spec: TargetPathSpec) -> bool:
        pull = self.client.get_pull(number)
        if pull is None:
            return False
        for paths in _pages(lambda p: self.client.get_pull_files_page(pull, p)):
            if any(spec.is_included(path) for path in paths):
                logger.debug("PR #%d touches in-scope files", number)
                return True
        return False

    def _enter(self, phase: CommitPhase) -> None:
        logger.debug("Commit fetch phase: %s → %s", self.phase.value, phase.value)
        self.phase = phase
        self.phases.append(phase)


def _query_paths(spec: TargetPathSpec | None) -> list[str | None]:
    """Path filters for the direct phase; None means an unfiltered listing.

    Falls back to a single unfiltered listing when the path spec has no included
    patterns or one of them has no literal prefix (``*.md``).
    """
    if spec is None:
        return [None]
    prefixes = spec.sanitized_included_prefixes()
    if not prefixes or "" in prefixes:
        return [None]
    return list(prefixes)
