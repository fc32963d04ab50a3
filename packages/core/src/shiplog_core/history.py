"""Backward search through a repository's workflow run history."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shiplog_core.models import RunSearchResult

if TYPE_CHECKING:
    from shiplog_core.attempts import AttemptChain
    from shiplog_core.gh.client import GitHubRepoClient
    from shiplog_core.models import Run

logger = logging.getLogger(__name__)


def find_previous_successful_run(
    client: GitHubRepoClient,
    chain: AttemptChain,
    run: Run,
    branch_scoped: bool = True,
) -> RunSearchResult | None:
    """Return the newest earlier run of the same workflow that succeeded.

    Pages backward from ``run.created_at`` one page at a time and stops at
    the first run on the same workflow file whose attempt chain contains a
    success. An empty page is the only end-of-history signal; there is no
    page-count limit because the page size is whatever the API returns.

    Same-workflow runs passed over on the way are returned as
    ``skipped_runs``: they failed to deploy, so their changes ship now.
    """
    branch = run.head_branch if branch_scoped else None
    logger.info(
        "Searching for previous successful run of %s%s",
        run.path,
        f" on {branch}" if branch else "",
    )

    skipped: list[Run] = []
    page = 0
    while True:
        runs = client.get_runs_page(run, page, branch=branch)
        if not runs:
            logger.info("No previous successful run found after %d page(s)", page)
            return None

        for candidate in runs:
            if candidate.path != run.path:
                continue
            if chain.has_successful_attempt(candidate):
                logger.info("Previous successful run: %s (%s)", candidate.id, candidate.head_sha[:7])
                return RunSearchResult(previous=candidate, skipped_runs=tuple(skipped))
            skipped.append(candidate)

        page += 1
