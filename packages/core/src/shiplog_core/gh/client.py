"""Thin PyGithub wrapper exposing exactly the calls the release delta needs.

Paginated endpoints are exposed one page at a time (``get_*_page``) rather
than as lazy iterators. Callers drive the loop themselves so they can stop
on the first match and treat an empty page as the end of the data.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from github import Github, UnknownObjectException

from shiplog_core.models import CommitRecord, Run
from shiplog_core.workflow_config import WorkflowConfig

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.github.com"
DIFF_MEDIA_TYPE = "application/vnd.github.diff"


def _github_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class GitHubRepoClient:
    def __init__(self, github: Github, repo_name: str):
        self.github = github
        self.repo = github.get_repo(repo_name)

    @classmethod
    def connect(
        cls,
        repo_name: str,
        credentials,
        base_url: str = DEFAULT_BASE_URL,
        per_page: int = 100,
    ) -> GitHubRepoClient:
        # retry=None: every failed call is terminal for the invocation.
        github = Github(auth=credentials.auth(), base_url=base_url, per_page=per_page, retry=None)
        return cls(github, repo_name)

    # ------------------------------------------------------------------ #
    # Repository metadata                                                  #
    # ------------------------------------------------------------------ #

    @property
    def full_name(self) -> str:
        return self.repo.full_name

    @property
    def size_kb(self) -> int:
        return self.repo.size or 0

    @property
    def clone_url(self) -> str:
        return self.repo.clone_url

    @property
    def html_url(self) -> str:
        return self.repo.html_url

    # ------------------------------------------------------------------ #
    # Workflow runs                                                        #
    # ------------------------------------------------------------------ #

    def get_run(self, run_id: int) -> Run:
        logger.info("Fetching workflow run %s", run_id)
        return Run.from_workflow_run(self.repo.get_workflow_run(run_id))

    def get_previous_attempt(self, run: Run) -> Run | None:
        """Return the attempt that ``run`` retried, or None at the chain root.

        A previous attempt that no longer exists also ends the chain.
        """
        if not run.previous_attempt_url:
            return None
        try:
            _, data = self.github.requester.requestJsonAndCheck("GET", run.previous_attempt_url)
        except UnknownObjectException:
            logger.info("Previous attempt %s no longer exists", run.previous_attempt_url)
            return None
        return Run.from_payload(data)

    def get_runs_page(self, before: Run, page: int, branch: str | None = None) -> list[Run]:
        """One page of runs created strictly before ``before``, newest first."""
        kwargs = {"created": f"<{_github_timestamp(before.created_at)}"}
        if branch:
            kwargs["branch"] = branch
        logger.debug("Fetching run history page %d (%s)", page, kwargs)
        return [Run.from_workflow_run(r) for r in self.repo.get_workflow_runs(**kwargs).get_page(page)]

    def get_workflow_config(self, run: Run) -> WorkflowConfig:
        """Parse the run's workflow file as it was at the run's head commit."""
        text = self.get_file_text(run.path, ref=run.head_sha)
        return WorkflowConfig.parse(text, source=run.path)

    # ------------------------------------------------------------------ #
    # Commits, diffs, pull requests                                        #
    # ------------------------------------------------------------------ #

    def get_file_text(self, path: str, ref: str) -> str:
        return self.repo.get_contents(path, ref=ref).decoded_content.decode("utf-8", errors="replace")

    def get_commit_date(self, sha: str) -> datetime:
        return self.repo.get_commit(sha).commit.committer.date

    def compare_diff(self, base_sha: str, head_sha: str) -> str:
        """Server-side unified diff of base...head.

        Requested in the diff media type rather than read from the comparison's
        ``files``, which GitHub caps at the first 300 changed files. A range too
        large for GitHub to render fails with a GithubException.
        """
        logger.info("Fetching diff between commits %s and %s", base_sha[:7], head_sha[:7])
        url = f"{self.repo.url}/compare/{base_sha}...{head_sha}"
        _, data = self.github.requester.requestJsonAndCheck("GET", url, headers={"Accept": DIFF_MEDIA_TYPE})
        # The requester wraps a non-JSON body as {"data": text}; an empty body is None.
        if not data:
            return ""
        return data["data"]

    def get_commits_page(
        self,
        since: datetime,
        until: datetime,
        page: int,
        path: str | None = None,
        sha: str | None = None,
    ) -> list[CommitRecord]:
        """One page of commits in [since, until], reachable from ``sha`` when given.

        Without ``sha`` GitHub lists the default branch.
        """
        kwargs = {"since": since, "until": until}
        if sha:
            kwargs["sha"] = sha
        if path:
            kwargs["path"] = path
        commits = self.repo.get_commits(**kwargs).get_page(page)
        return [CommitRecord(sha=c.sha, message=c.commit.message) for c in commits]

    def get_pull(self, number: int):
        """Return the pull request, or None if it no longer exists."""
        try:
            return self.repo.get_pull(number)
        except UnknownObjectException:
            logger.info("Pull request #%d not found", number)
            return None

    def get_pull_files_page(self, pull, page: int) -> list[str]:
        """Paths touched by one page of a pull request's files.

        Renames contribute both names so a file moved out of scope still
        counts as a change to the scoped app.
        """
        paths: list[str] = []
        for f in pull.get_files().get_page(page):
            paths.append(f.filename)
            if f.previous_filename:
                paths.append(f.previous_filename)
        return paths
