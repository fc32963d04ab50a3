"""Data models shared by the release delta core.

All of these are frozen: runs come from GitHub and are only ever read and
chained, and a RangeResult is produced once and handed downstream untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Run:
    """One CI workflow run attempt."""

    id: int | None
    head_sha: str
    head_branch: str | None
    created_at: datetime
    path: str
    conclusion: str | None = None
    run_attempt: int = 1
    html_url: str | None = None
    previous_attempt_url: str | None = None

    @classmethod
    def from_workflow_run(cls, run) -> Run:
        """Build a Run from a PyGithub ``WorkflowRun``."""
        return cls(
            id=run.id,
            head_sha=run.head_sha,
            head_branch=run.head_branch,
            created_at=run.created_at,
            path=run.path,
            conclusion=run.conclusion,
            run_attempt=run.run_attempt or 1,
            html_url=run.html_url,
            previous_attempt_url=run.previous_attempt_url,
        )

    @classmethod
    def from_payload(cls, data: dict) -> Run:
        """Build a Run from a raw REST payload (used for attempt URLs)."""
        return cls(
            id=data.get("id"),
            head_sha=data["head_sha"],
            head_branch=data.get("head_branch"),
            created_at=_parse_timestamp(data["created_at"]),
            path=data.get("path", ""),
            conclusion=data.get("conclusion"),
            run_attempt=data.get("run_attempt") or 1,
            html_url=data.get("html_url"),
            previous_attempt_url=data.get("previous_attempt_url"),
        )


@dataclass(frozen=True)
class CommitRecord:
    sha: str
    message: str
    paths: tuple[str, ...] | None = None


@dataclass(frozen=True)
class RangeResult:
    """Filtered diff and in-scope commit messages for an old..new range.

    ``ordered`` tells consumers whether commit_messages follows commit-time
    order (local backend) or is an unordered set (remote backend).
    """

    diff: str
    commit_messages: tuple[str, ...] = ()
    ordered: bool = True


@dataclass(frozen=True)
class RunSearchResult:
    """Outcome of a successful backward run-history search.

    ``skipped_runs`` holds the same-workflow runs newer than ``previous``
    that never succeeded: failed deploys whose changes ship with this one.
    """

    previous: Run
    skipped_runs: tuple[Run, ...] = field(default_factory=tuple)


def _parse_timestamp(value: str) -> datetime:
    # GitHub timestamps end in "Z", which fromisoformat only accepts on 3.11+.
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
