"""Base range fetcher implementing the Template Method pattern.

Both backends produce a release delta the same way:
    fetch() → diff()             ← backend specific
            → commit_messages()  ← backend specific
            → RangeResult

Subclasses implement the two abstract methods and set ORDERED to say
whether their commit messages come back in commit-time order.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from shiplog_core.models import RangeResult
from shiplog_core.paths import filter_ignored_sections

if TYPE_CHECKING:
    from shiplog_core.paths import TargetPathSpec

logger = logging.getLogger(__name__)


class RangeFetcher(ABC):
    NAME: str = "base"
    ORDERED: bool = True

    def fetch(self, old_sha: str, new_sha: str, spec: TargetPathSpec | None) -> RangeResult | None:
        """Return the scoped diff and commit messages for old_sha..new_sha.

        Returns None when nothing in scope changed; commit history is not
        fetched in that case.
        """
        diff = self.diff(old_sha, new_sha, spec)
        if not diff.strip():
            logger.warning("No in-scope changes between %s and %s", old_sha[:7], new_sha[:7])
            return None
        messages = self.commit_messages(old_sha, new_sha, spec)
        return RangeResult(diff=diff, commit_messages=tuple(messages), ordered=self.ORDERED)

    @abstractmethod
    def diff(self, old_sha: str, new_sha: str, spec: TargetPathSpec | None) -> str:
        """Unified diff of old_sha..new_sha with out-of-scope files removed."""

    @abstractmethod
    def commit_messages(self, old_sha: str, new_sha: str, spec: TargetPathSpec | None) -> list[str]:
        """Messages of in-scope commits after old_sha up to and including new_sha."""

    @staticmethod
    def apply_scope(diff: str, spec: TargetPathSpec | None) -> str:
        if spec is None:
            return filter_ignored_sections(diff)
        return spec.filter_diff(diff)
