"""Retry lineage of a workflow run.

When CI re-runs a failed deploy, GitHub creates a new attempt of the same run
that links back to the one it retried. A deploy should be announced exactly
once: by the first attempt in that chain that succeeded. Later successful
re-runs of an already-successful run must be ignored.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shiplog_core.errors import AttemptChainTooLongError

if TYPE_CHECKING:
    from shiplog_core.gh.client import GitHubRepoClient
    from shiplog_core.models import Run

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 50


def is_successful(run: Run) -> bool:
    return run.conclusion == "success"


class AttemptChain:
    """Walks previous-attempt links through the GitHub client.

    The walk is iterative and bounded: GitHub caps re-runs well below
    ``max_hops``, so a longer chain means malformed data, reported as
    AttemptChainTooLongError. Transport errors propagate unchanged.
    """

    def __init__(self, client: GitHubRepoClient, max_hops: int = DEFAULT_MAX_HOPS):
        self.client = client
        self.max_hops = max_hops

    def previous_successful_attempt(self, run: Run) -> Run | None:
        attempt = self.client.get_previous_attempt(run)
        hops = 0
        while attempt is not None:
            hops += 1
            if hops > self.max_hops:
                raise AttemptChainTooLongError(run.id, self.max_hops)
            if is_successful(attempt):
                logger.debug("Run %s attempt %d already succeeded", run.id, attempt.run_attempt)
                return attempt
            attempt = self.client.get_previous_attempt(attempt)
        return None

    def has_prior_successful_attempt(self, run: Run) -> bool:
        return self.previous_successful_attempt(run) is not None

    def has_successful_attempt(self, run: Run) -> bool:
        """True if this attempt or any attempt it retried succeeded."""
        return is_successful(run) or self.has_prior_successful_attempt(run)

    def is_first_successful_attempt(self, run: Run) -> bool:
        """True only for the attempt that first turned this run green."""
        if not is_successful(run):
            return False
        return not self.has_prior_successful_attempt(run)
