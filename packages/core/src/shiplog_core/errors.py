"""Exception types raised by the release delta core.

Everything the core raises itself derives from ShiplogError so the CLI
(or any other host) can catch one type and report it. Transport failures from
PyGithub and GitPython are not caught here; the resolver wraps them in a
ReleaseDeltaError with the original exception attached as ``__cause__``.
"""

from __future__ import annotations


class ShiplogError(Exception):
    """Base class for all shiplog errors."""


class ReleaseDeltaError(ShiplogError):
    """The release delta for an invocation could not be computed.

    The underlying exception is chained as ``__cause__`` and shows up in logs
    and tracebacks.
    """


class AttemptChainTooLongError(ShiplogError):
    """A run's previous-attempt chain is longer than the configured bound."""

    def __init__(self, run_id: int | None, max_hops: int):
        self.run_id = run_id
        self.max_hops = max_hops
        super().__init__(f"Attempt chain for run {run_id} exceeded {max_hops} hops.")


class WorkflowConfigError(ShiplogError):
    """A workflow file or path list could not be turned into a path spec."""
