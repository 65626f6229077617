from __future__ import annotations


class ReleasegateError(RuntimeError):
    """Base error for the release pipeline."""


class ConfigurationError(ReleasegateError):
    """Configuration is missing or inconsistent (fatal for the stage or run)."""


class EventError(ConfigurationError):
    """The triggering event payload could not be mapped to a known trigger."""


class ExternalToolFailure(ReleasegateError):
    """A collaborator (git, sf, host API) exited non-zero or answered garbage."""

    def __init__(
        self,
        reason: str,
        *,
        diagnostic: str | None = None,
        timed_out: bool = False,
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.diagnostic = diagnostic
        self.timed_out = timed_out


class Cancelled(ReleasegateError):
    """The hosting environment terminated the run."""
