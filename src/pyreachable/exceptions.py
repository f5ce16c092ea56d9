"""Custom exception hierarchy for pyreachable."""

from __future__ import annotations


class ReachableError(Exception):
    """Base exception for all pyreachable errors."""


class ReachableConfigError(ReachableError):
    """Invalid configuration value."""


class ConnectionMemoryError(ReachableError):
    """Persisted connection state could not be written."""


class ProbeError(ReachableError):
    """Reachability check got an unusable answer.

    Only raised inside the fallback probe; the probe maps it to an
    offline event before anything reaches the state store.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        status_code: int | None = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(message)
