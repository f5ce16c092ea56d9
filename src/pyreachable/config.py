"""Observer configuration for pyreachable."""

from __future__ import annotations

import dataclasses
import os
from enum import StrEnum
from pathlib import Path
from typing import Any

from pyreachable._constants import (
    DEFAULT_PATH_POLL_INTERVAL,
    DEFAULT_PROBE_INTERVAL,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_PROBE_URL,
    DEFAULT_STORAGE_KEY,
)
from pyreachable.exceptions import ReachableConfigError


class FallbackMode(StrEnum):
    """When to replace the native path source with the polling probe."""

    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_float(env_key: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ReachableConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class ReachableConfig:
    """Observer configuration.

    Parameters
    ----------
    auto_start : bool
        Start the event source as soon as the connection is built.
    storage_key : str
        Key under which the last known state is persisted.
    storage_path : Path or None
        Key-value namespace file. ``None`` uses the per-user state
        directory (``$XDG_STATE_HOME/pyreachable/defaults.json``).
    fallback : FallbackMode
        ``auto`` polls only on hosts where native interface reporting is
        known to be unreliable; ``always`` and ``never`` force the choice.
    probe_url : str
        Endpoint hit with ``HEAD`` by the fallback probe.
    probe_interval : float
        Seconds between fallback checks.
    probe_timeout : float
        Per-check timeout in seconds. A timeout counts as offline.
    path_poll_interval : float
        Seconds between interface samples of the native path source.
    """

    auto_start: bool = True
    storage_key: str = DEFAULT_STORAGE_KEY
    storage_path: Path | None = None
    fallback: FallbackMode = FallbackMode.AUTO
    probe_url: str = DEFAULT_PROBE_URL
    probe_interval: float = DEFAULT_PROBE_INTERVAL
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    path_poll_interval: float = DEFAULT_PATH_POLL_INTERVAL

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "fallback", FallbackMode(self.fallback))
        except ValueError as exc:
            raise ReachableConfigError(f"Unknown fallback mode: {self.fallback!r}") from exc
        if self.storage_path is not None and not isinstance(self.storage_path, Path):
            object.__setattr__(self, "storage_path", Path(self.storage_path))
        if not self.storage_key.strip():
            raise ReachableConfigError("storage_key must be non-empty")
        for name in ("probe_interval", "probe_timeout", "path_poll_interval"):
            if getattr(self, name) <= 0:
                raise ReachableConfigError(f"{name} must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> ReachableConfig:
        """Create configuration from ``REACHABLE_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        if "auto_start" not in overrides:
            config_kwargs["auto_start"] = _env_bool(env.get("REACHABLE_AUTO_START"), True)

        _ENV_STR_MAP = {
            "REACHABLE_STORAGE_KEY": "storage_key",
            "REACHABLE_STORAGE_PATH": "storage_path",
            "REACHABLE_FALLBACK": "fallback",
            "REACHABLE_PROBE_URL": "probe_url",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val.strip()

        _ENV_FLOAT_MAP = {
            "REACHABLE_PROBE_INTERVAL": "probe_interval",
            "REACHABLE_PROBE_TIMEOUT": "probe_timeout",
            "REACHABLE_PATH_POLL_INTERVAL": "path_poll_interval",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_float(env_key, val)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
