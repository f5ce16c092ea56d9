"""Persistence of the last known connection state.

The store only ever *writes* through this layer while running. Reading is
reserved for callers that want the remembered value before any live source
has reported; it never seeds live state.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Protocol

from pyreachable._constants import DEFAULT_STORAGE_FILENAME, DEFAULT_STORAGE_KEY
from pyreachable.exceptions import ConnectionMemoryError

_logger = logging.getLogger(__name__)


class ConnectionMemory(Protocol):
    """Get/set store for a single persisted boolean."""

    def load(self) -> bool:
        ...

    def save(self, is_connected: bool) -> None:
        ...


def default_storage_path() -> Path:
    """Per-user namespace file, honouring ``XDG_STATE_HOME``."""
    base = os.environ.get("XDG_STATE_HOME")
    root = Path(base) if base else Path.home() / ".local" / "state"
    return root / "pyreachable" / DEFAULT_STORAGE_FILENAME


class DefaultConnectionMemory:
    """JSON-file backed key-value namespace.

    Several memories (different ``storage_key``) may share one file; each
    save rewrites the whole namespace atomically so concurrent writers
    resolve last-write-wins.
    """

    def __init__(
        self,
        storage_key: str = DEFAULT_STORAGE_KEY,
        path: Path | str | None = None,
    ) -> None:
        self._storage_key = storage_key
        self._path = Path(path) if path is not None else default_storage_path()
        self._lock = threading.Lock()

    @property
    def storage_key(self) -> str:
        return self._storage_key

    @property
    def path(self) -> Path:
        return self._path

    def _read_namespace(self) -> dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError:
            _logger.debug("Could not read connection memory %s", self._path, exc_info=True)
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            _logger.debug("Ignoring corrupt connection memory %s", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> bool:
        with self._lock:
            value = self._read_namespace().get(self._storage_key)
        return value if isinstance(value, bool) else False

    def save(self, is_connected: bool) -> None:
        with self._lock:
            namespace = self._read_namespace()
            namespace[self._storage_key] = bool(is_connected)
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".pyreachable-", suffix=".tmp")
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as handle:
                        json.dump(namespace, handle, separators=(",", ":"), sort_keys=True)
                    os.replace(tmp_name, self._path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except OSError as exc:
                raise ConnectionMemoryError(f"Could not persist {self._storage_key} to {self._path}: {exc}") from exc


class InMemoryConnectionMemory:
    """Process-local memory; nothing survives a restart."""

    def __init__(self, initial: bool = False) -> None:
        self._value = initial
        self._lock = threading.Lock()
        self.save_count = 0

    def load(self) -> bool:
        with self._lock:
            return self._value

    def save(self, is_connected: bool) -> None:
        with self._lock:
            self._value = bool(is_connected)
            self.save_count += 1
