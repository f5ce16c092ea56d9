"""Path sources: producers of raw :class:`PathEvent` reports.

The native source samples the host's interfaces through psutil on a
background thread and reports only when the path changes, which gives the
store push-style delivery. Sources call their handler from their own thread;
the store is responsible for synchronisation.
"""

from __future__ import annotations

import ipaddress
import logging
import platform
import socket
import threading
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Protocol

import psutil

from pyreachable._constants import DEFAULT_PATH_POLL_INTERVAL
from pyreachable.models.path import EventSource, InterfaceType, PathEvent, PathStatus

_logger = logging.getLogger(__name__)

PathHandler = Callable[[PathEvent], None]


class PathSource(Protocol):
    """Single-handler asynchronous event source."""

    def start(self, handler: PathHandler) -> None:
        ...

    def cancel(self) -> None:
        ...


# ------------------------------------------------------------------
# Interface classification
# ------------------------------------------------------------------

# Checked in order; the first matching prefix wins.
_NAME_PREFIXES: tuple[tuple[str, InterfaceType], ...] = (
    ("local area connection", InterfaceType.WIRED_ETHERNET),
    ("loopback", InterfaceType.LOOPBACK),
    ("lo", InterfaceType.LOOPBACK),
    ("wl", InterfaceType.WIFI),
    ("wi-fi", InterfaceType.WIFI),
    ("wifi", InterfaceType.WIFI),
    ("wireless", InterfaceType.WIFI),
    ("ath", InterfaceType.WIFI),
    ("wwan", InterfaceType.CELLULAR),
    ("rmnet", InterfaceType.CELLULAR),
    ("ccmni", InterfaceType.CELLULAR),
    ("pdp_ip", InterfaceType.CELLULAR),
    ("ppp", InterfaceType.CELLULAR),
    ("cellular", InterfaceType.CELLULAR),
    ("mobile broadband", InterfaceType.CELLULAR),
    ("ethernet", InterfaceType.WIRED_ETHERNET),
    ("eth", InterfaceType.WIRED_ETHERNET),
    ("en", InterfaceType.WIRED_ETHERNET),
    ("em", InterfaceType.WIRED_ETHERNET),
)


def classify_interface_name(name: str) -> InterfaceType | None:
    """Map an OS interface name to an :class:`InterfaceType`.

    Returns ``None`` for virtual links (bridges, tunnels, container veths)
    that say nothing about the physical connection.

    macOS reports both wired and WiFi adapters as ``enN``; those are
    classified as wired.
    """
    normalized = name.strip().lower()
    for prefix, interface_type in _NAME_PREFIXES:
        if normalized.startswith(prefix):
            return interface_type
    return None


def _is_routable(family: int, address: str) -> bool:
    if family not in (socket.AF_INET, socket.AF_INET6):
        return False
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return False
    return not (ip.is_link_local or ip.is_unspecified)


def build_path_event(
    stats: Mapping[str, Any],
    addrs: Mapping[str, Iterable[Any]],
) -> PathEvent:
    """Derive a path report from psutil interface stats and addresses.

    An interface is in use when it is up and carries a routable address.
    The path is satisfied when at least one non-loopback interface is in use.
    """
    in_use: set[InterfaceType] = set()
    for name, stat in stats.items():
        if not getattr(stat, "isup", False):
            continue
        interface_type = classify_interface_name(name)
        if interface_type is None:
            continue
        if any(_is_routable(addr.family, addr.address) for addr in addrs.get(name, ())):
            in_use.add(interface_type)

    satisfied = any(tag is not InterfaceType.LOOPBACK for tag in in_use)
    return PathEvent(
        status=PathStatus.SATISFIED if satisfied else PathStatus.UNSATISFIED,
        interfaces=frozenset(in_use),
        source=EventSource.PATH,
    )


def sample_path() -> PathEvent:
    return build_path_event(psutil.net_if_stats(), psutil.net_if_addrs())


def is_unreliable_platform() -> bool:
    """Whether native interface reporting cannot be trusted on this host.

    WSL exposes a virtual adapter that stays up regardless of the Windows
    host's connectivity, and some sandboxes refuse interface enumeration
    outright. Both need the polling probe.
    """
    release = platform.uname().release.lower()
    if "microsoft" in release or "wsl" in release:
        return True
    try:
        stats = psutil.net_if_stats()
    except (OSError, psutil.Error):
        return True
    return not any(classify_interface_name(name) not in (None, InterfaceType.LOOPBACK) for name in stats)


# ------------------------------------------------------------------
# Sources
# ------------------------------------------------------------------


class PsutilPathSource:
    """Threaded interface sampler that reports on path changes only."""

    def __init__(
        self,
        *,
        poll_interval: float = DEFAULT_PATH_POLL_INTERVAL,
        sampler: Callable[[], PathEvent] = sample_path,
    ) -> None:
        self._poll_interval = poll_interval
        self._sampler = sampler
        self._handler: PathHandler | None = None
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop.is_set()

    def start(self, handler: PathHandler) -> None:
        with self._lock:
            if self._thread is not None:
                return
            self._handler = handler
            self._thread = threading.Thread(target=self._run, name="pyreachable-path", daemon=True)
            self._thread.start()
        _logger.debug("Path source started interval=%s", self._poll_interval)

    def cancel(self) -> None:
        with self._lock:
            self._handler = None
            self._stop.set()
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        _logger.debug("Path source cancelled")

    def _emit(self, event: PathEvent) -> None:
        with self._lock:
            handler = self._handler
        if handler is None:
            return
        try:
            handler(event)
        except Exception:
            _logger.warning("Path handler failed", exc_info=True)

    def _run(self) -> None:
        last: tuple[PathStatus, frozenset[InterfaceType]] | None = None
        while not self._stop.is_set():
            try:
                event = self._sampler()
            except Exception:
                _logger.debug("Interface sampling failed", exc_info=True)
                event = PathEvent(status=PathStatus.UNSATISFIED, source=EventSource.PATH)
            signature = (event.status, event.interfaces)
            if signature != last:
                last = signature
                self._emit(event)
            self._stop.wait(self._poll_interval)


class ManualPathSource:
    """In-process source driven by explicit calls."""

    def __init__(self) -> None:
        self._handler: PathHandler | None = None
        self._lock = threading.Lock()
        self.started = False
        self.cancelled = False

    def start(self, handler: PathHandler) -> None:
        with self._lock:
            if self.cancelled:
                return
            self._handler = handler
            self.started = True

    def cancel(self) -> None:
        with self._lock:
            self._handler = None
            self.cancelled = True

    def send(self, event: PathEvent) -> bool:
        """Deliver *event*; returns ``False`` when nobody is listening."""
        with self._lock:
            handler = self._handler
        if handler is None:
            return False
        handler(event)
        return True

    def report(
        self,
        satisfied: bool,
        interfaces: Iterable[InterfaceType] = (),
    ) -> bool:
        return self.send(PathEvent.from_status(satisfied, frozenset(interfaces)))
