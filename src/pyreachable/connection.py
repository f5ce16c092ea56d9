"""Connection monitors: the live observer and its test double.

Both wrap a :class:`~pyreachable.state.store.StateStore`; they only differ in
which event source feeds it. There is no process-wide instance: callers
build a :class:`Connection` and own its lifecycle.

Usage::

    async with Connection() as connection:
        async for state in connection.subscribe():
            print(state.connected, state.interface_type)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from types import TracebackType
from typing import Any, Protocol

from pyreachable._path_source import ManualPathSource, PathSource, PsutilPathSource, is_unreliable_platform
from pyreachable._probe import FallbackProbe
from pyreachable.config import FallbackMode, ReachableConfig
from pyreachable.memory import ConnectionMemory, DefaultConnectionMemory, InMemoryConnectionMemory
from pyreachable.models.path import EventSource, InterfaceType, PathEvent
from pyreachable.models.state import ConnectionState
from pyreachable.notifications import NotificationCenter
from pyreachable.state.store import StateStore, Subscription

_logger = logging.getLogger(__name__)


class Connectable(Protocol):
    """Capabilities shared by every connection monitor."""

    @property
    def is_connected(self) -> bool:
        ...

    @property
    def interface_type(self) -> InterfaceType | None:
        ...

    def read(self) -> ConnectionState:
        ...

    def subscribe(self) -> Subscription:
        ...

    def stop(self) -> None:
        ...

    def remembered_connection_state(self) -> bool:
        ...


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def should_use_fallback(mode: FallbackMode) -> bool:
    if mode is FallbackMode.ALWAYS:
        return True
    if mode is FallbackMode.NEVER:
        return False
    return is_unreliable_platform()


class _StoreBackedConnection:
    """Delegation shared by the live and mock monitors."""

    _store: StateStore

    @property
    def store(self) -> StateStore:
        return self._store

    @property
    def is_connected(self) -> bool:
        return self._store.is_connected

    @property
    def interface_type(self) -> InterfaceType | None:
        return self._store.interface_type

    @property
    def notification_center(self) -> NotificationCenter:
        return self._store.notification_center

    def read(self) -> ConnectionState:
        return self._store.read()

    def subscribe(self) -> Subscription:
        return self._store.subscribe()

    def stop(self) -> None:
        self._store.stop()

    def stop_monitoring(self) -> None:
        self.stop()

    def remembered_connection_state(self) -> bool:
        return self._store.remembered_connection_state()

    def __enter__(self) -> Any:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    async def __aenter__(self) -> Any:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._store.__aexit__(*exc)


class Connection(_StoreBackedConnection):
    """Live connection monitor.

    Parameters
    ----------
    config : ReachableConfig or None
        Observer configuration; defaults to ``ReachableConfig()``.
    memory : ConnectionMemory or None
        Persistence of the last known state. Defaults to a
        :class:`DefaultConnectionMemory` using the configured key and path.
    path_source : PathSource or None
        Native event source. Defaults to :class:`PsutilPathSource`.
    probe_factory : callable or None
        Overrides the fallback probe construction. The factory is only
        used when the fallback strategy is active.
    notification_center : NotificationCenter or None
        Change notification side channel. Defaults to a center bound to
        the loop running at construction time (synchronous delivery when
        there is none).
    """

    def __init__(
        self,
        config: ReachableConfig | None = None,
        *,
        memory: ConnectionMemory | None = None,
        path_source: PathSource | None = None,
        probe_factory: Callable[[], PathSource] | None = None,
        notification_center: NotificationCenter | None = None,
    ) -> None:
        self._config = config or ReachableConfig()
        cfg = self._config
        if memory is None:
            memory = DefaultConnectionMemory(storage_key=cfg.storage_key, path=cfg.storage_path)
        if path_source is None:
            path_source = PsutilPathSource(poll_interval=cfg.path_poll_interval)
        if notification_center is None:
            notification_center = NotificationCenter(loop=_running_loop())

        fallback_factory: Callable[[], PathSource] | None = None
        if should_use_fallback(cfg.fallback):
            fallback_factory = probe_factory or self._build_probe
            _logger.debug("Using fallback probe for connection monitoring")

        self._store = StateStore(
            memory,
            path_source=path_source,
            probe_factory=fallback_factory,
            notification_center=notification_center,
            sender=self,
            auto_start=cfg.auto_start,
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> Connection:
        """Build a monitor from ``REACHABLE_*`` environment variables."""
        return cls(ReachableConfig.from_env(**overrides))

    @property
    def config(self) -> ReachableConfig:
        return self._config

    @property
    def uses_fallback(self) -> bool:
        return self._store.uses_fallback

    def start(self) -> None:
        """Start monitoring when built with ``auto_start=False``."""
        self._store.start()

    def _build_probe(self) -> PathSource:
        cfg = self._config
        return FallbackProbe(url=cfg.probe_url, interval=cfg.probe_interval, timeout=cfg.probe_timeout)


LiveConnection = Connection


class MockConnection(_StoreBackedConnection):
    """Test double with no network dependency.

    Established at construction with the given values; state changes are
    driven through :meth:`simulate_connection` and
    :meth:`simulate_interface` and go through the same store rules as live
    events.
    """

    def __init__(
        self,
        is_connected: bool = True,
        interface_type: InterfaceType | None = InterfaceType.WIFI,
        *,
        memory: ConnectionMemory | None = None,
        notification_center: NotificationCenter | None = None,
    ) -> None:
        self._source = ManualPathSource()
        self._store = StateStore(
            memory if memory is not None else InMemoryConnectionMemory(initial=is_connected),
            path_source=self._source,
            notification_center=notification_center,
            sender=self,
        )
        # Last link type set explicitly; survives offline periods.
        self._simulated_interface = interface_type
        self._report(is_connected, interface_type)

    def _report(self, connected: bool, interface_type: InterfaceType | None) -> None:
        interfaces = frozenset({interface_type}) if interface_type is not None else frozenset()
        self._source.send(PathEvent.from_status(connected, interfaces, source=EventSource.MANUAL))

    def simulate_connection(self, connected: bool) -> None:
        """Report a connection change with the last explicitly set link type."""
        self._report(connected, self._simulated_interface)

    def simulate_interface(self, interface_type: InterfaceType | None) -> None:
        """Change the link type without changing connectivity.

        Ignored while disconnected.
        """
        if not self.is_connected:
            return
        self._simulated_interface = interface_type
        self._report(True, interface_type)
