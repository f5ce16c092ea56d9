"""Connection state store.

This is the only component allowed to mutate connection state. Path sources
and the fallback probe hand it raw events through :meth:`StateStore.ingest`;
readers and subscribers only ever see what the store accepted.

Ordering rule: state is mutated under the lock, and every externally
observable side effect (persistence, stream emission, notification) happens
after the lock is released.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import weakref
from collections.abc import Callable
from types import TracebackType
from typing import Any

from pyreachable._constants import CONNECTION_STATE_DID_CHANGE, IS_CONNECTED_KEY
from pyreachable._path_source import PathSource
from pyreachable.memory import ConnectionMemory
from pyreachable.models.path import InterfaceType, PathEvent
from pyreachable.models.state import DISCONNECTED, ConnectionState
from pyreachable.notifications import NotificationCenter

_logger = logging.getLogger(__name__)

# Marks the end of a subscription stream.
_END = None


class Subscription:
    """Async iterator over accepted connection states.

    Elements are handed to the subscriber's loop with
    ``call_soon_threadsafe`` so producers never block on consumers.

    The store only holds a weak reference, so a subscription abandoned with
    ``break`` is released once the consumer drops it. Use
    ``async with store.subscribe() as subscription:`` to release it
    deterministically.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        on_close: Callable[[Subscription], None] | None = None,
    ) -> None:
        self._loop = loop
        self._on_close = on_close
        self._queue: asyncio.Queue[ConnectionState | None] = asyncio.Queue()
        self._lock = threading.Lock()
        self._last_version = 0
        self._finished = False
        self._exhausted = False

    def _deliver(self, state: ConnectionState, version: int) -> None:
        with self._lock:
            if self._finished or version <= self._last_version:
                return
            self._last_version = version
            self._put(state)

    def _finish(self) -> None:
        with self._lock:
            if self._finished:
                return
            self._finished = True
            self._put(_END)

    def _put(self, item: ConnectionState | None) -> None:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            _logger.debug("Subscriber loop closed; dropping element")

    @property
    def closed(self) -> bool:
        return self._finished

    def close(self) -> None:
        """Stop receiving elements; pending ``__anext__`` calls complete."""
        on_close = self._on_close
        self._on_close = None
        if on_close is not None:
            on_close(self)
        self._finish()

    async def aclose(self) -> None:
        self.close()

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> ConnectionState:
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._exhausted = True
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()


class StateStore:
    """Owner of the current :class:`ConnectionState`.

    Parameters
    ----------
    memory : ConnectionMemory
        Where accepted states are persisted. Shared, not owned; it is never
        read to seed live state.
    path_source : PathSource
        Native event source (owned).
    probe_factory : callable or None
        When given the store runs in fallback mode: the probe is built on
        :meth:`start` and the path source is never started, so exactly one
        writer feeds :meth:`ingest`.
    notification_center : NotificationCenter or None
        Side channel for change notifications. A private center is created
        when omitted.
    sender : object or None
        Sender reported on notifications; defaults to the store itself.
    auto_start : bool
        Call :meth:`start` from the constructor.
    """

    def __init__(
        self,
        memory: ConnectionMemory,
        *,
        path_source: PathSource,
        probe_factory: Callable[[], PathSource] | None = None,
        notification_center: NotificationCenter | None = None,
        sender: Any = None,
        auto_start: bool = True,
    ) -> None:
        self._memory = memory
        self._path_source = path_source
        self._probe_factory = probe_factory
        self._probe: PathSource | None = None
        self._notifications = notification_center if notification_center is not None else NotificationCenter()
        self._sender = sender if sender is not None else self

        self._lock = threading.Lock()
        # Serializes emission against stop(); never held while persisting.
        self._emit_lock = threading.RLock()
        self._state: ConnectionState = DISCONNECTED
        self._established = False
        self._version = 0
        self._subscriptions: weakref.WeakSet[Subscription] = weakref.WeakSet()
        self._started = False
        self._stopped = False

        if auto_start:
            self.start()

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def read(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        return self.read().connected

    @property
    def interface_type(self) -> InterfaceType | None:
        return self.read().interface

    @property
    def is_established(self) -> bool:
        with self._lock:
            return self._established

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._started and not self._stopped

    @property
    def uses_fallback(self) -> bool:
        return self._probe_factory is not None

    @property
    def notification_center(self) -> NotificationCenter:
        return self._notifications

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def remembered_connection_state(self) -> bool:
        """Last persisted state, for use before any live report exists."""
        try:
            return self._memory.load()
        except Exception:
            _logger.debug("Connection memory load failed", exc_info=True)
            return False

    # ------------------------------------------------------------------
    # Stream API
    # ------------------------------------------------------------------

    def subscribe(self, loop: asyncio.AbstractEventLoop | None = None) -> Subscription:
        """Open a stream of accepted states.

        Once the store is established the current state is the first
        element. Before that, the stream stays silent until the first real
        event arrives. A stopped store yields an already-completed stream.
        """
        target_loop = loop if loop is not None else asyncio.get_running_loop()
        subscription = Subscription(target_loop, on_close=self._remove_subscription)
        with self._lock:
            if self._stopped:
                subscription._finish()
                return subscription
            self._subscriptions.add(subscription)
            if self._established:
                subscription._deliver(self._state, self._version)
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.discard(subscription)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(self, event: PathEvent) -> None:
        """Apply a raw event from the active source."""
        new_state = ConnectionState.from_event(event)

        with self._lock:
            if self._stopped:
                _logger.debug("Dropping %s event received after stop", event.source)
                return
            initial = not self._established
            if not initial and new_state.connected == self._state.connected:
                # Link-type changes are recorded silently; only online/offline
                # transitions are emitted.
                if new_state != self._state:
                    self._state = new_state
                    _logger.debug("Interface changed to %s without a connection change", new_state.interface_type)
                return
            self._established = True
            self._state = new_state
            self._version += 1
            version = self._version
            targets = list(self._subscriptions)

        if initial:
            _logger.info(
                "Initial connection state: %s",
                "connected" if new_state.connected else "disconnected",
            )
        else:
            _logger.info(
                "Connection status changed to: %s",
                "connected" if new_state.connected else "disconnected",
            )
        if new_state.connected:
            _logger.info(
                "Connection type: %s, expensive: %s",
                new_state.interface_type,
                event.is_expensive,
            )

        self._persist(new_state.connected)
        with self._emit_lock:
            with self._lock:
                if self._stopped:
                    _logger.debug("Store stopped while persisting; skipping emission")
                    return
            for subscription in targets:
                subscription._deliver(new_state, version)
            if not initial:
                self._notifications.post(
                    CONNECTION_STATE_DID_CHANGE,
                    self._sender,
                    {IS_CONNECTED_KEY: new_state.connected},
                )

    def _persist(self, connected: bool) -> None:
        try:
            self._memory.save(connected)
        except Exception:
            _logger.debug("Connection memory save failed", exc_info=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Attach to the active source. No-op when running or stopped."""
        with self._lock:
            if self._started or self._stopped:
                return
            self._started = True

        if self._probe_factory is not None:
            # The native source is never started here, so the probe is the
            # only writer.
            probe = self._probe_factory()
            with self._lock:
                if self._stopped:
                    return
                self._probe = probe
            _logger.debug("Starting connection monitoring with fallback probe")
            probe.start(self.ingest)
        else:
            _logger.debug("Starting connection monitoring")
            self._path_source.start(self.ingest)

    def stop(self) -> None:
        """Detach from all sources and complete every stream. Idempotent."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            started = self._started
            probe = self._probe
            self._probe = None
            subscriptions = list(self._subscriptions)
            self._subscriptions.clear()

        _logger.debug("Stopping connection monitoring")
        if started and self._probe_factory is None:
            try:
                self._path_source.cancel()
            except Exception:
                _logger.debug("Path source cancel failed", exc_info=True)
        if probe is not None:
            try:
                probe.cancel()
            except Exception:
                _logger.debug("Fallback probe cancel failed", exc_info=True)
        for subscription in subscriptions:
            subscription._finish()
        # Wait out an emission that passed its stop check before returning.
        with self._emit_lock:
            pass

    def __enter__(self) -> StateStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    async def __aenter__(self) -> StateStore:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await asyncio.get_running_loop().run_in_executor(None, self.stop)
