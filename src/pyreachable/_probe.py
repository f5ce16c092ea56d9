"""Polling fallback for hosts whose native path reporting is unreliable.

The probe runs its own asyncio loop on a daemon thread, so it works the same
whether or not the caller has a loop, and it never touches the caller's
loop. Every check result becomes a synthetic :class:`PathEvent`.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Awaitable, Callable

import aiohttp

from pyreachable._constants import (
    DEFAULT_PROBE_INTERVAL,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_PROBE_URL,
    USER_AGENT,
)
from pyreachable._path_source import PathHandler
from pyreachable.exceptions import ProbeError
from pyreachable.models.path import EventSource, InterfaceType, PathEvent

_logger = logging.getLogger(__name__)

Checker = Callable[[aiohttp.ClientSession], Awaitable[bool]]


async def check_reachability(
    session: aiohttp.ClientSession,
    url: str = DEFAULT_PROBE_URL,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
) -> bool:
    """Send a ``HEAD`` to *url* and report whether it answered 200.

    Timeouts and transport errors mean offline; nothing is raised.
    """
    try:
        async with session.head(
            url,
            timeout=aiohttp.ClientTimeout(total=timeout),
            allow_redirects=False,
            headers={"cache-control": "no-cache", "user-agent": USER_AGENT},
        ) as resp:
            if resp.status != 200:
                raise ProbeError(f"HTTP {resp.status} from {url}", url=url, status_code=resp.status)
            return True
    except ProbeError as exc:
        # Captive portals and proxies answer, but not with the expected page.
        _logger.debug("Reachability check rejected: %s", exc)
    except TimeoutError:
        _logger.debug("Reachability check timed out after %ss url=%s", timeout, url)
    except (aiohttp.ClientError, OSError) as exc:
        _logger.debug("Reachability check failed url=%s: %s", url, exc)
    return False


def probe_event(connected: bool) -> PathEvent:
    """Synthesize a path report from a check result.

    The probe cannot tell link types apart, so a connected host is always
    reported as WiFi.
    """
    interfaces = frozenset({InterfaceType.WIFI}) if connected else frozenset()
    return PathEvent.from_status(connected, interfaces, source=EventSource.PROBE)


class FallbackProbe:
    """Periodic reachability check implementing the path-source protocol.

    The first check runs immediately on :meth:`start`; later checks follow
    every ``interval`` seconds. :meth:`cancel` interrupts an in-flight
    check and joins the probe thread before returning.
    """

    def __init__(
        self,
        *,
        url: str = DEFAULT_PROBE_URL,
        interval: float = DEFAULT_PROBE_INTERVAL,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        checker: Checker | None = None,
    ) -> None:
        self._url = url
        self._interval = interval
        self._timeout = timeout
        self._checker = checker
        self._handler: PathHandler | None = None
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None
        self._cancelled = False
        self._lock = threading.Lock()
        self.check_count = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._cancelled

    def start(self, handler: PathHandler) -> None:
        with self._lock:
            if self._thread is not None or self._cancelled:
                return
            self._handler = handler
            self._thread = threading.Thread(target=self._thread_main, name="pyreachable-probe", daemon=True)
            self._thread.start()
        _logger.debug("Fallback probe started url=%s interval=%s", self._url, self._interval)

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            self._handler = None
            loop = self._loop
            task = self._task
            thread = self._thread
        if loop is not None and task is not None:
            try:
                loop.call_soon_threadsafe(task.cancel)
            except RuntimeError:
                _logger.debug("Probe loop already closed")
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        _logger.debug("Fallback probe cancelled")

    def _thread_main(self) -> None:
        with contextlib.suppress(asyncio.CancelledError):
            asyncio.run(self._main())

    async def _main(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._loop = asyncio.get_running_loop()
            self._task = asyncio.current_task()

        async with aiohttp.ClientSession() as session:
            while True:
                connected = await self._check(session)
                self.check_count += 1
                self._emit(probe_event(connected))
                await asyncio.sleep(self._interval)

    async def _check(self, session: aiohttp.ClientSession) -> bool:
        if self._checker is None:
            return await check_reachability(session, self._url, self._timeout)
        try:
            return bool(await asyncio.wait_for(self._checker(session), self._timeout))
        except TimeoutError:
            _logger.debug("Custom reachability check timed out")
        except Exception:
            _logger.debug("Custom reachability check failed", exc_info=True)
        return False

    def _emit(self, event: PathEvent) -> None:
        with self._lock:
            handler = self._handler
        if handler is None:
            return
        try:
            handler(event)
        except Exception:
            _logger.warning("Probe handler failed", exc_info=True)
