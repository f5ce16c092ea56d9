from __future__ import annotations

import asyncio
import socket
import threading
from collections.abc import AsyncIterator, Awaitable, Callable

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web

from pyreachable._probe import FallbackProbe, check_reachability, probe_event
from pyreachable.models.path import EventSource, InterfaceType, PathEvent
from pyreachable.models.state import ConnectionState

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


async def _serve(handler: Handler) -> tuple[web.AppRunner, str]:
    app = web.Application()
    app.router.add_get("/hotspot-detect.html", handler)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    host, port = runner.addresses[0][:2]
    return runner, f"http://{host}:{port}/hotspot-detect.html"


@pytest_asyncio.fixture
async def http_session() -> AsyncIterator[aiohttp.ClientSession]:
    async with aiohttp.ClientSession() as session:
        yield session


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


@pytest.mark.asyncio
async def test_check_reachability_ok_on_200(http_session: aiohttp.ClientSession) -> None:
    async def ok(_request: web.Request) -> web.Response:
        return web.Response(text="Success")

    runner, url = await _serve(ok)
    try:
        assert await check_reachability(http_session, url, timeout=2.0) is True
    finally:
        await runner.cleanup()


@pytest.mark.asyncio
async def test_check_reachability_offline_on_other_status(http_session: aiohttp.ClientSession) -> None:
    async def portal(_request: web.Request) -> web.Response:
        return web.Response(status=302, headers={"Location": "http://login.example/"})

    runner, url = await _serve(portal)
    try:
        assert await check_reachability(http_session, url, timeout=2.0) is False
    finally:
        await runner.cleanup()


@pytest.mark.asyncio
async def test_check_reachability_offline_on_timeout(http_session: aiohttp.ClientSession) -> None:
    async def slow(_request: web.Request) -> web.Response:
        await asyncio.sleep(1.0)
        return web.Response(text="late")

    runner, url = await _serve(slow)
    try:
        assert await check_reachability(http_session, url, timeout=0.1) is False
    finally:
        await runner.cleanup()


@pytest.mark.asyncio
async def test_check_reachability_offline_on_refused_connection(http_session: aiohttp.ClientSession) -> None:
    url = f"http://127.0.0.1:{_unused_port()}/hotspot-detect.html"
    assert await check_reachability(http_session, url, timeout=1.0) is False


def test_probe_event_degrades_classification_to_wifi() -> None:
    online = probe_event(True)
    offline = probe_event(False)

    assert online.source is EventSource.PROBE
    assert online.interfaces == frozenset({InterfaceType.WIFI})
    assert ConnectionState.from_event(offline) == ConnectionState(connected=False)


class _Collector:
    def __init__(self, wanted: int = 1) -> None:
        self.events: list[PathEvent] = []
        self._wanted = wanted
        self.done = threading.Event()
        self._lock = threading.Lock()

    def __call__(self, event: PathEvent) -> None:
        with self._lock:
            self.events.append(event)
            if len(self.events) >= self._wanted:
                self.done.set()


def test_probe_checks_immediately_on_start() -> None:
    async def online(_session: aiohttp.ClientSession) -> bool:
        return True

    collector = _Collector()
    probe = FallbackProbe(interval=60.0, timeout=1.0, checker=online)
    probe.start(collector)
    try:
        assert collector.done.wait(5.0)
    finally:
        probe.cancel()

    assert ConnectionState.from_event(collector.events[0]) == ConnectionState(
        connected=True, interface_type=InterfaceType.WIFI
    )


@pytest.mark.parametrize("failure", ["raise", "timeout"])
def test_probe_failure_reports_offline(failure: str) -> None:
    async def broken(_session: aiohttp.ClientSession) -> bool:
        if failure == "raise":
            raise aiohttp.ClientConnectionError("no route")
        await asyncio.sleep(5.0)
        return True

    collector = _Collector()
    probe = FallbackProbe(interval=60.0, timeout=0.1, checker=broken)
    probe.start(collector)
    try:
        assert collector.done.wait(5.0)
    finally:
        probe.cancel()

    state = ConnectionState.from_event(collector.events[0])
    assert state.connected is False
    assert state.interface_type is InterfaceType.NONE


def test_probe_repeats_on_interval_and_stops_on_cancel() -> None:
    results = iter([True, False, True])

    async def flapping(_session: aiohttp.ClientSession) -> bool:
        return next(results, True)

    collector = _Collector(wanted=3)
    probe = FallbackProbe(interval=0.01, timeout=1.0, checker=flapping)
    probe.start(collector)
    try:
        assert collector.done.wait(5.0)
    finally:
        probe.cancel()

    assert [event.is_satisfied for event in collector.events[:3]] == [True, False, True]
    assert probe.is_running is False
    count = len(collector.events)
    threading.Event().wait(0.05)
    assert len(collector.events) == count


def test_probe_cancel_interrupts_in_flight_check() -> None:
    entered = threading.Event()

    async def hanging(_session: aiohttp.ClientSession) -> bool:
        entered.set()
        await asyncio.sleep(30.0)
        return True

    collector = _Collector()
    probe = FallbackProbe(interval=60.0, timeout=60.0, checker=hanging)
    probe.start(collector)
    assert entered.wait(5.0)

    probe.cancel()
    probe.cancel()

    assert probe.is_running is False
    assert collector.events == []


def test_cancel_before_start_prevents_start() -> None:
    probe = FallbackProbe(interval=60.0)
    probe.cancel()

    probe.start(_Collector())

    assert probe.is_running is False
