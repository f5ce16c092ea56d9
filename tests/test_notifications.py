from __future__ import annotations

import asyncio
import threading

import pytest

from pyreachable.notifications import Notification, NotificationCenter


def test_post_delivers_synchronously_without_loop() -> None:
    center = NotificationCenter()
    received: list[Notification] = []
    center.add_observer("changed", received.append)

    center.post("changed", sender="a", user_info={"is_connected": True})
    center.post("other", sender="a")

    assert len(received) == 1
    assert received[0].sender == "a"
    assert received[0].user_info["is_connected"] is True


def test_sender_filter_and_removal() -> None:
    center = NotificationCenter()
    sender = object()
    filtered: list[Notification] = []
    everything: list[Notification] = []
    token = center.add_observer("changed", filtered.append, sender=sender)
    center.add_observer("changed", everything.append)

    center.post("changed", sender=object())
    center.post("changed", sender=sender)
    center.remove_observer(token)
    center.remove_observer(token)
    center.post("changed", sender=sender)

    assert len(filtered) == 1
    assert len(everything) == 3


def test_failing_observer_does_not_stop_others() -> None:
    center = NotificationCenter()
    received: list[Notification] = []

    def broken(_notification: Notification) -> None:
        raise RuntimeError("observer bug")

    center.add_observer("changed", broken)
    center.add_observer("changed", received.append)

    center.post("changed")

    assert len(received) == 1


@pytest.mark.asyncio
async def test_loop_bound_center_delivers_on_loop_thread() -> None:
    loop = asyncio.get_running_loop()
    center = NotificationCenter(loop=loop)
    delivered = asyncio.Event()
    threads: list[threading.Thread] = []

    def on_change(_notification: Notification) -> None:
        threads.append(threading.current_thread())
        delivered.set()

    center.add_observer("changed", on_change)
    worker = threading.Thread(target=center.post, args=("changed",))
    worker.start()
    worker.join()

    await asyncio.wait_for(delivered.wait(), 1.0)
    assert threads == [threading.current_thread()]
