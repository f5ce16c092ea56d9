"""Side-channel broadcast for legacy/UI observers.

This is deliberately separate from the subscription stream: it only carries
*changes* (never the initial detection) and can be bound to one asyncio loop
so every observer runs on the same, UI-affine context.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    name: str
    sender: Any = None
    user_info: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ObserverToken:
    """Handle returned by :meth:`NotificationCenter.add_observer`."""

    name: str
    token_id: int


@dataclass(frozen=True)
class _Observer:
    token: ObserverToken
    callback: Callable[[Notification], None]
    sender: Any = None


class NotificationCenter:
    """Name-keyed pub/sub.

    Parameters
    ----------
    loop : asyncio.AbstractEventLoop or None
        Loop on which observers are invoked. ``None`` delivers
        synchronously on the posting thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._observers: dict[str, list[_Observer]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    @property
    def loop(self) -> asyncio.AbstractEventLoop | None:
        return self._loop

    def add_observer(
        self,
        name: str,
        callback: Callable[[Notification], None],
        *,
        sender: Any = None,
    ) -> ObserverToken:
        """Register *callback* for *name*, optionally only for posts from *sender*."""
        token = ObserverToken(name=name, token_id=next(self._ids))
        with self._lock:
            self._observers.setdefault(name, []).append(_Observer(token=token, callback=callback, sender=sender))
        return token

    def remove_observer(self, token: ObserverToken) -> None:
        with self._lock:
            observers = self._observers.get(token.name)
            if not observers:
                return
            self._observers[token.name] = [obs for obs in observers if obs.token != token]
            if not self._observers[token.name]:
                self._observers.pop(token.name, None)

    def post(self, name: str, sender: Any = None, user_info: Mapping[str, Any] | None = None) -> None:
        notification = Notification(
            name=name,
            sender=sender,
            user_info=MappingProxyType(dict(user_info or {})),
        )
        with self._lock:
            targets = [
                obs for obs in self._observers.get(name, []) if obs.sender is None or obs.sender is sender
            ]
        if not targets:
            return

        loop = self._loop
        if loop is None:
            self._dispatch(targets, notification)
            return
        try:
            loop.call_soon_threadsafe(self._dispatch, targets, notification)
        except RuntimeError:
            _logger.debug("Notification loop closed; dropping %s", name)

    @staticmethod
    def _dispatch(targets: list[_Observer], notification: Notification) -> None:
        for observer in targets:
            try:
                observer.callback(notification)
            except Exception:
                _logger.warning("Observer for %s failed", notification.name, exc_info=True)
