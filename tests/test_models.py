"""Tests for path event and connection state models."""

from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import ValidationError

from pyreachable.models import (
    DISCONNECTED,
    ConnectionState,
    EventSource,
    InterfaceType,
    PathEvent,
    PathStatus,
    classify,
)


class TestConnectionState:
    def test_disconnected_with_interface_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ConnectionState(connected=False, interface_type=InterfaceType.WIFI)

    def test_connected_without_known_interface_allowed(self) -> None:
        state = ConnectionState(connected=True)
        assert state.interface is None

    def test_frozen(self) -> None:
        with pytest.raises(ValidationError):
            DISCONNECTED.connected = True  # type: ignore[misc]

    def test_from_event(self) -> None:
        event = PathEvent.from_status(True, {InterfaceType.CELLULAR})
        state = ConnectionState.from_event(event)
        assert state == ConnectionState(connected=True, interface_type=InterfaceType.CELLULAR)
        assert state.interface is InterfaceType.CELLULAR


class TestClassify:
    @pytest.mark.parametrize(
        ("tags", "expected"),
        [
            ({InterfaceType.WIFI, InterfaceType.CELLULAR}, InterfaceType.WIFI),
            ({InterfaceType.CELLULAR, InterfaceType.WIRED_ETHERNET}, InterfaceType.CELLULAR),
            ({InterfaceType.WIRED_ETHERNET, InterfaceType.LOOPBACK}, InterfaceType.WIRED_ETHERNET),
            ({InterfaceType.LOOPBACK}, InterfaceType.LOOPBACK),
            (set(), InterfaceType.NONE),
        ],
    )
    def test_priority(self, tags: set[InterfaceType], expected: InterfaceType) -> None:
        assert classify(PathEvent.from_status(True, tags)) is expected

    @pytest.mark.parametrize("status", [PathStatus.UNSATISFIED, PathStatus.REQUIRES_CONNECTION])
    def test_unsatisfied_is_none(self, status: PathStatus) -> None:
        event = PathEvent(status=status, interfaces=frozenset({InterfaceType.WIFI}))
        assert classify(event) is InterfaceType.NONE


class TestPathEvent:
    def test_none_tag_dropped(self) -> None:
        event = PathEvent.from_status(True, {InterfaceType.NONE, InterfaceType.WIFI})
        assert event.interfaces == frozenset({InterfaceType.WIFI})

    def test_parses_plain_values(self) -> None:
        event = PathEvent.model_validate(
            {"status": "satisfied", "interfaces": ["cellular"], "source": "probe", "observed_at": "2026-01-01T00:00:00"}
        )
        assert event.is_satisfied is True
        assert event.is_expensive is True
        assert event.source is EventSource.PROBE
        assert event.observed_at.tzinfo is not None

    def test_observed_at_defaults_to_now_utc(self) -> None:
        event = PathEvent(status=PathStatus.UNSATISFIED)
        assert isinstance(event.observed_at, datetime)
        assert event.observed_at.utcoffset() is not None
        assert event.is_expensive is False
