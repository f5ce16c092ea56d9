"""Data models for path events and connection state."""

from pyreachable.models.path import (
    INTERFACE_PRIORITY,
    EventSource,
    InterfaceType,
    PathEvent,
    PathStatus,
    classify,
)
from pyreachable.models.state import DISCONNECTED, ConnectionState

__all__ = [
    "DISCONNECTED",
    "INTERFACE_PRIORITY",
    "ConnectionState",
    "EventSource",
    "InterfaceType",
    "PathEvent",
    "PathStatus",
    "classify",
]
