"""pyreachable - network reachability observer with persisted state."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyreachable")
except PackageNotFoundError:
    __version__ = "0+local"
from pyreachable._constants import CONNECTION_STATE_DID_CHANGE, IS_CONNECTED_KEY
from pyreachable._path_source import (
    ManualPathSource,
    PathSource,
    PsutilPathSource,
    classify_interface_name,
    is_unreliable_platform,
)
from pyreachable._probe import FallbackProbe, check_reachability
from pyreachable.config import FallbackMode, ReachableConfig
from pyreachable.connection import Connectable, Connection, LiveConnection, MockConnection
from pyreachable.exceptions import (
    ConnectionMemoryError,
    ProbeError,
    ReachableConfigError,
    ReachableError,
)
from pyreachable.memory import ConnectionMemory, DefaultConnectionMemory, InMemoryConnectionMemory
from pyreachable.models import (
    ConnectionState,
    EventSource,
    InterfaceType,
    PathEvent,
    PathStatus,
    classify,
)
from pyreachable.notifications import Notification, NotificationCenter, ObserverToken
from pyreachable.state.store import StateStore, Subscription

__all__ = [
    "__version__",
    "CONNECTION_STATE_DID_CHANGE",
    "IS_CONNECTED_KEY",
    "Connectable",
    "Connection",
    "ConnectionMemory",
    "ConnectionMemoryError",
    "ConnectionState",
    "DefaultConnectionMemory",
    "EventSource",
    "FallbackMode",
    "FallbackProbe",
    "InMemoryConnectionMemory",
    "InterfaceType",
    "LiveConnection",
    "ManualPathSource",
    "MockConnection",
    "Notification",
    "NotificationCenter",
    "ObserverToken",
    "PathEvent",
    "PathSource",
    "PathStatus",
    "ProbeError",
    "PsutilPathSource",
    "ReachableConfig",
    "ReachableConfigError",
    "ReachableError",
    "StateStore",
    "Subscription",
    "check_reachability",
    "classify",
    "classify_interface_name",
    "is_unreliable_platform",
]
