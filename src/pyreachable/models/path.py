"""Raw path events reported by a path source or the fallback probe.

All event producers (native interface sampling, the fallback probe,
manual/test sources) convert their observations into :class:`PathEvent`.
Only the state store turns them into a :class:`ConnectionState`.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InterfaceType(StrEnum):
    """Link type carrying the current connection."""

    WIFI = "wifi"
    CELLULAR = "cellular"
    WIRED_ETHERNET = "wired_ethernet"
    LOOPBACK = "loopback"
    NONE = "none"


class PathStatus(StrEnum):
    SATISFIED = "satisfied"
    UNSATISFIED = "unsatisfied"
    REQUIRES_CONNECTION = "requires_connection"


class EventSource(StrEnum):
    PATH = "path"
    PROBE = "probe"
    MANUAL = "manual"


# Classification order when several interfaces are in use at once.
INTERFACE_PRIORITY: tuple[InterfaceType, ...] = (
    InterfaceType.WIFI,
    InterfaceType.CELLULAR,
    InterfaceType.WIRED_ETHERNET,
    InterfaceType.LOOPBACK,
)


class PathEvent(BaseModel):
    """A single reachability report."""

    model_config = ConfigDict(frozen=True)

    status: PathStatus
    interfaces: frozenset[InterfaceType] = Field(default_factory=frozenset)
    source: EventSource = EventSource.PATH
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("interfaces")
    @classmethod
    def _drop_none_tag(cls, value: frozenset[InterfaceType]) -> frozenset[InterfaceType]:
        return frozenset(tag for tag in value if tag is not InterfaceType.NONE)

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @classmethod
    def from_status(
        cls,
        satisfied: bool,
        interfaces: frozenset[InterfaceType] | set[InterfaceType] = frozenset(),
        *,
        source: EventSource = EventSource.MANUAL,
    ) -> PathEvent:
        """Shorthand for building an event from a boolean status."""
        status = PathStatus.SATISFIED if satisfied else PathStatus.UNSATISFIED
        return cls(status=status, interfaces=frozenset(interfaces), source=source)

    @property
    def is_satisfied(self) -> bool:
        return self.status is PathStatus.SATISFIED

    @property
    def is_expensive(self) -> bool:
        """Whether the path runs over a metered (cellular) link."""
        return self.is_satisfied and InterfaceType.CELLULAR in self.interfaces

    def uses_interface_type(self, interface_type: InterfaceType) -> bool:
        return interface_type in self.interfaces


def classify(event: PathEvent) -> InterfaceType:
    """Pick the interface type reported for *event*.

    ``NONE`` unless the path is satisfied; otherwise the first tag present
    in :data:`INTERFACE_PRIORITY`.
    """
    if not event.is_satisfied:
        return InterfaceType.NONE
    for candidate in INTERFACE_PRIORITY:
        if event.uses_interface_type(candidate):
            return candidate
    return InterfaceType.NONE
