"""Connection state snapshot."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, model_validator

from pyreachable.models.path import InterfaceType, PathEvent, classify


class ConnectionState(BaseModel):
    """Immutable connectivity snapshot.

    ``interface_type`` is always ``NONE`` while disconnected; validation
    rejects any other combination so a torn state cannot be built.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    connected: bool
    interface_type: InterfaceType = InterfaceType.NONE

    @model_validator(mode="after")
    def _check_interface_invariant(self) -> ConnectionState:
        if not self.connected and self.interface_type is not InterfaceType.NONE:
            raise ValueError(f"disconnected state cannot carry interface {self.interface_type}")
        return self

    @classmethod
    def from_event(cls, event: PathEvent) -> ConnectionState:
        return cls(connected=event.is_satisfied, interface_type=classify(event))

    @property
    def interface(self) -> InterfaceType | None:
        """Interface type, or ``None`` when there is none."""
        if self.interface_type is InterfaceType.NONE:
            return None
        return self.interface_type


DISCONNECTED = ConnectionState(connected=False)
