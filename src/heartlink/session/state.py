"""Session value types."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import StrEnum

from heartlink.peripheral.models import Peripheral
from heartlink.utilities.env import Configuration


class SessionState(StrEnum):
    IDLE = "idle"
    SCANNING = "scanning"
    CONNECTING = "connecting"
    DISCOVERING = "discovering"
    SUBSCRIBED = "subscribed"
    DISCONNECTING = "disconnecting"
    RECONNECTING = "reconnecting"


class ErrorKind(StrEnum):
    PERMISSION_DENIED = "permission_denied"
    SCAN_FAILURE = "scan_failure"
    CONNECT_FAILURE = "connect_failure"
    DISCOVERY_FAILURE = "discovery_failure"
    NOTIFICATION_FAILURE = "notification_failure"
    DISCONNECT_FAILURE = "disconnect_failure"


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    kind: ErrorKind
    message: str
    occurred_at: datetime

    @classmethod
    def now(cls, kind: ErrorKind, message: str) -> ErrorRecord:
        return cls(kind=kind, message=message, occurred_at=datetime.now(timezone.utc))


@dataclass(frozen=True, slots=True)
class SessionPolicy:
    """Tunables that shape transitions."""

    reconnect_limit: int | None = None

    @classmethod
    def from_configuration(cls) -> SessionPolicy:
        return cls(reconnect_limit=Configuration.reconnect_limit())


@dataclass(frozen=True, slots=True)
class Session:
    """Everything the presentation layer may render about the link.

    ``scan_generation`` and ``connection_generation`` tag timers and
    connections so events that outlive them can be recognised and dropped.
    ``reconnect_count`` counts automatic reconnects since the last
    user-initiated connect.
    """

    state: SessionState = SessionState.IDLE
    peripheral: Peripheral | None = None
    heart_rate: int | None = None
    battery_level: int | None = None
    last_error: ErrorRecord | None = None
    scan_generation: int = 0
    connection_generation: int = 0
    reconnect_count: int = 0

    @property
    def is_active(self) -> bool:
        """Whether a link is being set up, is up, or is being torn down."""

        return self.state not in (SessionState.IDLE, SessionState.SCANNING)

    def evolve(self, **changes: object) -> Session:
        return replace(self, **changes)  # type: ignore[arg-type]

    def reset(self) -> Session:
        """Back to IDLE, keeping the error slot and generation counters."""

        return Session(
            last_error=self.last_error,
            scan_generation=self.scan_generation,
            connection_generation=self.connection_generation,
        )
