"""Inputs to and outputs from the session transition function.

Events are everything the state machine reacts to: user commands and
transport callbacks. Effects are the side effects a transition asks the runner
to perform; the runner turns their outcomes back into events.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from heartlink.peripheral.models import Peripheral


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- user commands ----------


@dataclass(frozen=True, slots=True)
class StartScanRequested:
    pass


@dataclass(frozen=True, slots=True)
class ConnectRequested:
    peripheral_id: str
    # Filled in from the device registry by the consumer, just before the
    # transition runs.
    peripheral: Peripheral | None = None


@dataclass(frozen=True, slots=True)
class DisconnectRequested:
    pass


@dataclass(frozen=True, slots=True)
class DismissErrorRequested:
    pass


# ---------- transport and timer outcomes ----------


@dataclass(frozen=True, slots=True)
class PermissionResolved:
    granted: bool


@dataclass(frozen=True, slots=True)
class ScanResult:
    scan_generation: int
    peripheral: Peripheral


@dataclass(frozen=True, slots=True)
class ScanFailed:
    scan_generation: int
    reason: str


@dataclass(frozen=True, slots=True)
class ScanTimedOut:
    scan_generation: int


@dataclass(frozen=True, slots=True)
class Connected:
    connection_generation: int


@dataclass(frozen=True, slots=True)
class ConnectFailed:
    connection_generation: int
    reason: str


@dataclass(frozen=True, slots=True)
class ServicesDiscovered:
    connection_generation: int


@dataclass(frozen=True, slots=True)
class DiscoveryFailed:
    connection_generation: int
    reason: str


@dataclass(frozen=True, slots=True)
class NotificationsEnabled:
    connection_generation: int


@dataclass(frozen=True, slots=True)
class NotificationReceived:
    connection_generation: int
    data: bytes
    received_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True, slots=True)
class NotificationFailed:
    connection_generation: int
    reason: str


@dataclass(frozen=True, slots=True)
class BatteryLevelRead:
    connection_generation: int
    data: bytes


@dataclass(frozen=True, slots=True)
class UnsolicitedDisconnect:
    connection_generation: int
    peripheral_id: str


@dataclass(frozen=True, slots=True)
class ReconnectDue:
    connection_generation: int


@dataclass(frozen=True, slots=True)
class DisconnectCompleted:
    connection_generation: int


@dataclass(frozen=True, slots=True)
class DisconnectFailed:
    connection_generation: int
    reason: str


@dataclass(frozen=True, slots=True)
class EffectAborted:
    """An effect raised something other than a transport error."""

    reason: str


Event = (
    StartScanRequested
    | ConnectRequested
    | DisconnectRequested
    | DismissErrorRequested
    | PermissionResolved
    | ScanResult
    | ScanFailed
    | ScanTimedOut
    | Connected
    | ConnectFailed
    | ServicesDiscovered
    | DiscoveryFailed
    | NotificationsEnabled
    | NotificationReceived
    | NotificationFailed
    | BatteryLevelRead
    | UnsolicitedDisconnect
    | ReconnectDue
    | DisconnectCompleted
    | DisconnectFailed
    | EffectAborted
)


# ---------- effects ----------


@dataclass(frozen=True, slots=True)
class CheckPermission:
    pass


@dataclass(frozen=True, slots=True)
class ResetRegistry:
    pass


@dataclass(frozen=True, slots=True)
class ObservePeripheral:
    peripheral: Peripheral


@dataclass(frozen=True, slots=True)
class ForgetPeripheral:
    peripheral_id: str


@dataclass(frozen=True, slots=True)
class StartScan:
    scan_generation: int


@dataclass(frozen=True, slots=True)
class StopScan:
    pass


@dataclass(frozen=True, slots=True)
class ArmScanTimer:
    scan_generation: int


@dataclass(frozen=True, slots=True)
class CancelScanTimer:
    pass


@dataclass(frozen=True, slots=True)
class Connect:
    peripheral_id: str
    connection_generation: int


@dataclass(frozen=True, slots=True)
class DiscoverServices:
    connection_generation: int


@dataclass(frozen=True, slots=True)
class SubscribeHeartRate:
    connection_generation: int


@dataclass(frozen=True, slots=True)
class ReadBatteryLevel:
    connection_generation: int


@dataclass(frozen=True, slots=True)
class UnsubscribeHeartRate:
    connection_generation: int


@dataclass(frozen=True, slots=True)
class Disconnect:
    connection_generation: int


@dataclass(frozen=True, slots=True)
class ReleaseConnection:
    """Forget a link the peripheral already dropped."""

    connection_generation: int


@dataclass(frozen=True, slots=True)
class ScheduleReconnect:
    connection_generation: int


@dataclass(frozen=True, slots=True)
class AppendReading:
    entry: str


@dataclass(frozen=True, slots=True)
class ClearReadings:
    pass


@dataclass(frozen=True, slots=True)
class ReportDecodeFailure:
    reason: str
    data: bytes


Effect = (
    CheckPermission
    | ResetRegistry
    | ObservePeripheral
    | ForgetPeripheral
    | StartScan
    | StopScan
    | ArmScanTimer
    | CancelScanTimer
    | Connect
    | DiscoverServices
    | SubscribeHeartRate
    | ReadBatteryLevel
    | UnsubscribeHeartRate
    | Disconnect
    | ReleaseConnection
    | ScheduleReconnect
    | AppendReading
    | ClearReadings
    | ReportDecodeFailure
)
