"""In-memory transport for demos and tests.

Peripherals are advertised from a fixed list, frames are pushed explicitly or
by a background heartbeat, and link drops are triggered on demand.
"""

from __future__ import annotations

import asyncio
import math
import time
from collections import deque
from dataclasses import dataclass, field
from collections.abc import Callable, Iterator, Sequence

from heartlink.peripheral.codec import (HeartRateMeasurement,
                                        encode_battery_level,
                                        encode_heart_rate)
from heartlink.peripheral.gatt import (BATTERY_LEVEL, BATTERY_SERVICE,
                                       HEART_RATE_MEASUREMENT,
                                       HEART_RATE_SERVICE)
from heartlink.peripheral.models import Peripheral
from heartlink.transport.base import (Connection, DisconnectCallback,
                                      NotificationCallback, ScanCallback)
from heartlink.transport.errors import (CharacteristicError, ConnectError,
                                        DisconnectError, DiscoveryError,
                                        ScanError)
from heartlink.utilities.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SimulatedDevice:
    peripheral: Peripheral
    battery_level: int | None = 87
    has_heart_rate_service: bool = True


@dataclass
class _Link:
    connection: Connection
    subscriptions: dict[str, NotificationCallback] = field(default_factory=dict)


def resting_heart_rate(
    base: int = 68, swing: int = 8, period_seconds: float = 30.0
) -> Callable[[], int]:
    """A slowly oscillating bpm source for the heartbeat task."""

    start = time.monotonic()

    def _bpm() -> int:
        phase = (time.monotonic() - start) / period_seconds
        return round(base + swing * math.sin(2 * math.pi * phase))

    return _bpm


DEMO_DEVICES = (
    SimulatedDevice(Peripheral(id="SIM:HR:01", display_name="Polar H10 SIM", rssi=-48)),
    SimulatedDevice(
        Peripheral(id="SIM:HR:02", display_name="Strap Without Battery", rssi=-71),
        battery_level=None,
    ),
    # Unnamed advertisers never make it into the device list.
    SimulatedDevice(Peripheral(id="SIM:XX:03", display_name=None, rssi=-90)),
)


class SimulatedTransport:
    """Transport double that never touches a radio.

    ``calls`` records every operation in order, which lets callers assert on
    the exact sequence the session state machine issued.
    """

    def __init__(self, devices: Sequence[SimulatedDevice] = ()) -> None:
        self.devices: dict[str, SimulatedDevice] = {
            device.peripheral.id: device for device in devices
        }
        self.calls: list[tuple[str, ...]] = []
        self.scanning = False
        self.connect_failures: deque[str] = deque()
        self.scan_failure: str | None = None
        self.discovery_failure: str | None = None
        self.disconnect_failure: str | None = None
        self.subscribe_failure: str | None = None
        # Some stacks report every link loss, including ones the application asked for.
        self.echo_requested_disconnects = False
        self._scan_callback: ScanCallback | None = None
        self._links: dict[str, _Link] = {}
        self._disconnect_listeners: dict[Connection, DisconnectCallback] = {}

    # ---------- scripting helpers ----------

    def fail_next_connect(self, reason: str = "connection refused") -> None:
        self.connect_failures.append(reason)

    def active_connection(self, peripheral_id: str) -> Connection | None:
        link = self._links.get(peripheral_id)
        return link.connection if link else None

    def advertise(self, peripheral: Peripheral) -> None:
        """Deliver an advertisement to the running scan, if any."""

        if self._scan_callback is not None:
            self._scan_callback(None, peripheral)

    def fail_scan(self, reason: str) -> None:
        if self._scan_callback is not None:
            self._scan_callback(ScanError(reason), None)

    def push_frame(self, peripheral_id: str, data: bytes) -> None:
        link = self._links.get(peripheral_id)
        if link is None:
            raise KeyError(f"{peripheral_id} is not connected")
        callback = link.subscriptions.get(HEART_RATE_MEASUREMENT)
        if callback is not None:
            callback(None, data)

    def push_measurement(self, peripheral_id: str, bpm: int) -> None:
        self.push_frame(peripheral_id, encode_heart_rate(HeartRateMeasurement(bpm=bpm)))

    def fail_notifications(self, peripheral_id: str, reason: str) -> None:
        link = self._links.get(peripheral_id)
        if link is None:
            raise KeyError(f"{peripheral_id} is not connected")
        callback = link.subscriptions.get(HEART_RATE_MEASUREMENT)
        if callback is not None:
            callback(CharacteristicError(reason), None)

    def drop_link(self, peripheral_id: str) -> None:
        """Simulate the peripheral going out of range."""

        link = self._links.pop(peripheral_id, None)
        if link is None:
            return
        self.calls.append(("drop", peripheral_id))
        self._release_listener(link.connection)

    async def heartbeat(
        self,
        peripheral_id: str,
        bpm_source: Callable[[], int] | Iterator[int],
        interval_seconds: float = 1.0,
    ) -> None:
        """Push one measurement per interval while the link is up."""

        next_bpm = bpm_source.__next__ if isinstance(bpm_source, Iterator) else bpm_source
        while True:
            await asyncio.sleep(interval_seconds)
            if peripheral_id not in self._links:
                continue
            try:
                bpm = next_bpm()
            except StopIteration:
                return
            self.push_measurement(peripheral_id, bpm)

    # ---------- transport protocol ----------

    async def start_scan(
        self, service_filter: Sequence[str] | None, callback: ScanCallback
    ) -> None:
        self.calls.append(("start_scan",))
        if self.scan_failure is not None:
            raise ScanError(self.scan_failure)
        self.scanning = True
        self._scan_callback = callback
        for device in self.devices.values():
            if service_filter and not device.has_heart_rate_service:
                continue
            callback(None, device.peripheral)

    async def stop_scan(self) -> None:
        self.calls.append(("stop_scan",))
        self.scanning = False
        self._scan_callback = None

    async def connect(self, peripheral_id: str) -> Connection:
        self.calls.append(("connect", peripheral_id))
        await asyncio.sleep(0)
        if self.scanning:
            raise ConnectError("cannot connect while scanning")
        if self.connect_failures:
            raise ConnectError(self.connect_failures.popleft())
        if peripheral_id not in self.devices:
            raise ConnectError(f"{peripheral_id} not in range")
        connection = Connection(peripheral_id=peripheral_id)
        self._links[peripheral_id] = _Link(connection=connection)
        logger.debug("Simulated link up for %s", peripheral_id)
        return connection

    async def discover_services(self, connection: Connection) -> None:
        self.calls.append(("discover_services", connection.peripheral_id))
        if self.discovery_failure is not None:
            raise DiscoveryError(self.discovery_failure)
        if not self.devices[connection.peripheral_id].has_heart_rate_service:
            raise DiscoveryError("heart rate service not found")

    async def subscribe_notifications(
        self,
        connection: Connection,
        service: str,
        characteristic: str,
        callback: NotificationCallback,
    ) -> None:
        self.calls.append(("subscribe", connection.peripheral_id, characteristic))
        link = self._link(connection)
        if self.subscribe_failure is not None:
            raise CharacteristicError(self.subscribe_failure)
        if service != HEART_RATE_SERVICE:
            raise CharacteristicError(f"{service} does not notify")
        link.subscriptions[characteristic] = callback

    async def unsubscribe_notifications(
        self, connection: Connection, service: str, characteristic: str
    ) -> None:
        self.calls.append(("unsubscribe", connection.peripheral_id, characteristic))
        link = self._links.get(connection.peripheral_id)
        if link is not None:
            link.subscriptions.pop(characteristic, None)

    async def read_characteristic(
        self, connection: Connection, service: str, characteristic: str
    ) -> bytes:
        self.calls.append(("read", connection.peripheral_id, characteristic))
        self._link(connection)
        device = self.devices[connection.peripheral_id]
        if (service, characteristic) != (BATTERY_SERVICE, BATTERY_LEVEL):
            raise CharacteristicError(f"{characteristic} is not readable")
        if device.battery_level is None:
            raise CharacteristicError("battery service not available")
        return encode_battery_level(device.battery_level)

    async def disconnect(self, connection: Connection) -> None:
        self.calls.append(("disconnect", connection.peripheral_id))
        self._links.pop(connection.peripheral_id, None)
        listener = self._disconnect_listeners.pop(connection, None)
        if self.echo_requested_disconnects and listener is not None:
            listener(connection.peripheral_id)
        if self.disconnect_failure is not None:
            raise DisconnectError(self.disconnect_failure)

    def on_unsolicited_disconnect(
        self, connection: Connection, callback: DisconnectCallback
    ) -> None:
        self._link(connection)
        self._disconnect_listeners[connection] = callback

    def _release_listener(self, connection: Connection) -> None:
        listener = self._disconnect_listeners.pop(connection, None)
        if listener is not None:
            listener(connection.peripheral_id)

    def _link(self, connection: Connection) -> _Link:
        link = self._links.get(connection.peripheral_id)
        if link is None or link.connection is not connection:
            raise CharacteristicError(f"{connection.peripheral_id} is not connected")
        return link
