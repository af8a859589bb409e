"""Transport backed by bleak, the cross-platform asyncio BLE library."""

from __future__ import annotations

import asyncio
from typing import Sequence

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from heartlink.peripheral.gatt import HEART_RATE_SERVICE
from heartlink.peripheral.models import Peripheral
from heartlink.transport.base import (Connection, DisconnectCallback,
                                      NotificationCallback, ScanCallback)
from heartlink.transport.errors import (CharacteristicError, ConnectError,
                                        DisconnectError, DiscoveryError,
                                        ScanError)
from heartlink.utilities.logging import get_logger

# bleak raises its own BleakError alongside OS level failures from the backend.
_BLE_FAILURES = (BleakError, OSError, asyncio.TimeoutError)


class BleakTransport:
    """Drive a single BLE radio through bleak.

    Devices seen during a scan are remembered so ``connect`` can hand bleak the
    full :class:`BLEDevice` rather than a bare address; on macOS an address
    alone triggers a second, implicit scan.
    """

    def __init__(self) -> None:
        self._logger = get_logger(f"{__name__}.{type(self).__name__}")
        self._scanner: BleakScanner | None = None
        self._seen: dict[str, BLEDevice] = {}
        self._listeners: dict[Connection, DisconnectCallback] = {}
        self._closing: set[Connection] = set()

    async def start_scan(
        self, service_filter: Sequence[str] | None, callback: ScanCallback
    ) -> None:
        if self._scanner is not None:
            raise ScanError("scan already running")
        self._seen.clear()

        def on_detection(device: BLEDevice, advertisement: AdvertisementData) -> None:
            self._seen[device.address] = device
            callback(
                None,
                Peripheral(
                    id=device.address,
                    display_name=advertisement.local_name or device.name,
                    rssi=advertisement.rssi,
                ),
            )

        scanner = BleakScanner(
            detection_callback=on_detection,
            service_uuids=list(service_filter) if service_filter else None,
        )
        try:
            await scanner.start()
        except _BLE_FAILURES as exc:
            raise ScanError(str(exc) or type(exc).__name__) from exc
        self._scanner = scanner
        self._logger.debug("Scan started (filter=%s)", service_filter)

    async def stop_scan(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except _BLE_FAILURES as exc:
            raise ScanError(str(exc) or type(exc).__name__) from exc
        self._logger.debug("Scan stopped")

    async def connect(self, peripheral_id: str) -> Connection:
        target: BLEDevice | str = self._seen.get(peripheral_id, peripheral_id)
        connection = Connection(peripheral_id=peripheral_id)

        def on_disconnect(_client: BleakClient) -> None:
            if connection in self._closing:
                return
            listener = self._listeners.pop(connection, None)
            if listener is not None:
                listener(peripheral_id)

        client = BleakClient(target, disconnected_callback=on_disconnect)
        connection.native = client
        try:
            await client.connect()
        except _BLE_FAILURES as exc:
            raise ConnectError(str(exc) or type(exc).__name__) from exc
        self._logger.info("Connected to %s", peripheral_id)
        return connection

    async def discover_services(self, connection: Connection) -> None:
        # bleak resolves the GATT table as part of connect().
        client = self._client(connection)
        try:
            services = client.services
        except BleakError as exc:
            raise DiscoveryError(str(exc)) from exc
        if services.get_service(HEART_RATE_SERVICE) is None:
            raise DiscoveryError(
                f"{connection.peripheral_id} does not expose the heart rate service"
            )

    async def subscribe_notifications(
        self,
        connection: Connection,
        service: str,
        characteristic: str,
        callback: NotificationCallback,
    ) -> None:
        client = self._client(connection)

        def on_notify(_sender: BleakGATTCharacteristic, data: bytearray) -> None:
            callback(None, bytes(data))

        try:
            await client.start_notify(characteristic, on_notify)
        except _BLE_FAILURES as exc:
            raise CharacteristicError(f"subscribe {characteristic}: {exc}") from exc

    async def unsubscribe_notifications(
        self, connection: Connection, service: str, characteristic: str
    ) -> None:
        client = self._client(connection)
        if not client.is_connected:
            return
        try:
            await client.stop_notify(characteristic)
        except _BLE_FAILURES as exc:
            raise CharacteristicError(f"unsubscribe {characteristic}: {exc}") from exc

    async def read_characteristic(
        self, connection: Connection, service: str, characteristic: str
    ) -> bytes:
        client = self._client(connection)
        try:
            return bytes(await client.read_gatt_char(characteristic))
        except _BLE_FAILURES as exc:
            raise CharacteristicError(f"read {characteristic}: {exc}") from exc

    async def disconnect(self, connection: Connection) -> None:
        client = self._client(connection)
        self._closing.add(connection)
        self._listeners.pop(connection, None)
        try:
            await client.disconnect()
        except _BLE_FAILURES as exc:
            raise DisconnectError(str(exc) or type(exc).__name__) from exc
        finally:
            self._closing.discard(connection)
        self._logger.info("Disconnected from %s", connection.peripheral_id)

    def on_unsolicited_disconnect(
        self, connection: Connection, callback: DisconnectCallback
    ) -> None:
        self._listeners[connection] = callback

    @staticmethod
    def _client(connection: Connection) -> BleakClient:
        if not isinstance(connection.native, BleakClient):
            raise TypeError(f"{connection!r} was not created by BleakTransport")
        return connection.native
