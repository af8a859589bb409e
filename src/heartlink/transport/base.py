"""The boundary between the session state machine and a BLE stack."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Sequence

from heartlink.peripheral.models import Peripheral

ScanCallback = Callable[[Exception | None, Peripheral | None], None]
NotificationCallback = Callable[[Exception | None, bytes | None], None]
DisconnectCallback = Callable[[str], None]


@dataclass(eq=False)
class Connection:
    """Opaque handle for an established link.

    ``native`` holds whatever object the backend needs (a ``BleakClient`` for
    the bleak transport). Handles compare by identity.
    """

    peripheral_id: str
    native: Any = field(default=None, repr=False)


class Transport(Protocol):
    """Async BLE operations used by the session state machine.

    Failures raise :class:`heartlink.transport.errors.TransportError`
    subclasses. Callbacks may be invoked from any thread.
    """

    async def start_scan(
        self, service_filter: Sequence[str] | None, callback: ScanCallback
    ) -> None:
        ...

    async def stop_scan(self) -> None:
        ...

    async def connect(self, peripheral_id: str) -> Connection:
        ...

    async def discover_services(self, connection: Connection) -> None:
        ...

    async def subscribe_notifications(
        self,
        connection: Connection,
        service: str,
        characteristic: str,
        callback: NotificationCallback,
    ) -> None:
        ...

    async def unsubscribe_notifications(
        self, connection: Connection, service: str, characteristic: str
    ) -> None:
        ...

    async def read_characteristic(
        self, connection: Connection, service: str, characteristic: str
    ) -> bytes:
        ...

    async def disconnect(self, connection: Connection) -> None:
        ...

    def on_unsolicited_disconnect(
        self, connection: Connection, callback: DisconnectCallback
    ) -> None:
        ...
