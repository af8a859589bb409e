"""Deduplicated view of the peripherals discovered during a scan window."""

from __future__ import annotations

from typing import Iterator

from heartlink.peripheral.models import Peripheral
from heartlink.utilities.logging import get_logger

logger = get_logger(__name__)


class DeviceRegistry:
    """Tracks named peripherals by ``id``.

    Repeated advertisements for a known ``id`` are ignored so the device list
    does not flicker while a scan is running; the first sighting wins.
    """

    def __init__(self) -> None:
        self._devices: dict[str, Peripheral] = {}

    def reset(self) -> None:
        self._devices.clear()

    def observe(self, peripheral: Peripheral) -> bool:
        """Record ``peripheral`` if it is named and not yet known.

        Returns ``True`` when a new entry was added.
        """

        if not peripheral.display_name:
            return False
        if peripheral.id in self._devices:
            return False
        self._devices[peripheral.id] = peripheral
        logger.debug(
            "Discovered %s (%s) rssi=%s",
            peripheral.display_name,
            peripheral.id,
            peripheral.rssi,
        )
        return True

    def discard(self, peripheral_id: str) -> Peripheral | None:
        return self._devices.pop(peripheral_id, None)

    def get(self, peripheral_id: str) -> Peripheral | None:
        return self._devices.get(peripheral_id)

    def list(self) -> tuple[Peripheral, ...]:
        """Snapshot of the registry in discovery order."""

        return tuple(self._devices.values())

    def __contains__(self, peripheral_id: object) -> bool:
        return peripheral_id in self._devices

    def __iter__(self) -> Iterator[Peripheral]:
        return iter(self.list())

    def __len__(self) -> int:
        return len(self._devices)
