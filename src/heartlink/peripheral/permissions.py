"""Capability checks that gate the start of a scan."""

from __future__ import annotations

import platform
from enum import StrEnum
from pathlib import Path
from typing import Callable, Protocol

from heartlink.utilities.env import Configuration, PermissionOverride
from heartlink.utilities.logging import get_logger

logger = get_logger(__name__)

BLUETOOTH_SYSFS = Path("/sys/class/bluetooth")


class PermissionStatus(StrEnum):
    GRANTED = "granted"
    DENIED = "denied"


class PermissionGate(Protocol):
    async def check(self) -> PermissionStatus:
        ...


class StaticPermissionGate:
    """Answers every check with a fixed outcome."""

    def __init__(self, granted: bool = True) -> None:
        self.granted = granted
        self.checks = 0

    async def check(self) -> PermissionStatus:
        self.checks += 1
        return PermissionStatus.GRANTED if self.granted else PermissionStatus.DENIED


class PlatformPermissionGate:
    """Checks that the host can drive a BLE radio at all.

    Desktop platforms prompt for Bluetooth access on first use, so macOS and
    Windows are reported as granted. On Linux the scan needs a BlueZ adapter,
    which shows up under ``/sys/class/bluetooth``.
    """

    def __init__(
        self,
        *,
        system: Callable[[], str] = platform.system,
        sysfs_root: Path = BLUETOOTH_SYSFS,
        override: Callable[[], PermissionOverride] = Configuration.permission_override,
    ) -> None:
        self._system = system
        self._sysfs_root = sysfs_root
        self._override = override

    async def check(self) -> PermissionStatus:
        override = self._override()
        if override is PermissionOverride.DENY:
            return PermissionStatus.DENIED
        if override is PermissionOverride.GRANT:
            return PermissionStatus.GRANTED

        if self._system() != "Linux":
            return PermissionStatus.GRANTED

        adapters = (
            sorted(p.name for p in self._sysfs_root.iterdir())
            if self._sysfs_root.is_dir()
            else []
        )
        if not adapters:
            logger.warning("No Bluetooth adapter found under %s", self._sysfs_root)
            return PermissionStatus.DENIED
        logger.debug("Bluetooth adapters available: %s", ", ".join(adapters))
        return PermissionStatus.GRANTED
