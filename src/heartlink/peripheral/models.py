from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Peripheral:
    """A BLE peripheral seen during a scan.

    ``id`` is the stable identity (a MAC address, or a platform UUID on
    macOS). ``display_name`` is advertised data and must never be used as a
    key.
    """

    id: str
    display_name: str | None = None
    rssi: int | None = None

    @property
    def label(self) -> str:
        return self.display_name or self.id
