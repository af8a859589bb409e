from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from heartlink.peripheral.permissions import (PermissionStatus,
                                              PlatformPermissionGate,
                                              StaticPermissionGate)
from heartlink.utilities.env import Configuration, PermissionOverride


def _gate(tmp_path: Path, system: str, override=PermissionOverride.AUTO):
    return PlatformPermissionGate(
        system=lambda: system,
        sysfs_root=tmp_path / "bluetooth",
        override=lambda: override,
    )


class TestPlatformPermissionGate:
    """Group permission gate tests so a scan is never started on a host without a radio."""

    def test_linux_without_adapter_is_denied(self, tmp_path: Path) -> None:
        """Verify a Linux host with no BlueZ adapter reports DENIED instead of failing mid-scan."""
        status = asyncio.run(_gate(tmp_path, "Linux").check())

        assert status is PermissionStatus.DENIED

    def test_linux_with_adapter_is_granted(self, tmp_path: Path) -> None:
        """Confirm an adapter entry under sysfs is enough to allow scanning."""
        (tmp_path / "bluetooth" / "hci0").mkdir(parents=True)

        status = asyncio.run(_gate(tmp_path, "Linux").check())

        assert status is PermissionStatus.GRANTED

    @pytest.mark.parametrize("system", ["Darwin", "Windows"])
    def test_desktop_platforms_defer_to_the_os_prompt(
        self, tmp_path: Path, system: str
    ) -> None:
        """Ensure platforms that prompt on first use are reported as granted."""
        assert asyncio.run(_gate(tmp_path, system).check()) is PermissionStatus.GRANTED

    @pytest.mark.parametrize(
        ("override", "expected"),
        [
            (PermissionOverride.GRANT, PermissionStatus.GRANTED),
            (PermissionOverride.DENY, PermissionStatus.DENIED),
        ],
    )
    def test_override_wins(
        self,
        tmp_path: Path,
        override: PermissionOverride,
        expected: PermissionStatus,
    ) -> None:
        """Check an explicit override short-circuits platform detection so operators can force either outcome."""
        gate = _gate(tmp_path, "Linux", override)

        assert asyncio.run(gate.check()) is expected

    def test_override_is_read_from_the_environment(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Verify HEARTLINK_BLE_PERMISSION feeds the default override hook."""
        monkeypatch.setenv("HEARTLINK_BLE_PERMISSION", "deny")

        gate = PlatformPermissionGate(override=Configuration.permission_override)

        assert asyncio.run(gate.check()) is PermissionStatus.DENIED


def test_static_gate_counts_checks() -> None:
    gate = StaticPermissionGate(granted=False)

    assert asyncio.run(gate.check()) is PermissionStatus.DENIED
    assert gate.checks == 1
