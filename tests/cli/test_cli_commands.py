from __future__ import annotations

import pytest
from typer.testing import CliRunner

from heartlink.cli import runtime
from heartlink.cli.runtime import build_transport, describe
from heartlink.main import app
from heartlink.peripheral.permissions import StaticPermissionGate
from heartlink.session.machine import MonitorSnapshot
from heartlink.session.state import ErrorKind, ErrorRecord, Session, SessionState
from heartlink.transport.simulated import SimulatedTransport

runner = CliRunner()


@pytest.fixture(autouse=True)
def short_scan_window(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HEARTLINK_SCAN_TIMEOUT_SECONDS", "0.05")
    yield


class TestCli:
    """Group CLI tests that run the commands end to end over the simulated transport."""

    def test_scan_lists_named_devices(self) -> None:
        """Verify the scan command prints every named simulated strap and skips the unnamed one."""
        result = runner.invoke(app, ["scan", "--simulate"])

        assert result.exit_code == 0, result.output
        assert "Found 2 device(s)." in result.output
        assert "Polar H10 SIM (SIM:HR:01)" in result.output
        assert "SIM:XX:03" not in result.output

    def test_scan_reports_denied_permission(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Confirm a denied Bluetooth permission makes the scan command exit non-zero."""
        monkeypatch.setenv("HEARTLINK_TRANSPORT", "simulated")
        monkeypatch.setattr(
            runtime, "build_permission_gate", lambda transport: StaticPermissionGate(granted=False)
        )

        result = runner.invoke(app, ["scan"])

        assert result.exit_code == 1

    def test_monitor_connects_and_prints_readings(self) -> None:
        """Ensure the monitor command subscribes to the requested strap and prints the readings header on exit."""
        result = runner.invoke(
            app, ["monitor", "SIM:HR:01", "--simulate", "--duration", "0"]
        )

        assert result.exit_code == 0, result.output
        assert "[subscribed] Polar H10 SIM" in result.output
        assert "Recent readings:" in result.output

    def test_monitor_fails_for_unknown_device(self) -> None:
        result = runner.invoke(
            app, ["monitor", "SIM:HR:99", "--simulate", "--duration", "0"]
        )

        assert result.exit_code == 1


def test_environment_selects_the_simulated_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HEARTLINK_TRANSPORT", "simulated")

    assert isinstance(build_transport(simulate=False), SimulatedTransport)


def test_describe_includes_the_error() -> None:
    session = Session(
        state=SessionState.IDLE,
        last_error=ErrorRecord.now(ErrorKind.CONNECT_FAILURE, "Connection failed: busy"),
    )

    line = describe(MonitorSnapshot(devices=(), session=session, readings=()))

    assert line == "[idle] error: Connection failed: busy"
