from __future__ import annotations

from typing import Callable

import pytest

from heartlink.session.state import SessionPolicy
from heartlink.utilities.env import (Configuration, PermissionOverride,
                                     TransportBackend)


class TestSessionConfiguration:
    """Group session configuration tests so defaults match the documented behaviour."""

    def test_defaults(self) -> None:
        """Verify the unconfigured defaults: a 10 second scan, ten readings, no connect timeout and unlimited reconnects."""
        assert Configuration.scan_timeout_seconds() == 10.0
        assert Configuration.readings_capacity() == 10
        assert Configuration.connect_timeout_seconds() is None
        assert Configuration.reconnect_limit() is None
        assert SessionPolicy.from_configuration() == SessionPolicy(reconnect_limit=None)

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEARTLINK_SCAN_TIMEOUT_SECONDS", "4.5")
        monkeypatch.setenv("HEARTLINK_READINGS_CAPACITY", "25")
        monkeypatch.setenv("HEARTLINK_CONNECT_TIMEOUT_SECONDS", "12")
        monkeypatch.setenv("HEARTLINK_RECONNECT_LIMIT", "3")

        assert Configuration.scan_timeout_seconds() == 4.5
        assert Configuration.readings_capacity() == 25
        assert Configuration.connect_timeout_seconds() == 12.0
        assert SessionPolicy.from_configuration().reconnect_limit == 3

    @pytest.mark.parametrize(
        ("env_var", "value", "getter"),
        [
            ("HEARTLINK_SCAN_TIMEOUT_SECONDS", "0", Configuration.scan_timeout_seconds),
            ("HEARTLINK_SCAN_TIMEOUT_SECONDS", "-1", Configuration.scan_timeout_seconds),
            ("HEARTLINK_READINGS_CAPACITY", "0", Configuration.readings_capacity),
            ("HEARTLINK_RECONNECT_LIMIT", "-1", Configuration.reconnect_limit),
        ],
    )
    def test_invalid_values_are_rejected(
        self,
        monkeypatch: pytest.MonkeyPatch,
        env_var: str,
        value: str,
        getter: Callable[[], object],
    ) -> None:
        """Ensure nonsensical tuning values fail loudly instead of producing a machine that never scans or keeps no readings."""
        monkeypatch.setenv(env_var, value)

        with pytest.raises(ValueError, match=env_var):
            getter()


class TestTransportConfiguration:
    """Group transport configuration tests."""

    def test_defaults(self) -> None:
        assert Configuration.transport_backend() is TransportBackend.BLEAK
        assert Configuration.scan_service_filter() is False
        assert Configuration.permission_override() is PermissionOverride.AUTO

    def test_overrides_are_case_insensitive(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEARTLINK_TRANSPORT", " Simulated ")
        monkeypatch.setenv("HEARTLINK_SCAN_SERVICE_FILTER", "yes")
        monkeypatch.setenv("HEARTLINK_BLE_PERMISSION", "DENY")

        assert Configuration.transport_backend() is TransportBackend.SIMULATED
        assert Configuration.scan_service_filter() is True
        assert Configuration.permission_override() is PermissionOverride.DENY

    def test_unknown_backend_is_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify a typo in the backend name is reported with the accepted values."""
        monkeypatch.setenv("HEARTLINK_TRANSPORT", "bluez")

        with pytest.raises(ValueError, match="bleak"):
            Configuration.transport_backend()
