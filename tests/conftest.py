import os
import tempfile
from dataclasses import replace

# Loggers attach a rotating file handler on first use; keep those files out of $HOME.
os.environ.setdefault("HEARTLINK_LOG_DIR", tempfile.mkdtemp(prefix="heartlink-logs-"))

import pytest  # noqa: E402
from hypothesis import HealthCheck, settings  # noqa: E402

from heartlink.peripheral.permissions import StaticPermissionGate  # noqa: E402
from heartlink.session.machine import SessionStateMachine  # noqa: E402
from heartlink.session.readings import ReadingsLog  # noqa: E402
from heartlink.session.state import SessionPolicy  # noqa: E402
from heartlink.transport.simulated import (DEMO_DEVICES,  # noqa: E402
                                           SimulatedTransport)
from heartlink.utilities import logging_control  # noqa: E402

settings.register_profile(
    "default",
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
settings.load_profile("default")

HEARTLINK_ENV_VARS = (
    "HEARTLINK_SCAN_TIMEOUT_SECONDS",
    "HEARTLINK_READINGS_CAPACITY",
    "HEARTLINK_CONNECT_TIMEOUT_SECONDS",
    "HEARTLINK_RECONNECT_LIMIT",
    "HEARTLINK_SCAN_SERVICE_FILTER",
    "HEARTLINK_TRANSPORT",
    "HEARTLINK_BLE_PERMISSION",
    "HEARTLINK_LOG_RULES",
    "HEARTLINK_LOG_DEFAULT_INTERVAL",
    "HEARTLINK_LOG_TO_FILE",
)


@pytest.fixture(autouse=True)
def clean_heartlink_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop ambient HEARTLINK_* settings so every test starts from the defaults."""

    for name in HEARTLINK_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def reset_logging_controller_cache() -> None:
    logging_control.get_logging_controller.cache_clear()
    yield
    logging_control.get_logging_controller.cache_clear()


@pytest.fixture()
def transport() -> SimulatedTransport:
    return SimulatedTransport([replace(device) for device in DEMO_DEVICES])


@pytest.fixture()
def permission_gate() -> StaticPermissionGate:
    return StaticPermissionGate(granted=True)


@pytest.fixture()
def machine_factory(transport: SimulatedTransport, permission_gate: StaticPermissionGate):
    """Build a state machine over the simulated transport with test friendly timings."""

    def _factory(
        *,
        scan_timeout_seconds: float = 60.0,
        reconnect_limit: int | None = None,
        capacity: int = 10,
        connect_timeout_seconds: float | None = None,
    ) -> SessionStateMachine:
        return SessionStateMachine(
            transport,
            permission_gate,
            readings=ReadingsLog(capacity),
            policy=SessionPolicy(reconnect_limit=reconnect_limit),
            scan_timeout_seconds=scan_timeout_seconds,
            connect_timeout_seconds=connect_timeout_seconds,
            scan_service_filter=False,
        )

    return _factory
