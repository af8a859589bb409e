import os

from heartlink.utilities.env.enums import PermissionOverride, TransportBackend
from heartlink.utilities.env.parsing import _env_flag


class TransportConfiguration:
    @classmethod
    def transport_backend(cls) -> TransportBackend:
        backend = os.environ.get("HEARTLINK_TRANSPORT", "bleak").strip().lower()
        try:
            return TransportBackend(backend)
        except ValueError as exc:
            raise ValueError(
                "HEARTLINK_TRANSPORT must be 'bleak' or 'simulated'"
            ) from exc

    @classmethod
    def scan_service_filter(cls) -> bool:
        """Restrict scans to peripherals advertising the Heart Rate service."""

        return _env_flag("HEARTLINK_SCAN_SERVICE_FILTER")

    @classmethod
    def permission_override(cls) -> PermissionOverride:
        value = os.environ.get("HEARTLINK_BLE_PERMISSION", "auto").strip().lower()
        try:
            return PermissionOverride(value)
        except ValueError as exc:
            raise ValueError(
                "HEARTLINK_BLE_PERMISSION must be 'auto', 'grant' or 'deny'"
            ) from exc
