"""GATT identifiers for the services the monitor talks to."""

from bleak.uuids import normalize_uuid_str

# https://www.bluetooth.com/specifications/assigned-numbers/
HEART_RATE_SERVICE = normalize_uuid_str("180D")
HEART_RATE_MEASUREMENT = normalize_uuid_str("2A37")
BATTERY_SERVICE = normalize_uuid_str("180F")
BATTERY_LEVEL = normalize_uuid_str("2A19")
