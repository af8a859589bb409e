from enum import StrEnum


class TransportBackend(StrEnum):
    BLEAK = "bleak"
    SIMULATED = "simulated"


class PermissionOverride(StrEnum):
    AUTO = "auto"
    GRANT = "grant"
    DENY = "deny"
