"""Environment configuration helpers."""

from heartlink.utilities.env.config import Configuration as Configuration
from heartlink.utilities.env.enums import \
    PermissionOverride as PermissionOverride
from heartlink.utilities.env.enums import TransportBackend as TransportBackend
