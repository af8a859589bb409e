from heartlink.utilities.env.session import SessionConfiguration
from heartlink.utilities.env.transport import TransportConfiguration


class Configuration(
    SessionConfiguration,
    TransportConfiguration,
):
    """Aggregate environment configuration helpers."""
