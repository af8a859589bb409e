class TransportError(Exception):
    """Base class for failures reported by a BLE transport."""


class ScanError(TransportError):
    pass


class ConnectError(TransportError):
    pass


class DiscoveryError(TransportError):
    pass


class CharacteristicError(TransportError):
    """A read, subscribe or unsubscribe on a characteristic failed."""


class DisconnectError(TransportError):
    pass
