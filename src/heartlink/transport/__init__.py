from heartlink.transport.base import Connection as Connection
from heartlink.transport.base import Transport as Transport
from heartlink.transport.errors import TransportError as TransportError
