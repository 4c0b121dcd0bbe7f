"""Connection management: one persistent, message-framed ZeroMQ connection
between a caller and the execution side."""

from .base import (
    Connection,
    ConnectionState,
    TransportError,
    TransportTimeout,
    TransportConnectionError,
    TransportPortError,
)

from . import framing
from .acceptor import Acceptor
from .initiator import Initiator

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
