""" The caller side of the connection: a ZeroMQ DEALER socket connecting to
    a known endpoint. ZeroMQ's own reconnection is disabled; a failed or lost
    connection is reported, and whether to try again is up to the caller.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Optional

import zmq

from . import framing
from .base import ConnectionState, TransportConnectionError, TransportTimeout
from .loop import SocketLoop, zmq_context

logger = logging.getLogger(__name__)

_events = zmq.EVENT_CONNECTED | zmq.EVENT_DISCONNECTED | zmq.EVENT_CLOSED | zmq.EVENT_CONNECT_RETRIED


class Initiator(SocketLoop):
    """ Connect to the single peer listening on *address* and *port*. The
        *connect_timeout* is the default number of seconds :func:`connect`
        waits for the connection to be established.
    """

    connect_timeout = 5.0
    role = 'initiator'

    def __init__(self, address: str, port: int, connect_timeout: Optional[float] = None, **kwargs):
        SocketLoop.__init__(self, address, port, **kwargs)

        if connect_timeout is not None:
            self.connect_timeout = float(connect_timeout)

        self.error: Optional[str] = None
        self._attempts = itertools.count(1)
        self._settled = threading.Event()

    @property
    def client_count(self) -> int:
        return 1 if self.connected else 0

    def connect(self, timeout: Optional[float] = None) -> None:
        """ Establish the connection, waiting up to *timeout* seconds for it
            to complete. This is a no-op if a connection is already
            established or underway. Raises :class:`TransportTimeout` or
            :class:`TransportConnectionError` if the attempt fails; there is
            no automatic retry.
        """

        if timeout is None:
            timeout = self.connect_timeout

        with self._transition_lock:
            if self._state != ConnectionState.DISCONNECTED:
                return

            # A previous I/O thread may still be on its way out.
            self._join()

            attempt = next(self._attempts)
            identity = f"tickrpc.Initiator.{id(self)}.{attempt}"

            socket = zmq_context.socket(zmq.DEALER)
            self._configure(socket)
            socket.setsockopt(zmq.RECONNECT_IVL, -1)
            socket.setsockopt(zmq.CONNECT_TIMEOUT, int(timeout * 1000))
            socket.identity = identity.encode()

            self.error = None
            settled = threading.Event()
            self._settled = settled

            self._transition(ConnectionState.CONNECTING)
            self._start(socket, _events, self.endpoint)

        if not settled.wait(timeout):
            self.disconnect()
            raise TransportTimeout(f"{self.endpoint}: no connection in {timeout:.2f} sec")

        if self._state != ConnectionState.CONNECTED:
            raise TransportConnectionError(f"{self.endpoint}: {self.error or 'connection failed'}")

    def disconnect(self) -> None:
        """ Say goodbye to the peer and tear down the connection. Safe to
            call in any state.
        """

        if self._enqueue((framing.BYE, None, b'')):
            self._enqueue(None)
        self._join()

    close = disconnect

    def send(self, raw: bytes, session: Optional[int] = None) -> bool:

        if self._state != ConnectionState.CONNECTED:
            return False

        if session is None:
            session = self._session
        elif session != self._session:
            return False

        return self._enqueue((framing.MSG, session, raw))

    # --- I/O thread ---

    def _emit(self, kind: bytes, session: Optional[int], body: bytes) -> None:

        if session is not None and session != self._session:
            return

        if kind == framing.MSG and self._state != ConnectionState.CONNECTED:
            return

        self._send_frames(framing.to_frames(kind, body))

    def _incoming(self, parts) -> None:

        try:
            kind, body = framing.from_frames(parts)
        except framing.FramingError as e:
            logger.warning("%s: %s", self.endpoint, e)
            return

        if kind == framing.MSG:
            self._deliver(body, self._session)
        elif kind == framing.BYE:
            self._fail('peer said goodbye')

    def _monitor_event(self, event) -> None:

        code = event['event']

        if code == zmq.EVENT_CONNECTED:
            if self._state == ConnectionState.CONNECTING:
                self._send_frames(framing.to_frames(framing.HELLO))
                self._transition(ConnectionState.CONNECTED)
                self._settled.set()

        elif code == zmq.EVENT_CONNECT_RETRIED:
            self._fail('connection refused')

        elif code in (zmq.EVENT_DISCONNECTED, zmq.EVENT_CLOSED):
            if self._state == ConnectionState.CONNECTED:
                self._fail('connection lost')
            else:
                self._fail('connection failed')

    def _fail(self, reason: str) -> None:
        """ End this connection; the I/O thread exits and tears down. """

        if self.error is None:
            self.error = reason
        self._stop = True

    def _lost(self, reason: str) -> None:
        SocketLoop._lost(self, self.error or reason)
        self._settled.set()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
