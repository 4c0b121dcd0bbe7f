""" The execution side of the connection: a ZeroMQ ROUTER socket listening on
    a fixed local endpoint, serving at most one peer at a time.

    A peer becomes current by sending HELLO. A HELLO from any other peer
    replaces the current one outright (the last connection wins). The old
    peer is sent BYE and its session ends before a new session begins.
    Nothing is ever stacked, and messages from anyone other than the
    current peer are dropped.
"""

from __future__ import annotations

import collections
import logging
from typing import Deque, Optional

import zmq

from . import framing
from .base import ConnectionState, TransportPortError
from .loop import SocketLoop, zmq_context

logger = logging.getLogger(__name__)


class Acceptor(SocketLoop):
    """ Listen for a single peer on *address* and *port*. If *port* is None
        the first available port in the default range is used; the chosen
        port is available as :attr:`port` once :func:`open` returns.
    """

    minimum_port = 10079
    maximum_port = 13679
    role = 'acceptor'

    def __init__(self, address: str = '127.0.0.1', port: Optional[int] = None, **kwargs):
        SocketLoop.__init__(self, address, port, **kwargs)

        self._peer: Optional[bytes] = None
        self._peer_fd: Optional[int] = None
        self._accepted: Deque[int] = collections.deque()

    @property
    def client_count(self) -> int:
        return 1 if self._peer is not None else 0

    def open(self) -> None:
        """ Bind the listening socket and start the I/O thread. """

        if self.running:
            return

        socket = zmq_context.socket(zmq.ROUTER)
        self._configure(socket)

        if self.port is None:
            self.port = self._bind_any(socket)
        else:
            try:
                socket.bind(self.endpoint)
            except zmq.ZMQError as e:
                socket.close()
                raise TransportPortError(f"port already in use: {self.port}") from e

        logger.info("listening on %s", self.endpoint)
        self._start(socket, zmq.EVENT_ACCEPTED | zmq.EVENT_DISCONNECTED)

    def _bind_any(self, socket: zmq.Socket) -> int:
        for port in range(self.minimum_port, self.maximum_port + 1):
            try:
                socket.bind(f"tcp://{self.address}:{port}")
            except zmq.ZMQError:
                # Assume this port is in use.
                continue
            return port

        socket.close()
        raise TransportPortError(f"no ports available in range {self.minimum_port}:{self.maximum_port}")

    def send(self, raw: bytes, session: Optional[int] = None) -> bool:

        if self._state != ConnectionState.CONNECTED:
            return False

        if session is None:
            session = self._session
        elif session != self._session:
            logger.debug("session %d is over, response dropped", session)
            return False

        return self._enqueue((framing.MSG, session, raw))

    def close(self) -> None:
        """ Say goodbye to the current peer, if any, and stop listening. """

        if self._peer is not None:
            self._enqueue((framing.BYE, None, b''))

        self._enqueue(None)
        self._join()

    # --- I/O thread ---

    def _emit(self, kind: bytes, session: Optional[int], body: bytes) -> None:

        peer = self._peer
        if peer is None:
            return

        # The session is re-checked here, on the I/O thread: the peer may
        # have been replaced since the message was queued.

        if session is not None and session != self._session:
            logger.debug("session %d is over, response dropped", session)
            return

        self._send_frames((peer,) + framing.to_frames(kind, body))

    def _incoming(self, parts) -> None:

        if len(parts) < 2:
            logger.warning("%s: runt message with %d frame(s) dropped", self.endpoint, len(parts))
            return

        identity = parts[0]

        try:
            kind, body = framing.from_frames(parts[1:])
        except framing.FramingError as e:
            logger.warning("%s: %s", self.endpoint, e)
            return

        if kind == framing.HELLO:
            self._adopt(identity)
            return

        if identity != self._peer:
            logger.debug("%s: message from a peer that is not current, dropped", self.endpoint)
            return

        if kind == framing.BYE:
            self._release('peer said goodbye')
            return

        self._deliver(body, self._session)

    def _adopt(self, identity: bytes) -> None:

        if identity == self._peer:
            return

        if self._peer is not None:
            logger.info("%s: new peer replaces the current one", self.endpoint)
            self._farewell(self._peer)
            self._release('replaced by a new peer')

        self._peer = identity

        # Connections say hello in the order they were accepted; if the
        # monitor has not reported this one yet, the next accept claims it.

        if self._accepted:
            self._peer_fd = self._accepted.popleft()
        else:
            self._peer_fd = None

        self._transition(ConnectionState.CONNECTED)

    def _farewell(self, identity: bytes) -> None:
        if self._socket is not None:
            self._send_frames((identity,) + framing.to_frames(framing.BYE))

    def _release(self, reason: str) -> None:
        self._peer = None
        self._peer_fd = None
        self._lost(reason)

    def _monitor_event(self, event) -> None:

        code = event['event']
        fd = event['value']

        if code == zmq.EVENT_ACCEPTED:
            if self._peer is not None and self._peer_fd is None:
                self._peer_fd = fd
            else:
                self._accepted.append(fd)

        elif code == zmq.EVENT_DISCONNECTED:
            if fd in self._accepted:
                self._accepted.remove(fd)

            if self._peer is not None and fd == self._peer_fd:
                self._release('peer connection lost')

    def _teardown(self) -> None:
        self._peer = None
        self._peer_fd = None
        self._accepted.clear()
        SocketLoop._teardown(self)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
