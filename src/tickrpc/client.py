""" The caller side, assembled. A :class:`Client` owns the outgoing
    connection, the pending-call table and a dispatcher that settles pending
    calls as responses arrive. Every call returns a
    :class:`concurrent.futures.Future` that completes exactly once: with the
    result, or with a :class:`tickrpc.errors.Failure`.
"""

from __future__ import annotations

import concurrent.futures
import itertools
import logging
import threading
from typing import Any, Dict, List, Optional

from . import config
from . import errors
from .dispatch import Dispatcher
from .pending import PendingCallTable
from .protocol import codec, fields
from .transport import Connection, ConnectionState, Initiator

logger = logging.getLogger(__name__)


class Client:
    """ Issue calls to the bridge listening on *address* and *port*. The
        *timeout* is the default number of seconds to wait for any one
        response. Defaults come from *settings*, which in turn defaults to
        :func:`tickrpc.config.load`. A pre-built *connection* may be supplied
        instead, in which case the address and port are ignored.

        Nothing is connected until :func:`connect` is called; a call issued
        while disconnected fails immediately with
        :class:`tickrpc.errors.Disconnected`.
    """

    id_min = 1
    id_max = 0xFFFFFFFF

    def __init__(self, address: Optional[str] = None, port: Optional[int] = None, timeout: Optional[float] = None,
                 settings: Optional[config.Settings] = None, connection: Optional[Connection] = None):

        if settings is None:
            settings = config.load()

        self.settings = settings

        if timeout is None:
            timeout = settings.timeout

        if connection is None:
            if address is None:
                address = settings.address
            if port is None:
                port = settings.port

            connection = Initiator(address, port, connect_timeout=settings.connect_timeout,
                                   heartbeat=settings.heartbeat, heartbeat_timeout=settings.heartbeat_timeout)

        self.connection = connection
        self.pending = PendingCallTable(timeout)
        self.dispatcher = Dispatcher(connection, pending=self.pending)

        self.id_lock = threading.Lock()
        self._id_reset()

        connection.subscribe(self._state_changed)

    def __enter__(self) -> 'Client':
        self.connect()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def connected(self) -> bool:
        return self.connection.connected

    def _id_next(self) -> str:
        """ Return the next correlation id. Ids are hexadecimal strings, and
            wrap around well before anything could still be outstanding.
        """

        with self.id_lock:
            call_id = next(self.call_id)

            if call_id >= self.id_max:
                self._id_reset()

        return '%x' % call_id

    def _id_reset(self) -> None:
        self.call_id = itertools.count(self.id_min)

    def _state_changed(self, state: ConnectionState, previous: ConnectionState) -> None:

        # Runs while the connection holds its transition lock: every call
        # issued on the lost session is failed before a new connection can
        # be made.

        if previous == ConnectionState.CONNECTED and state != ConnectionState.CONNECTED:
            count = self.pending.abandon_all('connection lost')
            if count:
                logger.warning("%d outstanding call(s) failed, connection lost", count)

    def connect(self, timeout: Optional[float] = None) -> None:
        """ Connect to the bridge, waiting up to *timeout* seconds. Raises
            :class:`tickrpc.transport.TransportError` on failure.
        """

        self.connection.connect(timeout)

    def call(self, method: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> concurrent.futures.Future:
        """ Send a request for *method* with *params*, and return a future
            for its outcome. The future fails with
            :class:`tickrpc.errors.Timeout` if no response arrives within
            *timeout* seconds, the client default if None.

            Raises :class:`TypeError` if *params* contains something that is
            not a structured value; nothing is sent in that case.
        """

        call_id = self._id_next()

        # Encode first, so that an unencodable request never becomes a
        # pending call.

        raw = codec.encode_request(call_id, method, params)
        future = self.pending.register(call_id, timeout)

        logger.debug("call %s: %s", call_id, method)

        if not self.connection.send(raw):
            self.pending.settle(call_id, error=errors.Disconnected('not connected', method))

        return future

    def invoke(self, name: str, arguments: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> concurrent.futures.Future:
        """ Invoke the capability *name* with *arguments* on the bridge. """

        params = {fields.INVOKE_NAME: name}
        if arguments is not None:
            params[fields.INVOKE_ARGUMENTS] = arguments

        return self.call(fields.INVOKE, params, timeout)

    def request(self, method: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> Any:
        """ Blocking form of :func:`call`: return the result, or raise the
            :class:`tickrpc.errors.Failure` the call completed with.
        """

        future = self.call(method, params, timeout)
        return future.result()

    def initialize(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        """ Return the bridge's server metadata. """

        return self.request(fields.INITIALIZE, None, timeout)

    def ping(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self.request(fields.PING, None, timeout)

    def list_capabilities(self, timeout: Optional[float] = None) -> List[str]:
        """ Return the names of every capability the bridge offers. """

        listing = self.request(fields.LIST, None, timeout)
        return [entry['name'] for entry in listing['tools']]

    def close(self) -> None:
        """ Fail every outstanding call with
            :class:`tickrpc.errors.ShuttingDown` and disconnect.
        """

        count = self.pending.abandon_all('client is shutting down', errors.ShuttingDown)
        if count:
            logger.info("%d outstanding call(s) abandoned on close", count)

        self.connection.close()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
