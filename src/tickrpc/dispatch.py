""" The :class:`Dispatcher` sits between a connection and everything else:
    raw messages are decoded, requests are routed, and responses are matched
    to pending calls. The same class serves both sides of the bridge; the
    execution side supplies an executor and a registry, the caller side a
    pending-call table, and either side may supply all three.

    :func:`Dispatcher.on_message` runs on the connection's I/O thread and
    never blocks waiting for a handler: a request bound for the registry is
    queued on the executor, and its response is sent from a done-callback
    on the future, whichever thread that callback runs on.
"""

from __future__ import annotations

import concurrent.futures
import functools
import logging
import time
from typing import Any, Dict, Optional

from . import errors, json
from .executor import ThreadAffinityExecutor
from .pending import PendingCallTable
from .protocol import codec, fields
from .protocol.message import CorrelationId, DecodeError, Request, Response
from .protocol.value import InvalidValue
from .registry import CapabilityRegistry
from .transport.base import Connection

logger = logging.getLogger(__name__)


class Dispatcher:
    """ Decode, route, execute, encode, send. The *server_info* dictionary is
        returned as-is in response to ``initialize``.
    """

    def __init__(self, connection: Connection, executor: Optional[ThreadAffinityExecutor] = None,
                 registry: Optional[CapabilityRegistry] = None, pending: Optional[PendingCallTable] = None,
                 server_info: Optional[Dict[str, Any]] = None):

        self.connection = connection
        self.executor = executor
        self.registry = registry
        self.pending = pending
        self.server_info = server_info or {}

        if executor is not None and registry is None:
            self.registry = executor.registry

        connection.on_receive(self.on_message)

    def on_message(self, raw: bytes, session: Optional[int] = None) -> None:
        """ Handle one raw message that arrived on *session*. """

        decoded = codec.decode(raw)

        if isinstance(decoded, Request):
            self._on_request(decoded, session)
        elif isinstance(decoded, Response):
            self._on_response(decoded)
        else:
            self._on_decode_error(decoded, session)

    def _on_decode_error(self, decoded: DecodeError, session: Optional[int]) -> None:

        if decoded.id is None:
            logger.warning("undecodable message dropped: %s", decoded.reason)
            return

        logger.warning("undecodable message %r: %s", decoded.id, decoded.reason)
        self._respond(session, decoded.id, None, error=errors.ProtocolError(decoded.reason))

    def _on_response(self, response: Response) -> None:

        if self.pending is None:
            logger.warning("response %r dropped, no calls are issued from this side", response.id)
            return

        if response.id is None:
            logger.warning("uncorrelated error response dropped: %s", response.error.describe())
            return

        self.pending.settle(response.id, response.result, response.error)

    def _on_request(self, request: Request, session: Optional[int]) -> None:

        logger.debug("request %r: %s", request.id, request.method)
        method = request.method

        if method == fields.INITIALIZE:
            self._respond(session, request.id, method, result=self.server_info)
        elif method == fields.LIST:
            self._respond(session, request.id, method, result=self._list())
        elif method == fields.PING:
            self._respond(session, request.id, method, result={'pong': True, 'time': time.time()})
        elif method == fields.INVOKE:
            self._invoke(request, session)
        else:
            failure = errors.UnknownMethod(f"Unknown method: {method}", method)
            self._respond(session, request.id, method, error=failure)

    def _list(self) -> Dict[str, Any]:
        if self.registry is None:
            return {'tools': []}
        return {'tools': self.registry.describe()}

    def _invoke(self, request: Request, session: Optional[int]) -> None:
        """ Validate a ``tools/call`` request and queue it for the owner
            thread. Unknown names and missing arguments are answered
            immediately; no handler is involved.
        """

        params = request.params
        name = params.get(fields.INVOKE_NAME)

        if type(name) is not str or name == '':
            failure = errors.InvalidArguments(f"missing or invalid '{fields.INVOKE_NAME}'", request.method)
            self._respond(session, request.id, request.method, error=failure)
            return

        arguments = params.get(fields.INVOKE_ARGUMENTS)
        if arguments is None:
            arguments = {}
        elif type(arguments) is not dict:
            failure = errors.InvalidArguments(f"'{fields.INVOKE_ARGUMENTS}' must be an object", name)
            self._respond(session, request.id, name, error=failure)
            return

        capability = None
        if self.registry is not None and self.executor is not None:
            capability = self.registry.get(name)

        if capability is None:
            failure = errors.UnknownMethod(f"Unknown method: {name}", name)
            self._respond(session, request.id, name, error=failure)
            return

        missing = capability.missing(arguments)
        if missing:
            failure = errors.InvalidArguments(f"missing required argument(s): {', '.join(missing)}", name)
            self._respond(session, request.id, name, error=failure)
            return

        future = self.executor.submit(name, arguments, request.id)
        future.add_done_callback(functools.partial(self._completed, session, request.id, name))

    def _completed(self, session: Optional[int], call_id: CorrelationId, method: str, future: concurrent.futures.Future) -> None:

        if future.cancelled():
            failure = errors.HandlerFailure('execution was cancelled', method)
            self._respond(session, call_id, method, error=failure)
            return

        error = future.exception()
        if error is None:
            self._respond(session, call_id, method, result=future.result())
        elif isinstance(error, errors.Failure):
            self._respond(session, call_id, method, error=error)
        else:
            failure = errors.HandlerFailure(f"{error.__class__.__name__}: {error}", method)
            self._respond(session, call_id, method, error=failure)

    def _respond(self, session: Optional[int], call_id: CorrelationId, method: Optional[str],
                 result: Any = None, error: Optional[errors.Failure] = None) -> None:
        """ Encode and send a response. Sending after the session is over is
            a silent no-op.
        """

        if error is not None:
            error = error.with_method(method)

        if error is None:
            try:
                raw = codec.encode_result(call_id, result)
            except (InvalidValue, json.JSONEncodeError) as e:
                error = errors.HandlerFailure(f"result cannot be encoded: {e}", method)

        if error is not None:
            logger.debug("response %r: %s %s", call_id, error.kind, error.describe())
            raw = codec.encode_error(call_id, error)

        if not self.connection.send(raw, session):
            logger.debug("response %r not sent, session %r is over", call_id, session)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
