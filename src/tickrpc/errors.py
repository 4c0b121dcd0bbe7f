""" Failure types shared by every layer. A :class:`Failure` is what a caller
    ultimately receives in place of a value: each one carries a stable *kind*
    tag, a JSON-RPC error *code*, a human-readable *message*, and the name
    of the *method* that produced it, if known.

    Failures are exceptions so that they can be raised from handlers and set
    on :class:`concurrent.futures.Future` instances; they are also plain data
    that round-trips through the error object of a JSON-RPC response.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Optional


class Failure(Exception):
    """ Base class for all failures delivered to a caller. """

    kind = 'Failure'
    code = -32000

    def __init__(self, message: str, method: Optional[str] = None, kind: Optional[str] = None, code: Optional[int] = None):
        Exception.__init__(self, message)
        self.message = message
        self.method = method

        # Failures rebuilt from the wire may carry a kind or code that this
        # side does not know about; keep them as-is.

        if kind is not None:
            self.kind = kind
        if code is not None:
            self.code = code

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, method={self.method!r})"

    def describe(self) -> str:
        """ Return the message, prefixed with the method name if there is one
            and the message does not already include it.
        """

        if self.method is None:
            return self.message

        prefix = f"[{self.method}]"
        if self.message.startswith(prefix):
            return self.message
        return f"{prefix} {self.message}"

    def with_method(self, method: Optional[str]) -> Failure:
        """ Return this failure if it already names a method, otherwise a
            copy naming *method*. A handler may raise the same instance for
            every call; it is never modified.
        """

        if self.method is not None or method is None:
            return self

        duplicate = copy.copy(self)
        duplicate.method = method
        return duplicate

    def to_wire(self) -> Dict[str, Any]:
        """ Return the JSON-RPC error object for this failure. """

        data = {'kind': self.kind, 'method': self.method}
        return {'code': self.code, 'message': self.describe(), 'data': data}


class ProtocolError(Failure):
    kind = 'ProtocolError'
    code = -32600


class UnknownMethod(Failure):
    kind = 'UnknownMethod'
    code = -32601


class InvalidArguments(Failure):
    kind = 'InvalidArguments'
    code = -32602


class HandlerFailure(Failure):
    kind = 'HandlerFailure'
    code = -32000


class Timeout(Failure):
    kind = 'Timeout'
    code = -32001


class Disconnected(Failure):
    kind = 'Disconnected'
    code = -32002


class ShuttingDown(Failure):
    kind = 'ShuttingDown'
    code = -32003


_by_kind = dict()
_by_code = dict()

for _class in (ProtocolError, UnknownMethod, InvalidArguments, HandlerFailure, Timeout, Disconnected, ShuttingDown):
    _by_kind[_class.kind] = _class
    _by_code[_class.code] = _class

# JSON-RPC parse errors and internal errors arrive from foreign peers.
_by_code[-32700] = ProtocolError
_by_code[-32603] = HandlerFailure

del _class


def from_wire(error: Dict[str, Any]) -> Failure:
    """ Rebuild a :class:`Failure` from a decoded JSON-RPC error object. The
        ``data.kind`` field selects the subclass; if it is absent or unknown
        the numeric code is used instead. The *error* is expected to have
        already been checked for a valid code and message.
    """

    code = error['code']
    message = error['message']

    data = error.get('data')
    if isinstance(data, dict):
        kind = data.get('kind')
        method = data.get('method')
    else:
        kind = None
        method = None

    if not isinstance(kind, str):
        kind = None
    if not isinstance(method, str):
        method = None

    try:
        failure_class = _by_kind[kind]
    except KeyError:
        failure_class = _by_code.get(code)

    if failure_class is None:
        return Failure(message, method, kind=kind, code=code)

    return failure_class(message, method, code=code)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
