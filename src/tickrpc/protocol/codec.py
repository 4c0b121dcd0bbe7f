"""JSON-RPC envelope codec.

Encoding functions return bytes suitable for a single message frame.
:func:`decode` never raises: anything it cannot make sense of comes back as
a :class:`DecodeError`, with the correlation id attached whenever one could
be recovered.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

from .. import errors
from .. import json
from . import fields
from .message import CorrelationId, DecodeError, Request, Response
from .value import InvalidValue, check


Decoded = Union[Request, Response, DecodeError]


def _envelope(call_id: Optional[CorrelationId]) -> Dict[str, Any]:
    return {fields.JSONRPC: fields.JSONRPC_VERSION, fields.ID: call_id}


def encode_request(call_id: CorrelationId, method: str, params: Optional[Dict[str, Any]] = None) -> bytes:
    """ Encode a request. Raises :class:`InvalidValue` if *params* is not a
        dictionary of structured values.
    """

    if params is None:
        params = {}
    elif type(params) is not dict:
        raise InvalidValue(fields.PARAMS, f"must be a dictionary, not {type(params).__name__}")

    check(params, fields.PARAMS)

    envelope = _envelope(call_id)
    envelope[fields.METHOD] = method
    envelope[fields.PARAMS] = params
    return json.dumps(envelope)


def encode_result(call_id: CorrelationId, result: Any) -> bytes:
    """ Encode a successful response. Raises :class:`InvalidValue` if the
        *result* is not a structured value.
    """

    check(result, fields.RESULT)

    envelope = _envelope(call_id)
    envelope[fields.RESULT] = result
    return json.dumps(envelope)


def encode_error(call_id: Optional[CorrelationId], failure: errors.Failure) -> bytes:
    envelope = _envelope(call_id)
    envelope[fields.ERROR] = failure.to_wire()
    return json.dumps(envelope)


def encode_response(response: Response) -> bytes:
    if response.error is not None:
        return encode_error(response.id, response.error)
    return encode_result(response.id, response.result)


def _valid_id(call_id: Any) -> bool:
    # bool is a subclass of int; JSON true/false is not an id.
    return type(call_id) is str or type(call_id) is int


def decode(raw: Union[bytes, str]) -> Decoded:
    """ Decode one message into a :class:`Request`, a :class:`Response`, or
        a :class:`DecodeError`.
    """

    try:
        envelope = json.loads(raw)
    except (ValueError, TypeError) as e:
        return DecodeError(f"parse error: {e}")

    if type(envelope) is not dict:
        return DecodeError(f"envelope must be an object, not {type(envelope).__name__}")

    call_id = envelope.get(fields.ID)
    if call_id is not None and not _valid_id(call_id):
        return DecodeError(f"invalid id: {call_id!r}")

    version = envelope.get(fields.JSONRPC, fields.JSONRPC_VERSION)
    if version != fields.JSONRPC_VERSION:
        return DecodeError(f"unsupported jsonrpc version: {version!r}", call_id)

    if fields.METHOD in envelope:
        return _decode_request(envelope, call_id)

    if fields.RESULT in envelope or fields.ERROR in envelope:
        return _decode_response(envelope, call_id)

    return DecodeError('envelope is neither a request nor a response', call_id)


def _decode_request(envelope: Dict[str, Any], call_id: Optional[CorrelationId]) -> Decoded:

    method = envelope[fields.METHOD]
    if type(method) is not str or method == '':
        return DecodeError(f"invalid method: {method!r}", call_id)

    # Notifications (requests without an id) have nowhere to send a
    # response; the bridge does not accept them.

    if call_id is None:
        return DecodeError(f"request for {method!r} has no id")

    params = envelope.get(fields.PARAMS)
    if params is None:
        params = {}
    elif type(params) is not dict:
        return DecodeError(f"params for {method!r} must be an object", call_id)

    return Request(call_id, method, params)


def _decode_response(envelope: Dict[str, Any], call_id: Optional[CorrelationId]) -> Decoded:

    if fields.ERROR not in envelope:
        if call_id is None:
            return DecodeError('result without an id')
        return Response(call_id, result=envelope[fields.RESULT])

    error = envelope[fields.ERROR]

    if type(error) is not dict:
        return DecodeError('error must be an object', call_id)

    code = error.get(fields.CODE)
    message = error.get(fields.MESSAGE)

    if type(code) is not int:
        return DecodeError(f"invalid error code: {code!r}", call_id)
    if type(message) is not str:
        return DecodeError(f"invalid error message: {message!r}", call_id)

    return Response(call_id, error=errors.from_wire(error))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
