"""
tickrpc Protocol Layer
======================

This package defines the envelopes exchanged between a caller and the
execution side, and the codec that maps them to and from single message
frames. It does not know about sockets, threads, or futures.

---------------------------------------------------------------------

Layer Overview
--------------

Codec (codec.py)
    bytes <-> Request | Response | DecodeError
    - decode() never raises

    │
    ▼
Message Model (message.py)
    Immutable envelope structures
    - Request, Response, DecodeError

    │
    ▼
Value Model (value.py)
    The structured-value union accepted for arguments and results
    - check(), InvalidValue

    │
    ▼
Field Vocabulary (fields.py)
    Canonical key and method names

---------------------------------------------------------------------

Wire Format
-----------

Request:
    {"jsonrpc": "2.0", "id": "<string>", "method": "<string>", "params": {...}}

Success:
    {"jsonrpc": "2.0", "id": "<string>", "result": <any>}

Error:
    {"jsonrpc": "2.0", "id": "<string or null>",
     "error": {"code": <int>, "message": "<string>",
               "data": {"kind": "<kind>", "method": "<string or null>"}}}

---------------------------------------------------------------------
"""

from . import fields
from . import value
from . import message
from . import codec

from .codec import decode, encode_error, encode_request, encode_response, encode_result
from .message import DecodeError, Request, Response
from .value import InvalidValue


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
