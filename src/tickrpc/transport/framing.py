"""ZMQ multipart framing for bridge messages.

Initiator (DEALER) -> Acceptor (ROUTER), and back:
    (routing prefix, on the ROUTER side only), version, kind, body

The kind is one of:
    HELLO   initiator announces itself; the acceptor adopts it as the peer
    BYE     orderly departure of either side
    MSG     body is one encoded envelope
"""

from __future__ import annotations

from typing import Sequence, Tuple

VERSION = b'1'

HELLO = b'HELLO'
BYE = b'BYE'
MSG = b'MSG'

kinds = frozenset((HELLO, BYE, MSG))


class FramingError(ValueError):
    """A multipart message that does not follow the framing rules."""


def to_frames(kind: bytes, body: bytes = b'') -> Tuple[bytes, bytes, bytes]:
    return (VERSION, kind, body)


def from_frames(parts: Sequence[bytes]) -> Tuple[bytes, bytes]:
    """ Validate the *parts* of a multipart message, with any routing prefix
        already removed, and return the (kind, body) pair.
    """

    if len(parts) != 3:
        raise FramingError(f"expected 3 frames, received {len(parts)}")

    version, kind, body = parts

    if version != VERSION:
        raise FramingError(f"message is framing version {version!r}, recipient expects {VERSION!r}")

    if kind not in kinds:
        raise FramingError(f"unknown message kind {kind!r}")

    return kind, body


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
