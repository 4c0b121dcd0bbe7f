""" Immutable representations of the three things that can come out of the
    codec: a :class:`Request`, a :class:`Response`, or a :class:`DecodeError`
    describing why the raw input could not be understood.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from ..errors import Failure

CorrelationId = Union[str, int]


@dataclass(frozen=True)
class Request:
    """ A named call with its arguments. The *id* ties the eventual
        :class:`Response` back to whoever issued the request.
    """

    id: CorrelationId
    method: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Response:
    """ The outcome of exactly one :class:`Request`: either a *result*, or
        an *error* if the request failed. The *id* may be None for an error
        response to a request whose id could not be recovered.
    """

    id: Optional[CorrelationId]
    result: Any = None
    error: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class DecodeError:
    """ Raw input that is not a valid envelope. If a correlation *id* could
        still be recovered, the peer can be told about the problem.
    """

    reason: str
    id: Optional[CorrelationId] = None


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
