"""Connection interface.

This is the contract shared by both connection roles: the :class:`Acceptor`
on the execution side, and the :class:`Initiator` on the caller side. It
carries the connection state machine and the subscriber notifications; the
ZeroMQ specifics live in the subclasses.
"""

from __future__ import annotations

import enum
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all transport-layer errors."""


class TransportTimeout(TransportError):
    """A connection attempt did not complete in time."""


class TransportConnectionError(TransportError):
    """The transport could not establish or maintain a connection."""


class TransportPortError(TransportError):
    """No suitable port could be bound or connected."""


class ConnectionState(enum.Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'


StateCallback = Callable[[ConnectionState, ConnectionState], None]
ReceiveCallback = Callable[[bytes, int], None]


class Connection(ABC):
    """ One logical peer slot on a persistent, message-framed connection.

        Every time a peer becomes connected the *session* number increases;
        messages are delivered to the receive callback along with the session
        they arrived on, and :func:`send` can be restricted to a session so
        that nothing intended for a previous peer reaches a new one.
    """

    def __init__(self, address: str, port: Optional[int]):
        self.address = address
        self.port = None if port is None else int(port)

        self._state = ConnectionState.DISCONNECTED
        self._session = 0

        # Re-entrant: subscribers notified during a transition may inspect
        # the connection, and connect() holds it while starting an attempt.

        self._transition_lock = threading.RLock()
        self._subscribers: List[StateCallback] = []
        self._receiver: Optional[ReceiveCallback] = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.endpoint!r}, {self._state.value})"

    @property
    def endpoint(self) -> str:
        return f"tcp://{self.address}:{self.port}"

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def session(self) -> int:
        """ The session number of the current (or most recent) peer. """
        return self._session

    def subscribe(self, callback: StateCallback) -> None:
        """ Register *callback* to be invoked as ``callback(state, previous)``
            on every state change. Callbacks are invoked synchronously on the
            thread making the change; when leaving the connected state, every
            callback completes before any new connection can be established.
        """

        self._subscribers.append(callback)

    def on_receive(self, callback: ReceiveCallback) -> None:
        """ Register the single *callback* invoked as ``callback(raw, session)``
            for every incoming message.
        """

        self._receiver = callback

    def _transition(self, state: ConnectionState) -> None:
        """ Change state and notify subscribers, while holding the transition
            lock. A new session begins on every transition to connected.
        """

        with self._transition_lock:
            previous = self._state
            if previous == state:
                return

            if state == ConnectionState.CONNECTED:
                self._session += 1

            self._state = state
            logger.info("%s: %s -> %s (session %d)", self.endpoint, previous.value, state.value, self._session)

            for callback in list(self._subscribers):
                try:
                    callback(state, previous)
                except Exception:
                    logger.exception("state subscriber %r failed", callback)

    def _deliver(self, raw: bytes, session: int) -> None:
        """ Hand an incoming message to the receive callback. Failures are
            logged; they must never take down the I/O thread.
        """

        receiver = self._receiver
        if receiver is None:
            logger.warning("%s: no receiver, message dropped", self.endpoint)
            return

        try:
            receiver(raw, session)
        except Exception:
            logger.exception("receive callback %r failed", receiver)

    @abstractmethod
    def send(self, raw: bytes, session: Optional[int] = None) -> bool:
        """ Queue *raw* for delivery to the connected peer. Returns False,
            without raising, if there is no connected peer or if *session*
            is specified and is no longer current.
        """

    @abstractmethod
    def close(self) -> None:
        """ Tear down the connection; no further use is possible. """


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
