""" Caller-side bookkeeping for requests that have been sent but not yet
    answered. Each outstanding call is a :class:`PendingCall` holding the
    :class:`concurrent.futures.Future` handed back to the caller; the future
    is resolved exactly once, by whichever of :func:`PendingCallTable.settle`,
    :func:`PendingCallTable.expire`, or :func:`PendingCallTable.abandon_all`
    gets to it first. The winner is whoever removes the entry from the table;
    everyone else finds nothing to do.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
import time
from typing import Any, Dict, Optional, Type

from . import errors
from .protocol.message import CorrelationId

logger = logging.getLogger(__name__)


class PendingCall:
    """ A single outstanding call. The *timer* is None until the table
        starts it.
    """

    __slots__ = ('id', 'future', 'created', 'timeout', 'timer')

    def __init__(self, call_id: CorrelationId, timeout: float):
        self.id = call_id
        self.future: concurrent.futures.Future = concurrent.futures.Future()
        self.created = time.time()
        self.timeout = timeout
        self.timer: Optional[threading.Timer] = None

    def __repr__(self) -> str:
        age = time.time() - self.created
        return f"PendingCall({self.id!r}, age={age:.3f}, timeout={self.timeout})"


class PendingCallTable:
    """ Map correlation ids to unsettled futures. All methods are safe to
        call from any thread; the table itself is guarded by a single lock,
        and futures are only ever resolved outside of that lock so that
        done-callbacks cannot deadlock against it.
    """

    timeout = 30.0

    def __init__(self, timeout: Optional[float] = None):
        if timeout is not None:
            self.timeout = float(timeout)

        self._calls: Dict[CorrelationId, PendingCall] = {}
        self._lock = threading.Lock()

    def __contains__(self, call_id: CorrelationId) -> bool:
        with self._lock:
            return call_id in self._calls

    def __len__(self) -> int:
        with self._lock:
            return len(self._calls)

    def register(self, call_id: CorrelationId, timeout: Optional[float] = None) -> concurrent.futures.Future:
        """ Start tracking *call_id*, and return the future that will carry
            its outcome. The call fails with :class:`errors.Timeout` if it
            is not settled within *timeout* seconds; the table default is
            used if *timeout* is None. A call id that is still outstanding
            cannot be registered again.
        """

        if timeout is None:
            timeout = self.timeout
        else:
            timeout = float(timeout)

        if timeout <= 0:
            raise ValueError(f"timeout must be positive, not {timeout!r}")

        call = PendingCall(call_id, timeout)

        with self._lock:
            if call_id in self._calls:
                raise ValueError(f"correlation id already outstanding: {call_id!r}")
            self._calls[call_id] = call

            # Starting the timer inside the lock guarantees it exists by the
            # time anyone else can pop this call and try to cancel it.

            call.timer = threading.Timer(timeout, self._expired, (call,))
            call.timer.daemon = True
            call.timer.start()

        return call.future

    def settle(self, call_id: CorrelationId, result: Any = None, error: Optional[errors.Failure] = None) -> bool:
        """ Resolve the call identified by *call_id* with *result*, or with
            the *error* if one is provided. Returns True if this invocation
            resolved the call, and False if there was no such outstanding
            call; late and duplicate responses land in the latter category.
        """

        with self._lock:
            call = self._calls.pop(call_id, None)

        if call is None:
            logger.debug("no pending call for %r, response discarded", call_id)
            return False

        call.timer.cancel()
        resolve(call.future, result, error)
        return True

    def expire(self, call_id: CorrelationId) -> bool:
        """ Fail the call identified by *call_id* with :class:`errors.Timeout`
            if it is still outstanding. Normally invoked by the call's own
            timer.
        """

        with self._lock:
            call = self._calls.get(call_id)

        if call is None:
            return False

        return self._expired(call)

    def _expired(self, call: PendingCall) -> bool:

        # Only expire the exact call this timer was started for; the id may
        # have been settled and legitimately registered again since then.

        with self._lock:
            if self._calls.get(call.id) is not call:
                return False
            del self._calls[call.id]

        call.timer.cancel()

        logger.debug("call %r timed out after %.3f sec", call.id, call.timeout)
        failure = errors.Timeout(f"no response within {call.timeout:g} seconds")
        resolve(call.future, None, failure)
        return True

    def abandon_all(self, reason: str, failure: Type[errors.Failure] = errors.Disconnected) -> int:
        """ Fail every outstanding call with an instance of *failure* whose
            message is *reason*. Returns the number of calls abandoned.
        """

        with self._lock:
            calls = list(self._calls.values())
            self._calls.clear()

        for call in calls:
            call.timer.cancel()
            resolve(call.future, None, failure(reason))

        if calls:
            logger.info("abandoned %d pending call(s): %s", len(calls), reason)

        return len(calls)


def resolve(future: concurrent.futures.Future, result: Any, error: Optional[errors.Failure]) -> None:
    """ Set the outcome of *future*, unless the caller already cancelled it.
    """

    try:
        if error is None:
            future.set_result(result)
        else:
            future.set_exception(error)
    except concurrent.futures.InvalidStateError:
        # Cancelled by the caller; there is nobody left to tell.
        logger.debug("future %r already resolved or cancelled", future)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
