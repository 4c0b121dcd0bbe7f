""" The :class:`ThreadAffinityExecutor` turns a request arriving on any thread
    into a handler invocation on the one thread that owns the mutable world.
    Work is submitted from anywhere, typically the network I/O thread, and
    sits in a FIFO queue until the owner thread calls :func:`drain_once` on
    its next cooperative tick.

    Each queued :class:`WorkItem` is completed exactly once: with the
    handler's result, with a :class:`tickrpc.errors.Failure` if the handler
    fails, or with :class:`tickrpc.errors.ShuttingDown` if the executor is
    shut down before the item is drained.
"""

from __future__ import annotations

import collections
import concurrent.futures
import logging
import threading
import traceback
from typing import Any, Deque, Dict, Optional

from . import errors
from .pending import resolve
from .protocol.value import InvalidValue, check
from .registry import CapabilityRegistry

logger = logging.getLogger(__name__)


class WorkItem:
    """ A queued handler invocation. The *future* is the completion sink
        for the item.
    """

    __slots__ = ('id', 'method', 'arguments', 'future')

    def __init__(self, method: str, arguments: Dict[str, Any], call_id=None):
        self.id = call_id
        self.method = method
        self.arguments = arguments
        self.future: concurrent.futures.Future = concurrent.futures.Future()

    def __repr__(self) -> str:
        return f"WorkItem({self.method!r}, id={self.id!r})"


class ThreadAffinityExecutor:
    """ Run handlers from the *registry* on the owner thread only. The owner
        is the first thread to call :func:`drain_once`, unless :func:`claim`
        was called beforehand to bind it explicitly.
    """

    def __init__(self, registry: CapabilityRegistry):

        self.registry = registry

        # Using a deque and a lock rather than a queue.Queue: the owner thread
        # takes everything at once, rather than one item at a time, and never
        # waits for more to arrive.

        self._queue: Deque[WorkItem] = collections.deque()
        self._lock = threading.Lock()
        self._owner: Optional[int] = None
        self._closed = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def owner(self) -> Optional[int]:
        """ The thread identifier of the owner thread, if one is bound. """
        return self._owner

    def claim(self) -> None:
        """ Bind the calling thread as the owner thread. This may only be
            done once.
        """

        ident = threading.get_ident()

        with self._lock:
            if self._owner is not None and self._owner != ident:
                raise RuntimeError('executor is already bound to another owner thread')
            self._owner = ident

    def submit(self, method: str, arguments: Optional[Dict[str, Any]] = None, call_id=None) -> concurrent.futures.Future:
        """ Queue *method* to be invoked with *arguments* on the owner thread,
            and return a future for its outcome. This never blocks beyond the
            brief acquisition of the queue lock, and may be called from any
            thread.
        """

        if arguments is None:
            arguments = {}

        item = WorkItem(method, arguments, call_id)

        with self._lock:
            if not self._closed:
                self._queue.append(item)
                return item.future

        resolve(item.future, None, errors.ShuttingDown('executor is shut down', method))
        return item.future

    def drain_once(self) -> int:
        """ Execute every item queued at the time of the call, in the order
            they were submitted, and return the number executed. Items
            submitted while the drain is underway wait for the next call.
            Must be called from the owner thread.
        """

        ident = threading.get_ident()

        with self._lock:
            if self._owner is None:
                self._owner = ident
            elif self._owner != ident:
                raise RuntimeError('drain_once() called from a thread other than the owner')

            if not self._queue:
                return 0

            items = self._queue
            self._queue = collections.deque()

        for item in items:
            self._run(item)

        return len(items)

    def _run(self, item: WorkItem) -> None:
        """ Invoke the handler for a single item. Nothing raised by the
            handler escapes this method.
        """

        # Handlers are not cancelled once queued; even if the caller gave up
        # on the future, the handler still runs.

        handler = self.registry.lookup(item.method)

        if handler is None:
            failure = errors.UnknownMethod(f"Unknown method: {item.method}", item.method)
            resolve(item.future, None, failure)
            return

        try:
            result = handler(item.arguments)
        except errors.Failure as failure:
            resolve(item.future, None, failure.with_method(item.method))
            return
        except Exception as e:
            logger.debug("handler %r raised:\n%s", item.method, traceback.format_exc())
            resolve(item.future, None, errors.HandlerFailure(_explain(e), item.method))
            return

        if isinstance(result, errors.Failure):
            resolve(item.future, None, result.with_method(item.method))
            return

        try:
            check(result, 'result')
        except InvalidValue as e:
            failure = errors.HandlerFailure(f"handler returned an invalid result: {e}", item.method)
            resolve(item.future, None, failure)
            return

        resolve(item.future, result, None)

    def shutdown(self, reason: Optional[str] = None) -> int:
        """ Refuse any further work, and fail every item still queued with
            :class:`errors.ShuttingDown`. Returns the number of items failed.
            Safe to call from any thread, and more than once.
        """

        if reason is None:
            reason = 'executor shut down before the request was executed'

        with self._lock:
            self._closed = True
            items = self._queue
            self._queue = collections.deque()

        for item in items:
            resolve(item.future, None, errors.ShuttingDown(reason, item.method))

        if items:
            logger.info("shutdown abandoned %d queued work item(s)", len(items))

        return len(items)


def _explain(exception: BaseException) -> str:
    """ Describe *exception* for a caller, including the exception that
        caused it, if any.
    """

    description = f"{exception.__class__.__name__}: {exception}"

    if exception.__cause__ is not None:
        cause = exception.__cause__
    elif exception.__suppress_context__:
        cause = None
    else:
        cause = exception.__context__

    if cause is not None:
        description += f" (caused by {cause.__class__.__name__}: {cause})"

    return description


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
