import threading
import time

import pytest

from tickrpc import errors
from tickrpc.executor import ThreadAffinityExecutor
from tickrpc.pending import PendingCallTable
from tickrpc.registry import CapabilityRegistry


def test_ordering():

    order = list()
    registry = CapabilityRegistry()
    registry.add('record', lambda arguments: order.append(arguments['n']))

    executor = ThreadAffinityExecutor(registry)
    futures = [executor.submit('record', {'n': n}) for n in range(50)]

    assert len(executor) == 50
    assert order == []

    assert executor.drain_once() == 50
    assert order == list(range(50))
    assert len(executor) == 0

    for future in futures:
        assert future.result(0) is None


def test_submit_during_drain():

    registry = CapabilityRegistry()
    executor = ThreadAffinityExecutor(registry)
    later = list()

    def first(arguments):
        later.append(executor.submit('second'))
        return 1

    registry.add('first', first)
    registry.add('second', lambda arguments: 2)

    # Work submitted while a drain is underway waits for the next one.

    assert executor.drain_once() == 0
    executor.submit('first')
    assert executor.drain_once() == 1
    assert not later[0].done()
    assert executor.drain_once() == 1
    assert later[0].result(0) == 2


def test_handler_failures():

    registry = CapabilityRegistry()

    def raises(arguments):
        raise KeyError('missing')

    def chained(arguments):
        try:
            {}['position']
        except KeyError as e:
            raise RuntimeError('cannot move') from e

    def returns_failure(arguments):
        return errors.InvalidArguments('speed out of range')

    def raises_failure(arguments):
        raise errors.InvalidArguments('speed out of range')

    registry.add('raises', raises)
    registry.add('chained', chained)
    registry.add('returns_failure', returns_failure)
    registry.add('raises_failure', raises_failure)
    registry.add('invalid', lambda arguments: {'set': {1, 2}})

    executor = ThreadAffinityExecutor(registry)
    futures = dict((name, executor.submit(name)) for name in registry.names())
    executor.drain_once()

    failure = futures['raises'].exception(0)
    assert isinstance(failure, errors.HandlerFailure)
    assert failure.message == "KeyError: 'missing'"
    assert failure.describe() == "[raises] KeyError: 'missing'"

    failure = futures['chained'].exception(0)
    assert isinstance(failure, errors.HandlerFailure)
    assert failure.message == "RuntimeError: cannot move (caused by KeyError: 'position')"

    for name in ('returns_failure', 'raises_failure'):
        failure = futures[name].exception(0)
        assert isinstance(failure, errors.InvalidArguments)
        assert failure.method == name

    failure = futures['invalid'].exception(0)
    assert isinstance(failure, errors.HandlerFailure)
    assert 'invalid result' in failure.message


def test_shared_failure():

    shared = errors.InvalidArguments('speed out of range')
    named = errors.InvalidArguments('speed out of range', 'elsewhere')

    def raises(arguments):
        raise shared

    registry = CapabilityRegistry()
    registry.add('raises', raises)
    registry.add('returns', lambda arguments: shared)
    registry.add('named', lambda arguments: named)

    executor = ThreadAffinityExecutor(registry)
    futures = [executor.submit(name) for name in ('raises', 'returns', 'raises', 'named')]
    executor.drain_once()

    failures = [future.exception(0) for future in futures]
    assert [failure.method for failure in failures] == ['raises', 'returns', 'raises', 'elsewhere']
    assert all(isinstance(failure, errors.InvalidArguments) for failure in failures)
    assert failures[0].message == 'speed out of range'

    # The instance the handlers share is left alone; one that already names
    # a method is passed through as-is.

    assert shared.method is None
    assert failures[3] is named


def test_unknown_method():

    called = list()
    registry = CapabilityRegistry()
    registry.add('known', lambda arguments: called.append(True))

    executor = ThreadAffinityExecutor(registry)
    future = executor.submit('unknown')
    executor.drain_once()

    failure = future.exception(0)
    assert isinstance(failure, errors.UnknownMethod)
    assert failure.message == 'Unknown method: unknown'
    assert called == []


def test_owner_thread():

    registry = CapabilityRegistry()
    executor = ThreadAffinityExecutor(registry)
    executor.drain_once()

    assert executor.owner == threading.get_ident()

    raised = list()

    def elsewhere():
        try:
            executor.drain_once()
        except RuntimeError as e:
            raised.append(e)

    thread = threading.Thread(target=elsewhere)
    thread.start()
    thread.join()

    assert len(raised) == 1

    # Claiming again from the owner is harmless.
    executor.claim()


def test_handlers_run_on_owner():

    threads = list()
    registry = CapabilityRegistry()
    registry.add('where', lambda arguments: threads.append(threading.get_ident()))

    executor = ThreadAffinityExecutor(registry)
    stop = threading.Event()

    def owner():
        while not stop.is_set():
            executor.drain_once()
            time.sleep(0.001)

    thread = threading.Thread(target=owner)
    thread.start()

    try:
        submitters = [threading.Thread(target=executor.submit, args=('where',)) for n in range(8)]
        for submitter in submitters:
            submitter.start()
        for submitter in submitters:
            submitter.join()

        deadline = time.monotonic() + 2
        while len(threads) < 8 and time.monotonic() < deadline:
            time.sleep(0.005)
    finally:
        stop.set()
        thread.join()

    assert len(threads) == 8
    assert set(threads) == set((thread.ident,))


def test_timeout_does_not_cancel():

    # The caller stops waiting, the handler runs to completion regardless.

    completed = list()
    registry = CapabilityRegistry()

    def slow(arguments):
        time.sleep(0.25)
        completed.append(True)
        return 'done'

    registry.add('slow', slow)
    executor = ThreadAffinityExecutor(registry)
    table = PendingCallTable()

    caller = table.register('1', timeout=0.05)
    work = executor.submit('slow', call_id='1')
    work.add_done_callback(lambda future: table.settle('1', future.result()))

    with pytest.raises(errors.Timeout):
        caller.result(2)

    assert executor.drain_once() == 1
    assert completed == [True]
    assert work.result(0) == 'done'

    with pytest.raises(errors.Timeout):
        caller.result(0)


def test_cancelled_work():

    ran = list()
    registry = CapabilityRegistry()
    registry.add('side_effect', lambda arguments: ran.append(True))

    executor = ThreadAffinityExecutor(registry)
    future = executor.submit('side_effect')
    future.cancel()

    # Side effects are not cancellable once queued.

    assert executor.drain_once() == 1
    assert ran == [True]
    assert future.cancelled()


def test_shutdown():

    registry = CapabilityRegistry()
    registry.add('noop', lambda arguments: None)
    executor = ThreadAffinityExecutor(registry)

    queued = [executor.submit('noop') for n in range(3)]
    assert executor.shutdown() == 3
    assert executor.closed

    for future in queued:
        assert isinstance(future.exception(0), errors.ShuttingDown)

    late = executor.submit('noop')
    assert isinstance(late.exception(0), errors.ShuttingDown)
    assert executor.drain_once() == 0
    assert executor.shutdown() == 0


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
