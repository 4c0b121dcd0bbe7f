""" A background thread that calls one method on a fixed cadence. The
    :class:`tickrpc.bridge.Bridge` uses a :class:`Ticker` as its owner
    thread when the host application does not have a loop of its own to
    call :func:`tickrpc.bridge.Bridge.tick` from.
"""

import threading
import time
import weakref


def ref(thing):
    """ Return a weak reference to the supplied argument, regardless of
        whether it is a simple object or a bound method.
    """

    try:
        thing.__func__
        thing.__self__
    except AttributeError:
        return weakref.ref(thing)
    else:
        return weakref.WeakMethod(thing)


class Ticker:
    """ Invoke *method* every *period* seconds on a dedicated daemon thread.
        Only a weak reference to *method* is held; once the object it is
        bound to goes away, the thread exits on its own.

        Exceptions raised by *method* are not caught: they end the thread,
        the same as any other unhandled exception would.
    """

    def __init__(self, method, period, name='tickrpc-tick'):

        self.interval = None
        self.reference = ref(method)
        self.shutdown = False
        self.ticks = 0

        self.alarm = threading.Event()
        self.thread = threading.Thread(target=self.run, name=name)
        self.thread.daemon = True

        self.period(period)

    def start(self):
        if not self.thread.is_alive():
            self.thread.start()

    def period(self, period):
        """ Update the calling interval to *period* seconds.
        """

        period = float(period)
        if period <= 0:
            raise ValueError('the tick period must be positive')

        self.interval = period
        self.wake()

    def run(self):

        interval = self.interval
        next = time.monotonic()

        while True:
            begin = time.monotonic()

            if self.shutdown:
                break

            if self.alarm.is_set():
                self.alarm.clear()

                # The interval only changes when the alarm is set, including
                # upon startup. That's our cue to start an entirely new
                # cadence with the new interval.

                interval = self.interval
                next = begin + interval

            else:
                # The cadence is honored regardless of when we woke up: the
                # next wakeup is the previous one plus the interval.

                next += interval

            method = self.reference()

            if method is None:
                # The original object is gone.
                break

            method()
            self.ticks += 1

            # Don't keep the object alive while waiting.
            del method

            delay = next - time.monotonic()
            if delay > 0:
                self.alarm.wait(delay)

    def stop(self, timeout=None):
        """ Ask the thread to exit, and wait up to *timeout* seconds for it
            to do so.
        """

        self.shutdown = True
        self.wake()

        if self.thread.is_alive() and self.thread is not threading.current_thread():
            self.thread.join(timeout)

    def wake(self):
        self.alarm.set()

    @property
    def running(self):
        return self.thread.is_alive()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
