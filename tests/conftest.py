import logging
import threading
import time

import pytest

import tickrpc
from tickrpc.transport.base import Connection, ConnectionState


class FakeConnection(Connection):
    """ An in-memory stand-in for a connection manager. Everything sent is
        recorded in :attr:`sent` as (raw, session) pairs; the test drives
        state changes and incoming messages directly.
    """

    def __init__(self):
        Connection.__init__(self, '127.0.0.1', 8765)
        self.sent = list()
        self.sent_lock = threading.Lock()
        self.opened = False
        self.closed = False

    @property
    def client_count(self):
        return 1 if self.connected else 0

    def open(self):
        self.opened = True

    def connect(self, timeout=None):
        self.up()

    def up(self):
        self._transition(ConnectionState.CONNECTED)

    def down(self):
        self._transition(ConnectionState.DISCONNECTED)

    def receive(self, raw):
        self._deliver(raw, self._session)

    def send(self, raw, session=None):
        if not self.connected:
            return False
        if session is not None and session != self._session:
            return False

        with self.sent_lock:
            self.sent.append((raw, self._session))
        return True

    def close(self):
        self.closed = True
        self.down()

    def decoded(self):
        with self.sent_lock:
            sent = list(self.sent)
        return [tickrpc.json.loads(raw) for raw, session in sent]


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def registry():

    registry = tickrpc.CapabilityRegistry()
    registry.calls = list()

    @registry.capability(required=('x',))
    def echo(arguments):
        """ Return the arguments unchanged. """
        registry.calls.append(('echo', dict(arguments)))
        return arguments

    @registry.capability()
    def fail(arguments):
        registry.calls.append(('fail', dict(arguments)))
        raise ValueError('nope')

    return registry


@pytest.fixture
def settings():
    return tickrpc.config.Settings(timeout=5.0, tick_period=0.005, connect_timeout=2.0)


def _wait_for(condition, timeout=2.0):

    expiration = time.monotonic() + timeout

    while time.monotonic() < expiration:
        if condition():
            return
        time.sleep(0.005)

    raise AssertionError('condition not met within %.1f seconds' % timeout)


@pytest.fixture
def wait_for():
    """ Poll a condition until it returns something true, or fail the test.
    """
    return _wait_for


@pytest.fixture(autouse=True)
def debug_logging(caplog):
    caplog.set_level(logging.DEBUG, logger='tickrpc')

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
