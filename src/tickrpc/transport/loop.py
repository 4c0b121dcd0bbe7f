""" The I/O thread shared by both connection roles. Each :class:`SocketLoop`
    owns one ZeroMQ data socket, the monitor socket attached to it, and an
    inproc PAIR used to wake the loop when another thread has queued
    something to send. ZeroMQ sockets are not thread-safe; after
    :func:`SocketLoop._start` only the I/O thread touches any of them.
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
from typing import Optional, Tuple

import zmq
import zmq.utils.monitor

from .base import Connection, ConnectionState

logger = logging.getLogger(__name__)

zmq_context = zmq.Context.instance()
_pair_ticker = itertools.count()

# An outgoing item is (kind, session, body); None asks the loop to exit.
Outgoing = Optional[Tuple[bytes, Optional[int], bytes]]


class SocketLoop(Connection):
    """ Common machinery for :class:`Acceptor` and :class:`Initiator`. The
        *heartbeat* and *heartbeat_timeout* are in seconds, and configure the
        ZMTP heartbeats used to notice a peer that vanished without closing
        its connection.
    """

    poll_interval = 1000   # milliseconds
    linger = 100           # milliseconds, to flush a final BYE on close
    role = 'loop'

    def __init__(self, address: str, port: Optional[int], heartbeat: float = 1.0, heartbeat_timeout: float = 3.0):
        Connection.__init__(self, address, port)

        self.heartbeat = float(heartbeat)
        self.heartbeat_timeout = float(heartbeat_timeout)

        self._outbox: queue.SimpleQueue = queue.SimpleQueue()
        self._signal_lock = threading.Lock()
        self._signal_tx: Optional[zmq.Socket] = None
        self._signal_rx: Optional[zmq.Socket] = None
        self._socket: Optional[zmq.Socket] = None
        self._monitor: Optional[zmq.Socket] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = False

    def _configure(self, socket: zmq.Socket) -> None:
        socket.setsockopt(zmq.LINGER, 0)

        if self.heartbeat > 0:
            socket.setsockopt(zmq.HEARTBEAT_IVL, int(self.heartbeat * 1000))
            socket.setsockopt(zmq.HEARTBEAT_TIMEOUT, int(self.heartbeat_timeout * 1000))
            socket.setsockopt(zmq.HEARTBEAT_TTL, int(self.heartbeat_timeout * 1000))

    def _start(self, socket: zmq.Socket, events: int, connect: Optional[str] = None) -> None:
        """ Take ownership of the fully configured *socket*, attach a monitor
            for the requested *events*, and start the I/O thread. If a
            *connect* endpoint is provided the socket connects to it once the
            monitor is in place, so that no connection event is missed.
        """

        internal = f"inproc://tickrpc.{self.role}.signal.{id(self)}.{next(_pair_ticker)}"

        signal_rx = zmq_context.socket(zmq.PAIR)
        signal_rx.bind(internal)
        signal_tx = zmq_context.socket(zmq.PAIR)
        signal_tx.connect(internal)

        # Anything left over from a previous run is for a peer that is gone.

        while True:
            try:
                self._outbox.get_nowait()
            except queue.Empty:
                break

        self._socket = socket
        self._monitor = socket.get_monitor_socket(events)

        if connect is not None:
            socket.connect(connect)

        self._signal_rx = signal_rx

        with self._signal_lock:
            self._signal_tx = signal_tx

        self._stop = False
        self._thread = threading.Thread(target=self.run, name=f"tickrpc-{self.role}", daemon=True)
        self._thread.start()

    def _enqueue(self, item: Outgoing) -> bool:
        """ Queue *item* for the I/O thread and wake it up. Returns False if
            the loop is not running.
        """

        with self._signal_lock:
            if self._signal_tx is None:
                return False

            self._outbox.put(item)

            # The lock also protects the PAIR socket itself; ZeroMQ makes no
            # attempt to be thread-safe, and any thread may be sending.

            try:
                self._signal_tx.send(b'', zmq.NOBLOCK)
            except zmq.Again:
                # The loop already has a wakeup pending, and drains the
                # whole outbox when it gets to it.
                pass

        return True

    def _join(self, timeout: float = 2.0) -> None:
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return

        thread.join(timeout)
        if thread.is_alive():
            logger.warning("%s: I/O thread did not exit within %.1f sec", self.endpoint, timeout)

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def run(self) -> None:

        poller = zmq.Poller()
        poller.register(self._monitor, zmq.POLLIN)
        poller.register(self._socket, zmq.POLLIN)
        poller.register(self._signal_rx, zmq.POLLIN)

        try:
            while not self._stop:
                ready = dict(poller.poll(self.poll_interval))

                # Monitor events first, so that an accepted connection is
                # known before the first message that arrives on it.

                if self._monitor in ready:
                    self._drain(self._monitor, zmq.utils.monitor.recv_monitor_message, self._monitor_event)
                if self._socket in ready:
                    self._drain(self._socket, zmq.Socket.recv_multipart, self._incoming)
                if self._signal_rx in ready:
                    self._outgoing()
        except zmq.ZMQError:
            logger.exception("%s: I/O loop failed", self.endpoint)
        finally:
            self._teardown()

    def _drain(self, socket: zmq.Socket, receive, handler) -> None:
        while not self._stop:
            try:
                received = receive(socket, zmq.NOBLOCK)
            except zmq.Again:
                return
            handler(received)

    def _outgoing(self) -> None:

        while True:
            try:
                self._signal_rx.recv(zmq.NOBLOCK)
            except zmq.Again:
                break

        while not self._stop:
            try:
                item = self._outbox.get_nowait()
            except queue.Empty:
                return

            if item is None:
                self._stop = True
                return

            self._emit(*item)

    def _send_frames(self, frames) -> bool:
        """ Send without blocking; a frame that cannot be sent right now is
            for a peer that is not there, and is dropped.
        """

        try:
            self._socket.send_multipart(frames, zmq.NOBLOCK)
        except zmq.Again:
            logger.debug("%s: no route for outgoing message, dropped", self.endpoint)
            return False
        return True

    def _teardown(self) -> None:
        """ Close every socket owned by the I/O thread, then report the
            disconnection. Runs on the I/O thread as it exits.
        """

        with self._signal_lock:
            signal_tx = self._signal_tx
            self._signal_tx = None

        if signal_tx is not None:
            signal_tx.close()

        self._signal_rx.close()

        try:
            self._socket.disable_monitor()
        except zmq.ZMQError as e:
            logger.debug("%s: disable_monitor() failed: %s", self.endpoint, e)

        self._monitor.close()
        self._socket.close(linger=self.linger)

        self._lost('connection closed')

    # --- role-specific hooks ---

    def _emit(self, kind: bytes, session: Optional[int], body: bytes) -> None:
        raise NotImplementedError

    def _incoming(self, parts) -> None:
        raise NotImplementedError

    def _monitor_event(self, event) -> None:
        raise NotImplementedError

    def _lost(self, reason: str) -> None:
        """ The current peer, if any, is gone. """

        logger.debug("%s: %s", self.endpoint, reason)
        self._transition(ConnectionState.DISCONNECTED)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
