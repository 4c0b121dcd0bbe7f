""" The execution side, assembled. A :class:`Bridge` owns the capability
    registry, the thread-affinity executor, the listening connection and the
    dispatcher that joins them. The host application either calls
    :func:`Bridge.tick` from its own update loop, or lets :func:`Bridge.run`
    start a background owner thread to do so.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from . import __version__
from . import config
from . import logs
from .dispatch import Dispatcher
from .executor import ThreadAffinityExecutor
from .protocol import fields
from .registry import CapabilityRegistry
from .tick import Ticker
from .transport import Acceptor, Connection

logger = logging.getLogger(__name__)


class Bridge:
    """ Serve the capabilities in *registry* to a single remote caller.

        The *address* and *port* default to those in *settings*, which in
        turn defaults to :func:`tickrpc.config.load`. A pre-built
        *connection* may be supplied instead, in which case the address and
        port are ignored. If a :class:`tickrpc.logs.History` is supplied as
        *history*, the log capabilities are registered alongside the rest.
    """

    def __init__(self, registry: CapabilityRegistry, address: Optional[str] = None, port: Optional[int] = None,
                 settings: Optional[config.Settings] = None, connection: Optional[Connection] = None,
                 history: Optional[logs.History] = None):

        if settings is None:
            settings = config.load()

        self.settings = settings
        self.registry = registry

        if history is not None:
            for capability in logs.capabilities(history):
                registry.register(capability)

        if connection is None:
            if address is None:
                address = settings.address
            if port is None:
                port = settings.port

            connection = Acceptor(address, port, heartbeat=settings.heartbeat, heartbeat_timeout=settings.heartbeat_timeout)

        self.connection = connection
        self.executor = ThreadAffinityExecutor(registry)
        self.dispatcher = Dispatcher(connection, self.executor, registry, server_info=self.server_info())
        self.ticker: Optional[Ticker] = None

    def __enter__(self) -> 'Bridge':
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def server_info(self) -> Dict[str, Any]:
        """ Return the response to an ``initialize`` request. """

        server = {'name': self.settings.name, 'version': __version__}
        return {'protocolVersion': fields.PROTOCOL_VERSION, 'capabilities': {'tools': {}}, 'serverInfo': server}

    def start(self) -> None:
        """ Freeze the registry and start listening for a caller. """

        self.registry.freeze()
        self.connection.open()
        logger.info("bridge serving %d capabilities on %s", len(self.registry), self.connection.endpoint)

    def tick(self) -> int:
        """ Run every request queued since the previous tick. This must
            always be called from the same thread, and returns the number of
            requests executed.
        """

        return self.executor.drain_once()

    def run(self, period: Optional[float] = None) -> Ticker:
        """ Start a background owner thread calling :func:`tick` every
            *period* seconds, the configured tick period by default. The
            caller must not call :func:`tick` itself after this.
        """

        if period is None:
            period = self.settings.tick_period

        if self.ticker is not None and self.ticker.running:
            self.ticker.period(period)
            return self.ticker

        self.ticker = Ticker(self.tick, period, name='tickrpc-owner')
        self.ticker.start()
        return self.ticker

    def status(self) -> Dict[str, Any]:
        """ Return a snapshot of the connection and queue state. """

        status = dict()
        status['endpoint'] = self.connection.endpoint
        status['connected'] = self.connection.connected
        status['client_count'] = self.connection.client_count
        status['queued'] = len(self.executor)
        status['session'] = self.connection.session
        return status

    def close(self) -> None:
        """ Stop the owner thread if there is one, fail any queued requests
            with :class:`tickrpc.errors.ShuttingDown`, and close the
            connection.
        """

        if self.ticker is not None:
            self.ticker.stop(timeout=2.0)
            self.ticker = None

        self.executor.shutdown('bridge is shutting down')
        self.connection.close()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
