""" Python implementation of tickrpc: a request/response bridge that lets a
    remote caller invoke named capabilities inside a host application whose
    state may only be touched from one thread. The execution side is a
    :class:`Bridge`, the caller side a :class:`Client`.
"""

__version__ = '0.1.0'

# Utility components.

from . import json
from . import tick

# Submodules used by multiple other components.

from . import errors
from . import protocol
from . import config
home = config.directory

from . import registry
from . import pending
from . import executor
from . import transport
from . import logs

# Primary public-facing interfaces.

from .errors import Failure
from .registry import Capability, CapabilityRegistry
from .dispatch import Dispatcher
from .bridge import Bridge
from .client import Client

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
