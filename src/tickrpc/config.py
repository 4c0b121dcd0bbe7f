""" Runtime settings for both sides of the bridge. Every setting has a
    default; a JSON file in the configuration :func:`directory` may override
    any of them, and ``TICKRPC_<FIELD>`` environment variables override the
    file.
"""

import dataclasses
import os
from dataclasses import dataclass

from . import json


@dataclass
class Settings:
    """ Settings consulted by :class:`tickrpc.bridge.Bridge` and
        :class:`tickrpc.client.Client`. Durations are in seconds.
    """

    address: str = '127.0.0.1'
    port: int = 8765
    timeout: float = 30.0
    tick_period: float = 0.01
    connect_timeout: float = 5.0
    heartbeat: float = 1.0
    heartbeat_timeout: float = 3.0
    name: str = 'tickrpc'
    log_history: int = 100

    def __post_init__(self):

        for field in dataclasses.fields(self):
            value = getattr(self, field.name)
            setattr(self, field.name, _convert(field, value))

        if not 0 < self.port < 65536:
            raise ValueError(f"port out of range: {self.port}")

        for name in ('timeout', 'tick_period', 'connect_timeout'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        if self.heartbeat < 0 or self.heartbeat_timeout <= 0:
            raise ValueError('heartbeat settings must not be negative')

        if self.log_history < 1:
            raise ValueError('log_history must be at least 1')


def _convert(field, value):
    """ Coerce *value* to the type of the default for *field*. Strings from
        the environment are the common case; booleans are never accepted
        where a number is expected.
    """

    kind = type(field.default)

    if type(value) is kind:
        return value

    if kind is str:
        if isinstance(value, str):
            return value
        raise ValueError(f"{field.name}: expected a string, not {value!r}")

    if isinstance(value, bool):
        raise ValueError(f"{field.name}: expected a number, not {value!r}")

    if kind is float and isinstance(value, int):
        return float(value)

    if isinstance(value, str):
        try:
            return kind(value.strip())
        except ValueError:
            raise ValueError(f"{field.name}: cannot interpret {value!r} as {kind.__name__}")

    raise ValueError(f"{field.name}: expected {kind.__name__}, not {value!r}")


def directory(default=None):
    """ Return the directory location where configuration files are found.
        This defaults to ``$HOME/.tickrpc``, but can be overridden by calling
        this method with an absolute path, or by setting the
        ``TICKRPC_HOME`` environment variable prior to the first invocation
        of this method.
    """

    if default is not None:
        default = os.path.expandvars(str(default))

        if not os.path.isabs(default):
            raise ValueError('the default directory must be an absolute path')

        os.environ['TICKRPC_HOME'] = default
        directory.found = default

    found = directory.found

    if found is not None:
        return found

    try:
        found = os.environ['TICKRPC_HOME']
    except KeyError:
        pass
    else:
        directory.found = found
        return found

    try:
        home = os.environ['HOME']
    except KeyError:
        raise RuntimeError('TICKRPC_HOME and HOME environment variables not set, cannot determine tickrpc configuration directory')

    found = os.path.join(home, '.tickrpc')

    directory.found = found
    return found

directory.found = None


def load(name=None, environ=None):
    """ Return a :class:`Settings` instance. If *name* is provided the file
        ``<directory>/<name>.json`` is read, if it exists; the *environ*
        mapping, ``os.environ`` by default, is consulted last. Unknown keys
        in the file are rejected, as are values that do not convert.
    """

    if environ is None:
        environ = os.environ

    values = dict()
    known = dict((field.name, field) for field in dataclasses.fields(Settings))

    if name is not None:
        filename = os.path.join(directory(), name + '.json')

        if os.path.exists(filename):
            with open(filename, 'rb') as contents:
                try:
                    loaded = json.loads(contents.read())
                except json.JSONDecodeError as e:
                    raise ValueError(f"{filename}: not valid JSON: {e}")

            if not isinstance(loaded, dict):
                raise ValueError(f"{filename}: expected a JSON object")

            for key, value in loaded.items():
                if key not in known:
                    raise ValueError(f"{filename}: unknown setting {key!r}")
                values[key] = value

    for key in known:
        variable = 'TICKRPC_' + key.upper()

        try:
            values[key] = environ[variable]
        except KeyError:
            continue

    return Settings(**values)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
