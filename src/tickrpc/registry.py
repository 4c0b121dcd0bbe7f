""" The :class:`CapabilityRegistry` is the static name-to-handler mapping
    consulted when a caller invokes a capability. The registry is populated
    once, at startup, and then frozen; nothing is ever resolved dynamically
    by reflection, and two capabilities may not share a name.

    A handler is any callable accepting a single dictionary of arguments. It
    is invoked synchronously, and only ever on the owner thread. It returns a
    structured value on success; to signal a failure it either raises an
    exception or returns a :class:`tickrpc.errors.Failure` instance.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence

Handler = Callable[[Dict[str, Any]], Any]


class Capability:
    """ One named entry in the registry. The *required* sequence lists the
        argument names that must be present for an invocation to be valid;
        the dispatcher checks them before the handler is ever queued.
    """

    def __init__(self, name: str, handler: Handler, description: str = '', required: Sequence[str] = ()):

        if not isinstance(name, str) or name == '':
            raise ValueError(f"capability name must be a non-empty string, not {name!r}")

        if not callable(handler):
            raise TypeError(f"handler for {name!r} is not callable")

        self.name = name
        self.handler = handler
        self.description = description
        self.required = tuple(required)

    def __repr__(self) -> str:
        return f"Capability({self.name!r})"

    def describe(self) -> Dict[str, Any]:
        """ Return the listing for this capability, in the shape used by the
            ``tools/list`` response.
        """

        schema = {'type': 'object', 'properties': {}, 'required': list(self.required)}

        for argument in self.required:
            schema['properties'][argument] = {}

        return {'name': self.name, 'description': self.description, 'inputSchema': schema}

    def missing(self, arguments: Dict[str, Any]) -> List[str]:
        """ Return the required argument names absent from *arguments*. """

        return [name for name in self.required if name not in arguments]


class CapabilityRegistry:
    """ A mapping of capability names to :class:`Capability` instances. """

    def __init__(self, capabilities: Iterable[Capability] = ()):

        self._capabilities: Dict[str, Capability] = {}
        self._frozen = False
        self._lock = threading.Lock()

        for capability in capabilities:
            self.register(capability)

    def __contains__(self, name: str) -> bool:
        return name in self._capabilities

    def __iter__(self) -> Iterator[Capability]:
        return iter(list(self._capabilities.values()))

    def __len__(self) -> int:
        return len(self._capabilities)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, capability: Capability) -> Capability:
        """ Add a :class:`Capability`. Raises :class:`ValueError` for a
            duplicate name, and :class:`RuntimeError` once the registry
            has been frozen.
        """

        with self._lock:
            if self._frozen:
                raise RuntimeError(f"registry is frozen, cannot add {capability.name!r}")

            if capability.name in self._capabilities:
                raise ValueError(f"duplicate capability name: {capability.name!r}")

            self._capabilities[capability.name] = capability

        return capability

    def add(self, name: str, handler: Handler, description: str = '', required: Sequence[str] = ()) -> Capability:
        """ Convenience wrapper to build and :func:`register` a capability. """

        return self.register(Capability(name, handler, description, required))

    def capability(self, name: Optional[str] = None, description: Optional[str] = None, required: Sequence[str] = ()) -> Callable[[Handler], Handler]:
        """ Decorator form of :func:`add`. The function name and docstring
            are used if *name* or *description* are not specified.
        """

        def decorator(handler: Handler) -> Handler:
            capability_name = name or handler.__name__

            if description is None:
                capability_description = (handler.__doc__ or '').strip()
            else:
                capability_description = description

            self.add(capability_name, handler, capability_description, required)
            return handler

        return decorator

    def freeze(self) -> None:
        """ Disallow any further registration. The mapping is read from the
            I/O thread and the owner thread after this point, and is never
            modified again.
        """

        with self._lock:
            self._frozen = True

    def get(self, name: str) -> Optional[Capability]:
        return self._capabilities.get(name)

    def lookup(self, name: str) -> Optional[Handler]:
        """ Return the handler registered under *name*, or None. """

        capability = self._capabilities.get(name)
        if capability is None:
            return None
        return capability.handler

    def names(self) -> List[str]:
        return list(self._capabilities.keys())

    def describe(self) -> List[Dict[str, Any]]:
        return [capability.describe() for capability in self._capabilities.values()]


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
