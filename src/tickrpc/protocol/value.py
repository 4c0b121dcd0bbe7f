""" The structured-value model. Every argument and every result that crosses
    the wire must be one of: None, a boolean, an integer, a finite float, a
    string, a list of structured values, or a dictionary with string keys and
    structured values. Integers must fit in 64 bits, and containers may not
    be nested more than :data:`max_depth` deep. Anything else is rejected
    rather than coerced; a tuple is not quietly turned into a list, and a
    dictionary with integer keys is not quietly turned into one with string
    keys.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Union

Value = Union[None, bool, int, float, str, List["Value"], Dict[str, "Value"]]

# orjson encodes nothing nested more than 255 deep, and the envelope around
# a value takes a few levels of its own.
max_depth = 250

minimum_int = -2 ** 63
maximum_int = 2 ** 64 - 1

_scalars = (bool, str)


class InvalidValue(TypeError):
    """ The value is outside the structured-value model. The *path* names
        the offending element, such as ``value['points'][2]``.
    """

    def __init__(self, path: str, reason: str):
        TypeError.__init__(self, f"{path}: {reason}")
        self.path = path
        self.reason = reason


def check(value: Any, path: str = 'value') -> Any:
    """ Confirm that *value* is a structured value, and return it unchanged.
        Raises :class:`InvalidValue` describing the first violation found.
    """

    # Containers are walked iteratively so that deeply nested values cannot
    # exhaust the interpreter stack.

    pending = [(value, path, 0)]

    while pending:
        item, where, depth = pending.pop()

        if item is None or type(item) in _scalars:
            continue

        if type(item) is int:
            if item < minimum_int or item > maximum_int:
                raise InvalidValue(where, f"integer {item} does not fit in 64 bits")
            continue

        if type(item) is float:
            if not math.isfinite(item):
                raise InvalidValue(where, f"non-finite float {item!r}")
            continue

        if type(item) is list or type(item) is dict:
            depth += 1
            if depth > max_depth:
                raise InvalidValue(where, f"nested more than {max_depth} deep")

        if type(item) is list:
            for index, element in enumerate(item):
                pending.append((element, f"{where}[{index}]", depth))
            continue

        if type(item) is dict:
            for key, element in item.items():
                if type(key) is not str:
                    raise InvalidValue(where, f"dictionary key {key!r} is not a string")
                pending.append((element, f"{where}[{key!r}]", depth))
            continue

        raise InvalidValue(where, f"unsupported type {type(item).__name__}")

    return value


def is_value(value: Any) -> bool:
    """ Return True if *value* is a structured value, otherwise False. """

    try:
        check(value)
    except InvalidValue:
        return False
    return True


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
