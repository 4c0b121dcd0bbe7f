''' Wrapper module to provide the equivalent of :func:`json.loads` and
    :func:`json.dumps` for everything that goes on the wire. The orjson
    implementation is used throughout; its :func:`dumps` returns bytes, which
    is also what ZeroMQ expects for a message frame.
'''

import orjson


# Keys are not sorted and no whitespace is added; the encoded form is only
# ever read by another machine.

JSONDecodeError = orjson.JSONDecodeError
JSONEncodeError = orjson.JSONEncodeError


def dumps(value):
    ''' Return the JSON encoding of *value* as bytes. Raises
        :class:`TypeError` (specifically :class:`JSONEncodeError`) if the
        value contains something that has no JSON representation, such as
        a dictionary with non-string keys.
    '''

    return orjson.dumps(value)


def loads(encoded):
    ''' Decode the JSON contained in *encoded*, which may be bytes or str.
        Raises :class:`ValueError` (specifically :class:`JSONDecodeError`)
        if the input is not valid JSON.
    '''

    return orjson.loads(encoded)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
