""" Recent log history, kept in memory so that a remote caller can ask the
    execution side what it has been saying. Attach a :class:`History` to
    any logger (typically the root logger, or ``tickrpc``) and register the
    entries from :func:`capabilities` to expose it.
"""

import collections
import logging
import threading

from . import errors
from .registry import Capability


class History(logging.Handler):
    """ A :class:`logging.Handler` retaining the most recent *size* records,
        each reduced to a small dictionary of structured values.
    """

    def __init__(self, size=100, level=logging.NOTSET):
        logging.Handler.__init__(self, level)

        if size < 1:
            raise ValueError('history size must be at least 1')

        self.records = collections.deque(maxlen=size)
        self.records_lock = threading.Lock()

    def emit(self, record):

        try:
            entry = dict()
            entry['time'] = record.created
            entry['level'] = record.levelname
            entry['logger'] = record.name
            entry['message'] = self.format(record)
        except Exception:
            self.handleError(record)
            return

        with self.records_lock:
            self.records.append(entry)

    def __len__(self):
        with self.records_lock:
            return len(self.records)

    def recent(self, count=None):
        """ Return up to *count* of the most recent entries, oldest first.
            All retained entries are returned if *count* is None.
        """

        with self.records_lock:
            entries = list(self.records)

        if count is not None:
            if count <= 0:
                return []
            entries = entries[-count:]

        return entries

    def clear(self):
        """ Discard every retained entry and return how many there were. """

        with self.records_lock:
            count = len(self.records)
            self.records.clear()

        return count


def capabilities(history):
    """ Return the :class:`tickrpc.registry.Capability` entries exposing
        *history* to callers: ``bridge_get_logs`` with an optional integer
        ``count`` (default 50), and ``bridge_clear_logs``.
    """

    def get_logs(arguments):
        count = arguments.get('count', 50)

        if type(count) is not int:
            raise errors.InvalidArguments(f"count must be an integer, not {count!r}")

        entries = history.recent(count)
        return {'count': len(entries), 'logs': entries}

    def clear_logs(arguments):
        return {'cleared': history.clear()}

    get = Capability('bridge_get_logs', get_logs, 'Return the most recent log messages.')
    clear = Capability('bridge_clear_logs', clear_logs, 'Discard the retained log messages.')

    return [get, clear]


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
