import logging

import pytest
import tickrpc

from tickrpc import errors, logs


@pytest.fixture
def history():

    history = logs.History(size=5)
    logger = logging.getLogger('tickrpc.test.logs')
    logger.addHandler(history)
    logger.setLevel(logging.DEBUG)

    yield history

    logger.removeHandler(history)


def test_bounded(history):

    logger = logging.getLogger('tickrpc.test.logs')

    for number in range(12):
        logger.info('message %d', number)

    assert len(history) == 5

    entries = history.recent()
    assert [entry['message'] for entry in entries] == ['message %d' % number for number in range(7, 12)]
    assert entries[0]['level'] == 'INFO'
    assert entries[0]['logger'] == 'tickrpc.test.logs'

    assert [entry['message'] for entry in history.recent(2)] == ['message 10', 'message 11']
    assert history.recent(0) == []


def test_clear(history):

    logging.getLogger('tickrpc.test.logs').warning('something')
    assert history.clear() == 1
    assert len(history) == 0
    assert history.clear() == 0


def test_invalid_size():

    with pytest.raises(ValueError):
        logs.History(size=0)


def test_capabilities(history):

    registry = tickrpc.CapabilityRegistry(logs.capabilities(history))
    assert registry.names() == ['bridge_get_logs', 'bridge_clear_logs']

    logger = logging.getLogger('tickrpc.test.logs')
    for number in range(3):
        logger.info('entry %d', number)

    get_logs = registry.lookup('bridge_get_logs')

    result = get_logs({})
    assert result['count'] == 3

    result = get_logs({'count': 1})
    assert result['logs'][0]['message'] == 'entry 2'

    # Every entry is a structured value, ready to go on the wire.
    tickrpc.protocol.value.check(result)

    with pytest.raises(errors.InvalidArguments):
        get_logs({'count': 'all'})

    clear_logs = registry.lookup('bridge_clear_logs')
    assert clear_logs({}) == {'cleared': 3}
    assert get_logs({})['count'] == 0


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
