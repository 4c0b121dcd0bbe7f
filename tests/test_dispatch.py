import pytest
import tickrpc

from tickrpc import errors
from tickrpc.dispatch import Dispatcher
from tickrpc.executor import ThreadAffinityExecutor
from tickrpc.pending import PendingCallTable
from tickrpc.protocol import codec


@pytest.fixture
def dispatcher(connection, registry):

    executor = ThreadAffinityExecutor(registry)
    info = {'protocolVersion': '2024-11-05', 'serverInfo': {'name': 'test', 'version': '0'}}
    dispatcher = Dispatcher(connection, executor, registry, server_info=info)
    connection.up()
    return dispatcher


def request(call_id, method, params=None):
    return codec.encode_request(call_id, method, params)


def test_scenario_a(connection, dispatcher, registry):

    connection.receive(b'{"id":"1","method":"tools/call","params":{"name":"echo","arguments":{"x":5}}}')

    # Nothing is executed until the owner thread drains the queue.
    assert connection.sent == []
    assert registry.calls == []

    dispatcher.executor.drain_once()

    assert registry.calls == [('echo', {'x': 5})]
    assert connection.decoded() == [{'jsonrpc': '2.0', 'id': '1', 'result': {'x': 5}}]


def test_scenario_b(connection, dispatcher, registry):

    connection.receive(request('1', 'tools/call', {'name': 'echo', 'arguments': {'x': 1}}))
    connection.receive(request('2', 'tools/call', {'name': 'echo', 'arguments': {'x': 2}}))

    assert dispatcher.executor.drain_once() == 2
    assert registry.calls == [('echo', {'x': 1}), ('echo', {'x': 2})]

    responses = connection.decoded()
    assert [response['id'] for response in responses] == ['1', '2']
    assert [response['result'] for response in responses] == [{'x': 1}, {'x': 2}]


def test_unknown_capability(connection, dispatcher, registry):

    connection.receive(request('1', 'tools/call', {'name': 'nope', 'arguments': {}}))

    # Answered straight away, without queueing anything.

    assert len(dispatcher.executor) == 0
    assert registry.calls == []

    response = connection.decoded()[0]
    assert response['id'] == '1'
    assert response['error']['code'] == -32601
    assert response['error']['message'] == '[nope] Unknown method: nope'
    assert response['error']['data'] == {'kind': 'UnknownMethod', 'method': 'nope'}


def test_unknown_method(connection, dispatcher):

    connection.receive(request('1', 'resources/list'))

    response = connection.decoded()[0]
    assert response['error']['data']['kind'] == 'UnknownMethod'
    assert 'Unknown method: resources/list' in response['error']['message']


@pytest.mark.parametrize('params', (
    {},
    {'name': 5},
    {'name': ''},
    {'name': 'echo', 'arguments': [1]},
    {'name': 'echo', 'arguments': 'x'},
    {'name': 'echo', 'arguments': {}},
    {'name': 'echo'},
))
def test_invalid_arguments(connection, dispatcher, registry, params):

    connection.receive(request('1', 'tools/call', params))

    assert len(dispatcher.executor) == 0
    assert registry.calls == []

    response = connection.decoded()[0]
    assert response['error']['code'] == -32602
    assert response['error']['data']['kind'] == 'InvalidArguments'


def test_handler_failure(connection, dispatcher):

    connection.receive(request('9', 'tools/call', {'name': 'fail'}))
    dispatcher.executor.drain_once()

    response = connection.decoded()[0]
    assert response['id'] == '9'
    assert response['error']['code'] == -32000
    assert response['error']['message'] == '[fail] ValueError: nope'


def test_initialize(connection, dispatcher):

    connection.receive(request('1', 'initialize', {'protocolVersion': '2024-11-05'}))

    response = connection.decoded()[0]
    assert response['result']['protocolVersion'] == '2024-11-05'
    assert response['result']['serverInfo']['name'] == 'test'


def test_list(connection, dispatcher):

    connection.receive(request('1', 'tools/list'))

    tools = connection.decoded()[0]['result']['tools']
    assert [tool['name'] for tool in tools] == ['echo', 'fail']
    assert tools[0]['description'] == 'Return the arguments unchanged.'


def test_ping(connection, dispatcher):

    connection.receive(request('1', 'ping'))

    result = connection.decoded()[0]['result']
    assert result['pong'] is True
    assert result['time'] > 0


def test_malformed(connection, dispatcher):

    connection.receive(b'garbage')
    assert connection.sent == []

    connection.receive(b'{"jsonrpc": "2.0", "id": "3", "method": 12}')

    response = connection.decoded()[0]
    assert response['id'] == '3'
    assert response['error']['data']['kind'] == 'ProtocolError'


def test_stale_session(connection, dispatcher, registry):

    connection.receive(request('1', 'tools/call', {'name': 'echo', 'arguments': {'x': 1}}))

    # The peer is replaced before the handler runs; the response belongs to
    # the old session and is never sent to the new peer.

    connection.down()
    connection.up()

    dispatcher.executor.drain_once()

    assert registry.calls == [('echo', {'x': 1})]
    assert connection.sent == []


def test_shutdown(connection, dispatcher):

    connection.receive(request('1', 'tools/call', {'name': 'echo', 'arguments': {'x': 1}}))
    dispatcher.executor.shutdown('going away')

    response = connection.decoded()[0]
    assert response['error']['data']['kind'] == 'ShuttingDown'


def test_unencodable_result(connection):

    registry = tickrpc.CapabilityRegistry()
    registry.add('tuple', lambda arguments: (1, 2))
    executor = ThreadAffinityExecutor(registry)
    Dispatcher(connection, executor)
    connection.up()

    connection.receive(request('1', 'tools/call', {'name': 'tuple'}))
    executor.drain_once()

    response = connection.decoded()[0]
    assert response['error']['data']['kind'] == 'HandlerFailure'


def deeply_nested(levels):

    deep = list()
    current = deep
    for level in range(levels - 1):
        inner = list()
        current.append(inner)
        current = inner

    return deep


@pytest.mark.parametrize('result', (2 ** 70, -2 ** 64, deeply_nested(300)))
def test_result_beyond_the_wire(connection, result):

    registry = tickrpc.CapabilityRegistry()
    registry.add('oversized', lambda arguments: result)
    executor = ThreadAffinityExecutor(registry)
    Dispatcher(connection, executor)
    connection.up()

    connection.receive(request('1', 'tools/call', {'name': 'oversized'}))
    executor.drain_once()

    # Every request gets exactly one response, even when the result is
    # something the encoder cannot represent.

    responses = connection.decoded()
    assert len(responses) == 1
    assert responses[0]['id'] == '1'
    assert responses[0]['error']['data'] == {'kind': 'HandlerFailure', 'method': 'oversized'}


def test_encoder_refuses_result(connection, dispatcher, monkeypatch):

    def refuse(call_id, result):
        raise tickrpc.json.JSONEncodeError('Recursion limit reached')

    monkeypatch.setattr(codec, 'encode_result', refuse)

    connection.receive(request('1', 'tools/call', {'name': 'echo', 'arguments': {'x': 1}}))
    dispatcher.executor.drain_once()

    response = connection.decoded()[0]
    assert response['id'] == '1'
    assert response['error']['data']['kind'] == 'HandlerFailure'
    assert 'Recursion limit reached' in response['error']['message']


def test_shared_failure(connection):

    shared = errors.InvalidArguments('out of range')

    def raises(arguments):
        raise shared

    registry = tickrpc.CapabilityRegistry()
    registry.add('first', raises)
    registry.add('second', lambda arguments: shared)
    executor = ThreadAffinityExecutor(registry)
    Dispatcher(connection, executor)
    connection.up()

    connection.receive(request('1', 'tools/call', {'name': 'first'}))
    connection.receive(request('2', 'tools/call', {'name': 'second'}))
    executor.drain_once()

    responses = connection.decoded()
    assert [response['error']['message'] for response in responses] == ['[first] out of range', '[second] out of range']
    assert shared.method is None


def test_responses(connection):

    pending = PendingCallTable()
    Dispatcher(connection, pending=pending)
    connection.up()

    future = pending.register('a')
    connection.receive(codec.encode_result('a', [1, 2, 3]))
    assert future.result(0) == [1, 2, 3]

    future = pending.register('b')
    connection.receive(codec.encode_error('b', errors.Timeout('too slow', 'x')))

    with pytest.raises(errors.Timeout):
        future.result(0)

    # Responses for nobody are dropped.
    connection.receive(codec.encode_result('c', None))
    assert len(pending) == 0


def test_requests_without_executor(connection):

    Dispatcher(connection, pending=PendingCallTable())
    connection.up()

    connection.receive(request('1', 'tools/call', {'name': 'echo', 'arguments': {'x': 1}}))

    response = connection.decoded()[0]
    assert response['error']['data']['kind'] == 'UnknownMethod'


def test_responses_without_pending(connection, dispatcher):

    connection.receive(codec.encode_result('a', 1))
    assert connection.sent == []


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
