# tests/test_offline_client.py

from functools import partial
from io import StringIO
from unittest import mock

import pytest
from django.core.management import CommandError, call_command

from apps.offline.client import build_offline_client
from apps.offline.local_store import BOARDS, LocalStore, PendingOperation

from .fakes import FakeTransport

BASE_URL = 'http://corkboard.test'
HEALTH = f'{BASE_URL}/api/health'
CARDS = f'{BASE_URL}/api/cards'


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(transport):
    offline_client = build_offline_client(BASE_URL, transport=transport)
    yield offline_client
    offline_client.close()


def test_writes_are_queued_while_offline(client, transport):
    assert client.mutate('card', 'POST', '/api/cards', {'title': 'a'}) is None

    assert client.store.pending_count() == 1
    assert transport.sent == []


def test_writes_go_straight_out_while_online(client, transport):
    transport.routes[CARDS] = (201, b'{"id": 1}')
    client.monitor.set_online()

    response = client.mutate('card', 'POST', '/api/cards', {'title': 'a'})

    assert response.status_code == 201
    assert client.store.pending_count() == 0


def test_network_error_queues_and_goes_offline(client):
    client.monitor.set_online()

    assert client.mutate('card', 'POST', '/api/cards', {'title': 'a'}) is None

    assert client.store.pending_count() == 1
    assert not client.monitor.is_online


def test_reconnect_drains_the_queue(client, transport):
    client.mutate('card', 'POST', '/api/cards', {'title': 'a'})
    client.mutate('card', 'POST', '/api/cards', {'title': 'b'})

    transport.routes[HEALTH] = (200, b'')
    transport.routes[CARDS] = (201, b'{}')
    assert client.check_connection()

    assert client.store.pending_count() == 0
    assert transport.sent == [('HEAD', HEALTH), ('POST', CARDS), ('POST', CARDS)]
    status = client.status()
    assert status['isOnline']
    assert status['pendingOperations'] == 0
    assert status['lastSyncTime'] is not None


def test_control_messages_reach_the_store(client):
    client.handle_message({'type': 'CACHE_BOARD', 'board': {'id': 2, 'name': 'Ops', 'columns': []}})
    assert client.store.get(BOARDS, 2)['name'] == 'Ops'

    client.handle_message({'type': 'CLEAR_OFFLINE_DATA'})
    assert client.store.get(BOARDS, 2) is None


def test_reads_use_the_cache(client, transport):
    url = f'{BASE_URL}/api/boards'
    transport.routes[url] = (200, b'{"boards": []}')
    client.get('/api/boards')

    transport.routes.clear()

    assert client.get('/api/boards').json() == {'boards': []}


# === Management command ===

@pytest.fixture
def store_path(tmp_path):
    path = str(tmp_path / 'offline.sqlite3')
    local_store = LocalStore(path)
    local_store.add_pending_operation(PendingOperation.create('card', 'POST', '/api/cards', {'title': 'a'}))
    local_store.close()
    return path


def run_offline(transport, *args, **options):
    out = StringIO()
    factory = partial(build_offline_client, transport=transport)
    with mock.patch('apps.offline.management.commands.offline.build_offline_client', factory):
        call_command('offline', *args, base_url=BASE_URL, stdout=out, **options)
    return out.getvalue()


def test_status_command_does_not_sync(store_path):
    transport = FakeTransport({HEALTH: (200, b''), CARDS: (201, b'{}')})

    output = run_offline(transport, 'status', store=store_path)

    assert 'Pending operations: 1' in output
    assert 'POST /api/cards' in output
    assert ('POST', CARDS) not in transport.sent


def test_sync_command(store_path):
    transport = FakeTransport({HEALTH: (200, b''), CARDS: (201, b'{}')})

    output = run_offline(transport, 'sync', store=store_path)

    assert '1 synced, 0 failed, 0 remaining' in output
    local_store = LocalStore(store_path)
    assert local_store.pending_count() == 0
    local_store.close()


def test_sync_command_signs_in_first(store_path):
    signin = f'{BASE_URL}/api/auth/signin'
    transport = FakeTransport({HEALTH: (200, b''), CARDS: (201, b'{}'), signin: (200, b'{}')})

    run_offline(transport, 'sync', store=store_path, username='demo', password='demo12345')

    assert transport.sent[0] == ('POST', signin)


def test_sync_command_unreachable_server(store_path):
    with pytest.raises(CommandError):
        run_offline(FakeTransport(), 'sync', store=store_path)


def test_clear_command(store_path):
    output = run_offline(FakeTransport(), 'clear', store=store_path)

    assert 'cleared' in output
    local_store = LocalStore(store_path)
    assert local_store.pending_count() == 0
    local_store.close()
