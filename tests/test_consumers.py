# tests/test_consumers.py

import pytest
from asgiref.sync import async_to_sync, sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser

from apps.board.realtime import broadcast_board_event
from apps.board.routing import websocket_urlpatterns
from apps.core.models import Board, User


def as_user(user):
    """The URL router with a fixed scope user in place of the auth stack"""
    router = URLRouter(websocket_urlpatterns)

    async def application(scope, receive, send):
        return await router(dict(scope, user=user), receive, send)

    return application


@pytest.fixture
def board_owner(db):
    user = User.objects.create_user('olivia', 'olivia@example.com', 'pw')
    board = Board.objects.create(name='Live', owner=user)
    return board, user


@pytest.mark.django_db(transaction=True)
def test_connect_ping_and_sync(board_owner):
    board, user = board_owner

    async def scenario():
        communicator = WebsocketCommunicator(as_user(user), f'/ws/board/{board.id}/')
        connected, _ = await communicator.connect()
        assert connected

        hello = await communicator.receive_json_from()
        assert hello['type'] == 'connected'
        assert hello['boardId'] == board.id

        await communicator.send_json_to({'type': 'ping'})
        assert (await communicator.receive_json_from())['type'] == 'pong'

        await communicator.send_json_to({'type': 'sync_board'})
        snapshot = await communicator.receive_json_from()
        assert snapshot['type'] == 'board_sync'
        assert [column['name'] for column in snapshot['board']['columns']] == ['To Do', 'In Progress', 'Done']

        await communicator.send_to(text_data='not json')
        assert (await communicator.receive_json_from())['type'] == 'error'

        await communicator.send_to(text_data='[1]')
        assert (await communicator.receive_json_from())['type'] == 'error'

        await communicator.disconnect()

    async_to_sync(scenario)()


@pytest.mark.django_db(transaction=True)
def test_anonymous_and_outsiders_are_rejected(board_owner):
    board, _ = board_owner
    outsider = User.objects.create_user('mallory', 'mallory@example.com', 'pw')

    async def scenario(user):
        communicator = WebsocketCommunicator(as_user(user), f'/ws/board/{board.id}/')
        connected, _ = await communicator.connect()
        await communicator.disconnect()
        return connected

    assert async_to_sync(scenario)(AnonymousUser()) is False
    assert async_to_sync(scenario)(outsider) is False


@pytest.mark.django_db(transaction=True)
def test_rest_events_reach_the_board_group(board_owner):
    board, user = board_owner

    async def scenario():
        communicator = WebsocketCommunicator(as_user(user), f'/ws/board/{board.id}/')
        await communicator.connect()
        await communicator.receive_json_from()

        await sync_to_async(broadcast_board_event)(board.id, 'card_created', {'card': {'id': 7}}, user)
        event = await communicator.receive_json_from()

        await communicator.disconnect()
        return event

    event = async_to_sync(scenario)()

    assert event['type'] == 'card_created'
    assert event['message']['card'] == {'id': 7}
    assert event['message']['userId'] == user.id
