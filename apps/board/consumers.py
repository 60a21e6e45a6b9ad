# apps/board/consumers.py

import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.conf import settings
from django.utils import timezone

from apps.core.models import Board
from apps.core.permissions import BoardPermissions
from apps.core.serializers import serialize_board
from .realtime import board_group_name

logger = logging.getLogger(__name__)


class BoardConsumer(AsyncWebsocketConsumer):
    """
    WebSocket consumer for real-time board updates

    - card and column changes pushed by the REST views
    - new comments
    - who is online and who is typing
    - full board snapshot on request
    """

    async def connect(self):
        """
        Joins the board group

        Only authenticated users that can view the board get in.
        """
        self.board_id = int(self.scope['url_route']['kwargs']['board_id'])
        self.user = self.scope['user']

        if not self.user.is_authenticated:
            logger.warning("WebSocket rejected - anonymous user on board %s", self.board_id)
            await self.close()
            return

        has_access = await self.check_board_access()
        if not has_access:
            logger.warning("WebSocket rejected - %s has no access to board %s", self.user.username, self.board_id)
            await self.close()
            return

        self.board_group_name = board_group_name(self.board_id)
        await self.channel_layer.group_add(self.board_group_name, self.channel_name)
        await self.accept()

        await self.send(text_data=json.dumps({
            'type': 'connected',
            'boardId': self.board_id,
            'heartbeat': settings.CORKBOARD_WS_HEARTBEAT_INTERVAL,
            'timestamp': self.get_timestamp(),
        }))

        await self.channel_layer.group_send(
            self.board_group_name,
            {
                'type': 'user_joined',
                'message': self.presence_message(),
            }
        )

        logger.info("WebSocket connected - %s on board %s", self.user.username, self.board_id)

    async def disconnect(self, close_code):
        if hasattr(self, 'board_group_name'):
            await self.channel_layer.group_send(
                self.board_group_name,
                {
                    'type': 'user_left',
                    'message': self.presence_message(),
                }
            )
            await self.channel_layer.group_discard(self.board_group_name, self.channel_name)

            logger.info("WebSocket disconnected - %s from board %s", self.user.username, self.board_id)

    async def receive(self, text_data=None, bytes_data=None):
        """
        Client messages: ping, typing, sync_board
        """
        try:
            data = json.loads(text_data or '')
        except json.JSONDecodeError:
            logger.error("Invalid JSON over WebSocket from %s", self.user.username)
            await self.send(text_data=json.dumps({'type': 'error', 'error': 'Invalid JSON'}))
            return

        if not isinstance(data, dict):
            await self.send(text_data=json.dumps({'type': 'error', 'error': 'Message must be a JSON object'}))
            return

        message_type = data.get('type')

        if message_type == 'ping':
            await self.send(text_data=json.dumps({
                'type': 'pong',
                'timestamp': self.get_timestamp(),
            }))

        elif message_type == 'typing':
            message = self.presence_message()
            message.update({
                'cardId': data.get('cardId'),
                'isTyping': bool(data.get('isTyping', True)),
            })
            await self.channel_layer.group_send(
                self.board_group_name,
                {
                    'type': 'user_typing',
                    'message': message,
                }
            )

        elif message_type == 'sync_board':
            board_data = await self.get_board_state()
            await self.send(text_data=json.dumps({
                'type': 'board_sync',
                'board': board_data,
                'timestamp': self.get_timestamp(),
            }))

        else:
            logger.debug("Ignoring WebSocket message type %r", message_type)

    # === Group event handlers ===

    async def forward(self, event):
        await self.send(text_data=json.dumps({
            'type': event['type'],
            'message': event['message'],
        }))

    async def forward_to_others(self, event):
        """Presence events are not echoed back to their author"""
        if event['message'].get('userId') != self.user.id:
            await self.forward(event)

    async def card_created(self, event):
        await self.forward(event)

    async def card_updated(self, event):
        await self.forward(event)

    async def card_moved(self, event):
        await self.forward(event)

    async def card_deleted(self, event):
        await self.forward(event)

    async def column_created(self, event):
        await self.forward(event)

    async def column_updated(self, event):
        await self.forward(event)

    async def column_deleted(self, event):
        await self.forward(event)

    async def comment_added(self, event):
        await self.forward(event)

    async def board_refresh(self, event):
        await self.forward(event)

    async def user_joined(self, event):
        await self.forward_to_others(event)

    async def user_left(self, event):
        await self.forward_to_others(event)

    async def user_typing(self, event):
        await self.forward_to_others(event)

    # === Helpers ===

    def presence_message(self):
        return {
            'userId': self.user.id,
            'userName': self.user.display_name,
            'timestamp': self.get_timestamp(),
        }

    @database_sync_to_async
    def check_board_access(self):
        board = Board.objects.filter(id=self.board_id).first()
        if board is None:
            return False
        return BoardPermissions.can_view(self.user, board)

    @database_sync_to_async
    def get_board_state(self):
        """Nested snapshot of the board"""
        board = Board.objects.filter(id=self.board_id).first()
        if board is None:
            return {}
        return serialize_board(board, nested=True)

    def get_timestamp(self):
        return timezone.now().isoformat()
