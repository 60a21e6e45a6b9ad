# apps/board/realtime.py

import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

logger = logging.getLogger(__name__)


def board_group_name(board_id):
    return f'board_{board_id}'


def broadcast_board_event(board_id, event_type, message, user=None):
    """
    Pushes an event to every WebSocket connected to the board

    event_type doubles as the consumer handler name.
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return

    payload = dict(message)
    payload.setdefault('timestamp', timezone.now().isoformat())
    if user is not None:
        payload.setdefault('userId', user.id)
        payload.setdefault('userName', user.display_name)

    try:
        async_to_sync(channel_layer.group_send)(
            board_group_name(board_id),
            {
                'type': event_type,
                'message': payload,
            }
        )
    except Exception:
        # A broken channel layer must not fail the HTTP write that triggered it
        logger.exception("Could not broadcast %s to board %s", event_type, board_id)
