# apps/integrations/webhooks.py

"""
Chat webhook delivery

Board events are rendered as Slack Block Kit messages or Discord embeds
and POSTed to each enabled integration of the board.
"""

import logging
from typing import Dict, List, Optional, Tuple

import requests
from django.conf import settings
from django.utils import timezone

from .models import DISCORD, SLACK

logger = logging.getLogger(__name__)

SLACK_URL_PREFIX = 'https://hooks.slack.com/services/'
DISCORD_URL_PREFIXES = ('https://discord.com/api/webhooks/', 'https://discordapp.com/api/webhooks/')

EVENT_LABELS = {
    'card_created': 'New Card Created',
    'card_moved': 'Card Moved',
    'card_edited': 'Card Updated',
    'card_deleted': 'Card Deleted',
    'comment_added': 'New Comment',
    'due_date_set': 'Due Date Set',
    'member_assigned': 'Member Assigned',
}

# event: (slack emoji, discord emoji, embed color)
EVENT_STYLES = {
    'card_created': (':card_file_box:', '📋', 0x3B82F6),
    'card_moved': (':arrows_counterclockwise:', '🔄', 0x8B5CF6),
    'card_edited': (':pencil2:', '✏️', 0xF59E0B),
    'card_deleted': (':wastebasket:', '🗑️', 0xEF4444),
    'comment_added': (':speech_balloon:', '💬', 0x22C55E),
    'due_date_set': (':calendar:', '📅', 0xEC4899),
    'member_assigned': (':bust_in_silhouette:', '👤', 0x14B8A6),
}

BOT_NAME = 'Corkboard'


def valid_webhook_url(integration_type: str, url: str) -> bool:
    if integration_type == SLACK:
        return url.startswith(SLACK_URL_PREFIX)
    if integration_type == DISCORD:
        return url.startswith(DISCORD_URL_PREFIXES)
    return False


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 3] + '...'


def _format_time(moment) -> str:
    return f"{moment:%b} {moment.day}, {moment:%I:%M %p}"


def slack_message(event: str, board_name: str, card: Optional[Dict] = None, user: Optional[Dict] = None,
                  details: Optional[Dict] = None) -> Dict:
    """Block Kit payload for one board event"""
    emoji = EVENT_STYLES[event][0]
    card = card or {}
    details = details or {}

    blocks = [
        {'type': 'header', 'text': {'type': 'plain_text', 'text': f"{emoji} {EVENT_LABELS[event]}", 'emoji': True}},
        {'type': 'divider'},
    ]

    fields = [{'type': 'mrkdwn', 'text': f"*Board:*\n{board_name}"}]
    if card.get('title'):
        fields.append({'type': 'mrkdwn', 'text': f"*Card:*\n{card['title']}"})
    blocks.append({'type': 'section', 'fields': fields})

    extra = None
    if event == 'card_moved' and card.get('columnName'):
        extra = f"*Moved to:*\n{card['columnName']}"
    elif event == 'card_edited' and card.get('description'):
        extra = f"*Description:*\n{truncate(card['description'], 200)}"
    elif event == 'due_date_set' and card.get('dueDate'):
        extra = f"*Due Date:*\n{card['dueDate']}"
    elif event == 'member_assigned' and isinstance(details.get('assignedTo'), dict):
        extra = f"*Assigned To:*\n{details['assignedTo'].get('name', '')}"
    elif event == 'comment_added' and details.get('comment'):
        extra = f"*Comment:*\n{truncate(str(details['comment']), 300)}"
    if extra:
        blocks.append({'type': 'section', 'text': {'type': 'mrkdwn', 'text': extra}})

    author = (user or {}).get('name') or 'someone'
    blocks.append({
        'type': 'context',
        'elements': [{'type': 'mrkdwn', 'text': f"By *{author}* • {_format_time(timezone.now())}"}],
    })

    if card.get('url'):
        blocks.append({
            'type': 'actions',
            'elements': [{
                'type': 'button',
                'text': {'type': 'plain_text', 'text': 'View Card', 'emoji': True},
                'url': card['url'],
                'action_id': 'view_card',
            }],
        })

    return {'blocks': blocks}


def discord_message(event: str, board_name: str, card: Optional[Dict] = None, user: Optional[Dict] = None,
                    details: Optional[Dict] = None) -> Dict:
    _, emoji, color = EVENT_STYLES[event]
    card = card or {}

    fields = [{'name': 'Board', 'value': board_name, 'inline': True}]
    if card.get('title'):
        fields.append({'name': 'Card', 'value': card['title'], 'inline': True})
    if card.get('columnName'):
        fields.append({'name': 'Column', 'value': card['columnName'], 'inline': True})
    if user and user.get('name'):
        fields.append({'name': 'By', 'value': user['name'], 'inline': True})
    for key, value in (details or {}).items():
        fields.append({'name': key.replace('_', ' ').capitalize(), 'value': str(value), 'inline': True})

    embed = {
        'title': f"{emoji} {EVENT_LABELS[event]}",
        'color': color,
        'fields': fields,
        'footer': {'text': BOT_NAME},
        'timestamp': timezone.now().isoformat(),
    }
    if card.get('url'):
        embed['url'] = card['url']

    return {'username': BOT_NAME, 'embeds': [embed]}


def send(integration, payload: Dict) -> Tuple[bool, str]:
    """POSTs one payload, returns (success, error)"""
    try:
        response = requests.post(
            integration.webhook_url,
            json=payload,
            timeout=settings.CORKBOARD_WEBHOOK_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.warning("Webhook %s unreachable: %s", integration.id, e)
        return False, str(e)

    if not response.ok:
        logger.warning("Webhook %s answered HTTP %s", integration.id, response.status_code)
        return False, f"HTTP {response.status_code}"
    return True, ''


def notify(board, event: str, card: Optional[Dict] = None, user: Optional[Dict] = None,
           details: Optional[Dict] = None) -> List[Dict]:
    """Delivers the event to every enabled integration of the board that wants it"""
    results = []
    for integration in board.integrations.filter(enabled=True):
        if not integration.wants(event):
            continue

        render = slack_message if integration.type == SLACK else discord_message
        success, error = send(integration, render(event, board.name, card, user, details))
        result = {'integrationId': integration.id, 'success': success}
        if error:
            result['error'] = error
        results.append(result)

    logger.info("Event %s on board %s delivered to %d integrations", event, board.id, len(results))
    return results
