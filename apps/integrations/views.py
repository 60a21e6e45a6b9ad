# apps/integrations/views.py

import logging

from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods, require_POST

from apps.core.models import Board
from apps.core.permissions import BoardPermissions, api_login_required, board_access_required, require_board_role
from apps.core.serializers import iso
from apps.core.utils import log_activity, parse_int, parse_json_body

from . import webhooks
from .models import EVENTS, Integration

logger = logging.getLogger(__name__)


def serialize_integration(integration):
    return {
        'id': integration.id,
        'boardId': integration.board_id,
        'type': integration.type,
        'name': integration.name,
        'webhookUrl': integration.webhook_url,
        'channelId': integration.channel_id,
        'enabled': integration.enabled,
        'events': integration.events,
        'createdAt': iso(integration.created_at),
        'updatedAt': iso(integration.updated_at),
    }


def clean_events(value):
    if not isinstance(value, list) or not value:
        raise ValidationError({'events': ["Pick at least one event"]})
    unknown = [event for event in value if event not in EVENTS]
    if unknown:
        raise ValidationError({'events': [f"Unknown events: {', '.join(map(str, unknown))}"]})
    return list(dict.fromkeys(value))


def clean_string(data, key, max_length):
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError({key: ["This field is required"]})
    return value.strip()[:max_length]


@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'POST'])
@board_access_required(BoardPermissions.ADMIN)
def board_integrations(request, board_id):
    """
    GET  - the board's integrations
    POST - {type, name, webhookUrl, events, channelId?}
    """
    board = request.board

    if request.method == 'GET':
        return JsonResponse({'integrations': [serialize_integration(item) for item in board.integrations.all()]})

    data = parse_json_body(request)
    integration_type = data.get('type')
    if integration_type not in dict(Integration.TYPE_CHOICES):
        raise ValidationError({'type': ["Invalid integration type"]})

    webhook_url = clean_string(data, 'webhookUrl', 500)
    if not webhooks.valid_webhook_url(integration_type, webhook_url):
        raise ValidationError({'webhookUrl': [f"Not a {integration_type} webhook URL"]})

    integration = Integration.objects.create(
        board=board,
        type=integration_type,
        name=clean_string(data, 'name', 100),
        webhook_url=webhook_url,
        channel_id=str(data.get('channelId') or '')[:100],
        events=clean_events(data.get('events')),
        created_by=request.user,
    )
    log_activity(board, request.user, 'integration_added', 'integration', integration.id,
                 details={'type': integration.type, 'name': integration.name})
    logger.info("Integration %s added to board %s", integration.id, board.id)

    return JsonResponse(serialize_integration(integration), status=201)


@csrf_exempt
@api_login_required
@require_http_methods(['PATCH', 'DELETE'])
def integration_detail(request, integration_id):
    integration = get_object_or_404(Integration.objects.select_related('board'), id=integration_id)
    require_board_role(request, integration.board, BoardPermissions.ADMIN)

    if request.method == 'DELETE':
        integration.delete()
        return JsonResponse({'success': True})

    data = parse_json_body(request)
    if 'name' in data:
        integration.name = clean_string(data, 'name', 100)
    if 'webhookUrl' in data:
        webhook_url = clean_string(data, 'webhookUrl', 500)
        if not webhooks.valid_webhook_url(integration.type, webhook_url):
            raise ValidationError({'webhookUrl': [f"Not a {integration.type} webhook URL"]})
        integration.webhook_url = webhook_url
    if 'channelId' in data:
        integration.channel_id = str(data.get('channelId') or '')[:100]
    if 'events' in data:
        integration.events = clean_events(data['events'])
    if 'enabled' in data:
        integration.enabled = bool(data['enabled'])
    integration.save()

    return JsonResponse(serialize_integration(integration))


@csrf_exempt
@api_login_required
@require_POST
def webhook_dispatch(request):
    """
    Sends a board event to the board's integrations

    Body: {event, boardId, card?, details?}
    """
    data = parse_json_body(request)
    event = data.get('event')
    if event not in EVENTS:
        raise ValidationError({'event': ["Invalid event type"]})

    board = get_object_or_404(Board, id=parse_int(data.get('boardId'), default=0))
    require_board_role(request, board, BoardPermissions.EDIT)

    card = data.get('card')
    details = data.get('details')
    if card is not None and not isinstance(card, dict):
        raise ValidationError({'card': ["Must be an object"]})
    if details is not None and not isinstance(details, dict):
        raise ValidationError({'details': ["Must be an object"]})

    user = {'id': request.user.id, 'name': request.user.display_name}
    results = webhooks.notify(board, event, card=card, user=user, details=details)

    return JsonResponse({
        'sent': sum(1 for result in results if result['success']),
        'failed': sum(1 for result in results if not result['success']),
        'results': results,
    })
