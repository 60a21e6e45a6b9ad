# apps/board/views.py

import logging

from django.conf import settings
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.db.models import Case, Count, F, IntegerField, Q, Value, When
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from apps.core import template_service
from apps.core.models import (
    Activity, Attachment, Board, BoardMember, BoardShare, Card, CardRelation, CardVote, Checklist,
    ChecklistItem, Column, Comment, Label, Poll, PollOption, PollVote, User, generate_share_token
)
from apps.core.permissions import (
    BoardPermissions,
    api_login_required,
    board_access_required,
    card_access_required,
    require_board_role,
)
from apps.core.serializers import (
    serialize_activity, serialize_attachment, serialize_board, serialize_card,
    serialize_checklist, serialize_checklist_item, serialize_column, serialize_comment,
    serialize_label, serialize_poll, serialize_relation, serialize_share, serialize_user
)
from apps.core.utils import (
    board_statistics, due_date_filter, log_activity, move_card, next_position,
    parse_datetime_value, parse_int, parse_json_body, reorder_columns
)
from .realtime import broadcast_board_event

logger = logging.getLogger(__name__)

VIEW = BoardPermissions.VIEW
EDIT = BoardPermissions.EDIT
ADMIN = BoardPermissions.ADMIN


# === VALIDATION HELPERS ===

def clean_text(data, key, max_length, required=True, default=''):
    """Trimmed string field from a JSON body"""
    value = data.get(key, None)
    if value is None:
        if required:
            raise ValidationError({key: ["This field is required"]})
        return default
    if not isinstance(value, str):
        raise ValidationError({key: ["Must be a string"]})
    value = value.strip()
    if required and not value:
        raise ValidationError({key: ["This field cannot be blank"]})
    if len(value) > max_length:
        raise ValidationError({key: [f"At most {max_length} characters"]})
    return value


def clean_id_list(data, key):
    value = data.get(key) or []
    if not isinstance(value, list):
        raise ValidationError({key: ["Must be a list"]})
    try:
        return [int(item) for item in value]
    except (TypeError, ValueError):
        raise ValidationError({key: ["Must be a list of ids"]})


def board_members_by_id(board, user_ids):
    """Users by id, all of them members of the board"""
    users = list(User.objects.filter(
        Q(id__in=user_ids),
        Q(memberships__board=board) | Q(owned_boards=board),
    ).distinct())
    if len(users) != len(set(user_ids)):
        raise ValidationError({'assigneeIds': ["Assignees must be board members"]})
    return users


def board_labels_by_id(board, label_ids):
    labels = list(Label.objects.filter(board=board, id__in=label_ids))
    if len(labels) != len(set(label_ids)):
        raise ValidationError({'labelIds': ["Labels must belong to the board"]})
    return labels


# === BOARDS ===

@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'POST'])
def boards_collection(request):
    """
    GET  - boards the user can see
    POST - creates a board owned by the user
    """
    if request.method == 'GET':
        boards = (
            BoardPermissions.visible_boards(request.user)
            .annotate(
                columns_count=Count('columns', distinct=True),
                members_count=Count('memberships', distinct=True),
            )
        )
        roles = dict(
            BoardMember.objects.filter(user=request.user).values_list('board_id', 'role')
        )

        data = []
        for board in boards:
            item = serialize_board(board)
            item['columnsCount'] = board.columns_count
            item['membersCount'] = board.members_count
            item['role'] = BoardMember.ROLE_ADMIN if board.owner_id == request.user.id else roles.get(board.id)
            data.append(item)

        return JsonResponse({'boards': data})

    data = parse_json_body(request)
    board = Board.objects.create(
        name=clean_text(data, 'name', 200),
        description=clean_text(data, 'description', 5000, required=False),
        color=clean_text(data, 'color', 20, required=False, default='#3B82F6') or '#3B82F6',
        owner=request.user,
    )
    log_activity(board, request.user, 'board_created', 'board', board.id, details={'name': board.name})
    logger.info("Board %s created by %s", board.id, request.user.username)

    return JsonResponse(serialize_board(board, nested=True), status=201)


@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'PATCH', 'PUT', 'DELETE'])
@board_access_required(VIEW, write_required=EDIT)
def board_detail(request, board_id):
    board = request.board

    if request.method == 'GET':
        data = serialize_board(board, nested=True)
        data['role'] = request.board_role
        return JsonResponse(data)

    if request.method == 'DELETE':
        require_board_role(request, board, ADMIN)
        board.delete()
        logger.info("Board %s deleted by %s", board_id, request.user.username)
        broadcast_board_event(board_id, 'board_refresh', {'boardId': board_id, 'deleted': True}, request.user)
        return JsonResponse({'success': True})

    data = parse_json_body(request)
    changes = {}
    if 'name' in data:
        board.name = changes['name'] = clean_text(data, 'name', 200)
    if 'description' in data:
        board.description = changes['description'] = clean_text(data, 'description', 5000, required=False)
    if 'color' in data:
        board.color = changes['color'] = clean_text(data, 'color', 20)
    board.save()

    log_activity(board, request.user, 'board_updated', 'board', board.id, details=changes)
    broadcast_board_event(board.id, 'board_refresh', {'boardId': board.id}, request.user)
    return JsonResponse(serialize_board(board))


@require_GET
@api_login_required
@board_access_required(VIEW)
def board_stats(request, board_id):
    return JsonResponse(board_statistics(request.board))


# === COLUMNS ===

@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'POST'])
@board_access_required(VIEW, write_required=EDIT)
def board_columns(request, board_id):
    board = request.board

    if request.method == 'GET':
        return JsonResponse({
            'columns': [serialize_column(column, with_cards=True) for column in board.columns.all()]
        })

    data = parse_json_body(request)
    wip_limit = parse_int(data.get('wipLimit'), default=0)
    position = data.get('position')

    with transaction.atomic():
        if position is None:
            position = next_position(board.columns.all())
        else:
            position = parse_int(position, default=0)
            board.columns.filter(position__gte=position).update(position=F('position') + 1)

        column = Column.objects.create(
            board=board,
            name=clean_text(data, 'name', 50),
            position=position,
            wip_limit=wip_limit,
            color=clean_text(data, 'color', 20, required=False),
        )

    log_activity(board, request.user, 'column_created', 'column', column.id, details={'name': column.name})
    payload = serialize_column(column)
    broadcast_board_event(board.id, 'column_created', {'column': payload}, request.user)
    return JsonResponse(payload, status=201)


@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'PUT', 'PATCH', 'DELETE'])
@board_access_required(VIEW, write_required=EDIT)
def column_detail(request, board_id, column_id):
    board = request.board
    column = get_object_or_404(Column, id=column_id, board=board)

    if request.method == 'GET':
        return JsonResponse(serialize_column(column, with_cards=True))

    if request.method == 'DELETE':
        require_board_role(request, board, ADMIN)
        with transaction.atomic():
            column.delete()
            remaining = list(board.columns.all())
            for position, item in enumerate(remaining):
                item.position = position
            Column.objects.bulk_update(remaining, ['position'])

        log_activity(board, request.user, 'column_deleted', 'column', column_id, details={'name': column.name})
        broadcast_board_event(board.id, 'column_deleted', {'columnId': column_id}, request.user)
        return JsonResponse({'success': True})

    data = parse_json_body(request)
    if 'name' in data:
        column.name = clean_text(data, 'name', 50)
    if 'wipLimit' in data:
        column.wip_limit = parse_int(data.get('wipLimit'), default=0)
    if 'color' in data:
        column.color = clean_text(data, 'color', 20, required=False)
    column.save()

    if 'position' in data:
        ids = [item.id for item in board.columns.exclude(id=column.id)]
        target = max(0, min(parse_int(data['position'], default=0), len(ids)))
        ids.insert(target, column.id)
        reorder_columns(board, ids)
        column.refresh_from_db()

    log_activity(board, request.user, 'column_updated', 'column', column.id, details={'name': column.name})
    payload = serialize_column(column)
    broadcast_board_event(board.id, 'column_updated', {'column': payload}, request.user)
    return JsonResponse(payload)


@csrf_exempt
@api_login_required
@require_POST
@board_access_required(EDIT)
def columns_reorder(request, board_id):
    board = request.board
    data = parse_json_body(request)

    column_ids = data.get('columnIds')
    if not isinstance(column_ids, list):
        raise ValidationError({'columnIds': ["Must be a list"]})

    columns = reorder_columns(board, column_ids)
    log_activity(board, request.user, 'columns_reordered', 'board', board.id,
                 details={'columnIds': [column.id for column in columns]})
    broadcast_board_event(board.id, 'board_refresh', {'boardId': board.id}, request.user)
    return JsonResponse({'columns': [serialize_column(column) for column in columns]})


# === CARDS ===

@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'POST'])
def cards_collection(request):
    """
    GET  - cards visible to the user, ?boardId= narrows to one board
    POST - creates a card in columnId
    """
    if request.method == 'GET':
        cards = Card.objects.filter(
            column__board__in=BoardPermissions.visible_boards(request.user),
        ).select_related('column').prefetch_related('assignees', 'labels')

        board_id = request.GET.get('boardId')
        if board_id:
            board = get_object_or_404(Board, id=parse_int(board_id, default=0))
            require_board_role(request, board, VIEW)
            cards = cards.filter(column__board=board)

        if request.GET.get('archived') not in ('1', 'true'):
            cards = cards.filter(archived=False)

        cards = cards.order_by('column__position', 'position', 'id')
        return JsonResponse({'cards': [serialize_card(card) for card in cards]})

    data = parse_json_body(request)
    column_id = data.get('columnId')
    if column_id is None:
        raise ValidationError({'columnId': ["This field is required"]})

    column = get_object_or_404(Column.objects.select_related('board'), id=parse_int(column_id, default=0))
    board = require_board_role(request, column.board, EDIT)

    if not column.can_add_card():
        raise ValidationError(f"WIP limit reached for column '{column.name}'")

    title = clean_text(data, 'title', 200)
    assignees = board_members_by_id(board, clean_id_list(data, 'assigneeIds'))
    labels = board_labels_by_id(board, clean_id_list(data, 'labelIds'))

    with transaction.atomic():
        card = Card.objects.create(
            column=column,
            title=title,
            description=clean_text(data, 'description', 20000, required=False),
            position=next_position(column.cards.all()),
            due_date=parse_datetime_value(data.get('dueDate')),
            color=clean_text(data, 'color', 20, required=False),
            created_by=request.user,
        )
        card.assignees.set(assignees)
        card.labels.set(labels)

        if data.get('position') is not None:
            move_card(card, column, data.get('position'))

    log_activity(board, request.user, 'card_created', 'card', card.id, card=card,
                 details={'title': card.title, 'columnId': column.id})
    payload = serialize_card(card)
    broadcast_board_event(board.id, 'card_created', {'card': payload}, request.user)
    return JsonResponse(payload, status=201)


@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'PUT', 'PATCH', 'DELETE'])
@card_access_required(VIEW, write_required=EDIT)
def card_detail(request, card_id):
    card = request.card
    board = request.board

    if request.method == 'GET':
        return JsonResponse(serialize_card(card, detail=True))

    if request.method == 'DELETE':
        column_id = card.column_id
        with transaction.atomic():
            card.delete()
            remaining = list(Card.objects.filter(column_id=column_id).order_by('position', 'id'))
            for position, item in enumerate(remaining):
                item.position = position
            Card.objects.bulk_update(remaining, ['position'])

        log_activity(board, request.user, 'card_deleted', 'card', card_id, details={'title': card.title})
        broadcast_board_event(board.id, 'card_deleted', {'cardId': card_id, 'columnId': column_id}, request.user)
        return JsonResponse({'success': True})

    data = parse_json_body(request)
    changes = []

    with transaction.atomic():
        if 'title' in data:
            card.title = clean_text(data, 'title', 200)
            changes.append('title')
        if 'description' in data:
            card.description = clean_text(data, 'description', 20000, required=False)
            changes.append('description')
        if 'dueDate' in data:
            card.due_date = parse_datetime_value(data.get('dueDate'))
            changes.append('dueDate')
        if 'color' in data:
            card.color = clean_text(data, 'color', 20, required=False)
            changes.append('color')
        if 'archived' in data:
            card.archived = bool(data.get('archived'))
            changes.append('archived')
        card.save()

        if 'assigneeIds' in data:
            card.assignees.set(board_members_by_id(board, clean_id_list(data, 'assigneeIds')))
            changes.append('assignees')
        if 'labelIds' in data:
            card.labels.set(board_labels_by_id(board, clean_id_list(data, 'labelIds')))
            changes.append('labels')

        moved = False
        if 'columnId' in data or 'position' in data:
            source_id = card.column_id
            target = card.column
            if data.get('columnId') is not None and parse_int(data['columnId'], default=0) != card.column_id:
                target = get_object_or_404(Column, id=parse_int(data['columnId'], default=0), board=board)
            move_card(card, target, data.get('position'))
            moved = target.id != source_id

    if moved:
        log_activity(board, request.user, 'card_moved', 'card', card.id, card=card,
                     details={'title': card.title, 'fromColumnId': source_id, 'toColumnId': card.column_id})
    else:
        log_activity(board, request.user, 'card_updated', 'card', card.id, card=card,
                     details={'title': card.title, 'fields': changes})

    payload = serialize_card(card)
    broadcast_board_event(board.id, 'card_moved' if moved else 'card_updated', {'card': payload}, request.user)
    return JsonResponse(payload)


@csrf_exempt
@api_login_required
@require_POST
@card_access_required(EDIT)
def card_move(request, card_id):
    """
    Drag-and-drop endpoint

    Body: {"columnId": ..., "position": ...}
    """
    card = request.card
    board = request.board
    data = parse_json_body(request)

    column_id = data.get('columnId', card.column_id)
    target = get_object_or_404(Column, id=parse_int(column_id, default=0), board=board)
    source = card.column

    move_card(card, target, data.get('position'))

    log_activity(board, request.user, 'card_moved', 'card', card.id, card=card, details={
        'title': card.title,
        'fromColumnId': source.id,
        'fromColumn': source.name,
        'toColumnId': target.id,
        'toColumn': target.name,
        'position': card.position,
    })
    payload = serialize_card(card)
    broadcast_board_event(board.id, 'card_moved', {
        'card': payload,
        'fromColumnId': source.id,
        'toColumnId': target.id,
    }, request.user)
    return JsonResponse(payload)


# === LABELS ===

@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'POST'])
@board_access_required(VIEW, write_required=EDIT)
def board_labels(request, board_id):
    board = request.board

    if request.method == 'GET':
        return JsonResponse({'labels': [serialize_label(label) for label in board.labels.all()]})

    data = parse_json_body(request)
    label = Label.objects.create(
        board=board,
        name=clean_text(data, 'name', 50),
        color=clean_text(data, 'color', 20),
    )
    log_activity(board, request.user, 'label_created', 'label', label.id, details={'name': label.name})
    return JsonResponse(serialize_label(label), status=201)


@csrf_exempt
@api_login_required
@require_http_methods(['PATCH', 'PUT', 'DELETE'])
def label_detail(request, label_id):
    label = get_object_or_404(Label.objects.select_related('board'), id=label_id)
    board = require_board_role(request, label.board, EDIT)

    if request.method == 'DELETE':
        label.delete()
        log_activity(board, request.user, 'label_deleted', 'label', label_id, details={'name': label.name})
        broadcast_board_event(board.id, 'board_refresh', {'boardId': board.id}, request.user)
        return JsonResponse({'success': True})

    data = parse_json_body(request)
    if 'name' in data:
        label.name = clean_text(data, 'name', 50)
    if 'color' in data:
        label.color = clean_text(data, 'color', 20)
    label.save()

    log_activity(board, request.user, 'label_updated', 'label', label.id, details={'name': label.name})
    return JsonResponse(serialize_label(label))


@csrf_exempt
@api_login_required
@require_http_methods(['POST', 'DELETE'])
@card_access_required(EDIT)
def card_label(request, card_id, label_id):
    card = request.card
    label = get_object_or_404(Label, id=label_id)
    if label.board_id != request.board.id:
        raise ValidationError("Label belongs to another board")

    if request.method == 'POST':
        card.labels.add(label)
        action = 'label_added'
    else:
        card.labels.remove(label)
        action = 'label_removed'

    log_activity(request.board, request.user, action, 'card', card.id, card=card,
                 details={'label': label.name})
    payload = serialize_card(card)
    broadcast_board_event(request.board.id, 'card_updated', {'card': payload}, request.user)
    return JsonResponse(payload)


# === COMMENTS ===

@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'POST'])
@card_access_required(VIEW, write_required=EDIT)
def card_comments(request, card_id):
    card = request.card

    if request.method == 'GET':
        comments = card.comments.select_related('author')
        return JsonResponse({'comments': [serialize_comment(comment) for comment in comments]})

    data = parse_json_body(request)
    comment = Comment.objects.create(
        card=card,
        author=request.user,
        content=clean_text(data, 'content', 10000),
    )

    log_activity(request.board, request.user, 'comment_added', 'comment', comment.id, card=card,
                 details={'cardTitle': card.title})
    payload = serialize_comment(comment)
    broadcast_board_event(request.board.id, 'comment_added', {'comment': payload, 'cardId': card.id}, request.user)
    return JsonResponse(payload, status=201)


@csrf_exempt
@api_login_required
@require_http_methods(['PATCH', 'PUT', 'DELETE'])
def comment_detail(request, comment_id):
    """Only the author edits or deletes a comment"""
    comment = get_object_or_404(Comment.objects.select_related('card__column__board'), id=comment_id)
    board = require_board_role(request, comment.card.column.board, VIEW)

    if comment.author_id != request.user.id:
        raise PermissionDenied("Only the author can change this comment")

    if request.method == 'DELETE':
        comment.delete()
        log_activity(board, request.user, 'comment_deleted', 'comment', comment_id, card=comment.card)
        return JsonResponse({'success': True})

    data = parse_json_body(request)
    comment.content = clean_text(data, 'content', 10000)
    comment.save()
    log_activity(board, request.user, 'comment_updated', 'comment', comment.id, card=comment.card)
    return JsonResponse(serialize_comment(comment))


# === CHECKLISTS ===

@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'POST'])
@card_access_required(VIEW, write_required=EDIT)
def card_checklists(request, card_id):
    card = request.card

    if request.method == 'GET':
        checklists = card.checklists.prefetch_related('items')
        return JsonResponse({'checklists': [serialize_checklist(checklist) for checklist in checklists]})

    data = parse_json_body(request)
    items = data.get('items') or []
    if not isinstance(items, list):
        raise ValidationError({'items': ["Must be a list"]})

    with transaction.atomic():
        checklist = Checklist.objects.create(card=card, title=clean_text(data, 'title', 200))
        for position, text in enumerate(items):
            ChecklistItem.objects.create(
                checklist=checklist,
                text=clean_text({'text': text}, 'text', 500),
                position=position,
            )

    log_activity(request.board, request.user, 'checklist_created', 'checklist', checklist.id, card=card,
                 details={'title': checklist.title})
    return JsonResponse(serialize_checklist(checklist), status=201)


def _checklist_for(request, checklist_id, role):
    checklist = get_object_or_404(Checklist.objects.select_related('card__column__board'), id=checklist_id)
    require_board_role(request, checklist.card.column.board, role)
    return checklist


@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'PATCH', 'PUT', 'DELETE'])
def checklist_detail(request, checklist_id):
    role = VIEW if request.method == 'GET' else EDIT
    checklist = _checklist_for(request, checklist_id, role)

    if request.method == 'GET':
        return JsonResponse(serialize_checklist(checklist))

    if request.method == 'DELETE':
        checklist.delete()
        log_activity(request.board, request.user, 'checklist_deleted', 'checklist', checklist_id,
                     card=checklist.card, details={'title': checklist.title})
        return JsonResponse({'success': True})

    data = parse_json_body(request)
    checklist.title = clean_text(data, 'title', 200)
    checklist.save()
    return JsonResponse(serialize_checklist(checklist))


@csrf_exempt
@api_login_required
@require_POST
def checklist_items(request, checklist_id):
    checklist = _checklist_for(request, checklist_id, EDIT)
    data = parse_json_body(request)

    position = data.get('position')
    item = ChecklistItem.objects.create(
        checklist=checklist,
        text=clean_text(data, 'text', 500),
        is_completed=bool(data.get('isCompleted', False)),
        position=next_position(checklist.items.all()) if position is None else parse_int(position, default=0),
    )
    return JsonResponse(serialize_checklist_item(item), status=201)


@csrf_exempt
@api_login_required
@require_http_methods(['PATCH', 'PUT', 'DELETE'])
def checklist_item_detail(request, checklist_id, item_id):
    checklist = _checklist_for(request, checklist_id, EDIT)
    item = get_object_or_404(ChecklistItem, id=item_id, checklist=checklist)

    if request.method == 'DELETE':
        item.delete()
        return JsonResponse({'success': True})

    data = parse_json_body(request)
    if 'text' in data:
        item.text = clean_text(data, 'text', 500)
    if 'position' in data:
        item.position = parse_int(data.get('position'), default=item.position)

    completed_now = 'isCompleted' in data and bool(data['isCompleted']) and not item.is_completed
    if 'isCompleted' in data:
        item.is_completed = bool(data['isCompleted'])
    item.save()

    if completed_now:
        log_activity(request.board, request.user, 'checklist_item_completed', 'checklist_item', item.id,
                     card=checklist.card, details={'text': item.text})
    return JsonResponse(serialize_checklist_item(item))


# === ATTACHMENTS ===

@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'POST'])
@card_access_required(VIEW, write_required=EDIT)
def card_attachments(request, card_id):
    card = request.card

    if request.method == 'GET':
        return JsonResponse({
            'attachments': [serialize_attachment(item) for item in card.attachments.all()]
        })

    upload = request.FILES.get('file')
    if upload is None:
        raise ValidationError({'file': ["No file uploaded"]})

    attachment = Attachment.objects.create(
        card=card,
        file=upload,
        name=upload.name[:255],
        size=upload.size,
        content_type=upload.content_type or '',
        uploaded_by=request.user,
    )
    log_activity(request.board, request.user, 'attachment_added', 'attachment', attachment.id, card=card,
                 details={'name': attachment.name})
    return JsonResponse(serialize_attachment(attachment), status=201)


@csrf_exempt
@api_login_required
@require_http_methods(['DELETE'])
def attachment_detail(request, attachment_id):
    attachment = get_object_or_404(Attachment.objects.select_related('card__column__board'), id=attachment_id)
    board = require_board_role(request, attachment.card.column.board, EDIT)

    attachment.file.delete(save=False)
    attachment.delete()
    log_activity(board, request.user, 'attachment_deleted', 'attachment', attachment_id,
                 card=attachment.card, details={'name': attachment.name})
    return JsonResponse({'success': True})


# === ACTIVITIES ===

@require_GET
@api_login_required
@board_access_required(VIEW)
def board_activities(request, board_id):
    """
    Activity feed, newest first

    Filters: action, userId, cardId. Paging: limit, offset.
    """
    activities = Activity.objects.filter(board=request.board).select_related('user')

    if request.GET.get('action'):
        activities = activities.filter(action=request.GET['action'])
    if request.GET.get('userId'):
        activities = activities.filter(user_id=parse_int(request.GET['userId'], default=0))
    if request.GET.get('cardId'):
        activities = activities.filter(card_id=parse_int(request.GET['cardId'], default=0))

    limit = parse_int(
        request.GET.get('limit'),
        default=settings.CORKBOARD_ACTIVITY_PAGE_SIZE,
        minimum=1,
        maximum=settings.CORKBOARD_ACTIVITY_MAX_PAGE_SIZE,
    )
    offset = parse_int(request.GET.get('offset'), default=0)

    total = activities.count()
    page = activities[offset:offset + limit]

    return JsonResponse({
        'activities': [serialize_activity(activity) for activity in page],
        'total': total,
        'limit': limit,
        'offset': offset,
        'hasMore': offset + limit < total,
    })


# === SHARING ===

@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'POST', 'PUT'])
@board_access_required(VIEW, write_required=ADMIN)
def board_share(request, board_id):
    """
    GET      - share settings (created on first access)
    POST/PUT - update isPublic / canEdit, regenerate=true issues a new token
    """
    board = request.board
    share, _ = BoardShare.objects.get_or_create(board=board)

    if request.method == 'GET':
        return JsonResponse(serialize_share(share, request))

    data = parse_json_body(request)
    if 'isPublic' in data:
        share.is_public = bool(data['isPublic'])
    if 'canEdit' in data:
        share.can_edit = bool(data['canEdit'])
    if data.get('regenerate'):
        share.share_token = generate_share_token()
    share.save()

    log_activity(board, request.user, 'share_updated', 'board', board.id,
                 details={'isPublic': share.is_public, 'canEdit': share.can_edit})
    return JsonResponse(serialize_share(share, request))


def _public_share(code):
    share = get_object_or_404(BoardShare.objects.select_related('board__owner'), share_token=code)
    if not share.is_public:
        raise PermissionDenied("This board is not shared")
    return share


@require_GET
def invite_detail(request, code):
    """Board preview for an invite link"""
    share = _public_share(code)
    board = share.board

    is_member = request.user.is_authenticated and BoardPermissions.can_view(request.user, board)
    return JsonResponse({
        'board': {
            'id': board.id,
            'name': board.name,
            'description': board.description,
            'color': board.color,
            'owner': serialize_user(board.owner),
            'membersCount': board.memberships.count(),
        },
        'canEdit': share.can_edit,
        'isMember': is_member,
    })


@csrf_exempt
@api_login_required
@require_POST
def invite_accept(request, code):
    share = _public_share(code)
    board = share.board

    if BoardPermissions.get_role(request.user, board) is not None:
        return JsonResponse({'error': 'Already a member of this board'}, status=400)

    role = BoardMember.ROLE_MEMBER if share.can_edit else BoardMember.ROLE_VIEWER
    membership = BoardMember.objects.create(board=board, user=request.user, role=role)

    log_activity(board, request.user, 'member_joined', 'member', membership.id, details={'role': role})
    broadcast_board_event(board.id, 'board_refresh', {'boardId': board.id}, request.user)
    return JsonResponse({'boardId': board.id, 'role': role}, status=201)


# === VOTES ===

def _vote_summary(card, user):
    votes = list(card.votes.select_related('user'))
    emojis = {}
    for vote in votes:
        emojis[vote.emoji] = emojis.get(vote.emoji, 0) + 1
    return {
        'cardId': card.id,
        'count': len(votes),
        'voted': any(vote.user_id == user.id for vote in votes),
        'emojis': emojis,
        'voters': [serialize_user(vote.user) for vote in votes],
    }


@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'POST'])
@card_access_required(VIEW)
def card_votes(request, card_id):
    """POST toggles the user's vote"""
    card = request.card

    if request.method == 'POST':
        data = parse_json_body(request)
        existing = CardVote.objects.filter(card=card, user=request.user).first()
        if existing is not None:
            existing.delete()
        else:
            CardVote.objects.create(
                card=card,
                user=request.user,
                emoji=clean_text(data, 'emoji', 16, required=False, default='👍') or '👍',
            )
        broadcast_board_event(request.board.id, 'card_updated', {'cardId': card.id, 'votes': True}, request.user)

    return JsonResponse(_vote_summary(card, request.user))


# === POLLS ===

@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'POST'])
@card_access_required(VIEW, write_required=EDIT)
def card_polls(request, card_id):
    card = request.card

    if request.method == 'GET':
        polls = card.polls.prefetch_related('options', 'votes')
        return JsonResponse({'polls': [serialize_poll(poll, request.user) for poll in polls]})

    data = parse_json_body(request)
    options = data.get('options')
    if not isinstance(options, list) or len(options) < 2:
        raise ValidationError({'options': ["A poll needs at least two options"]})

    with transaction.atomic():
        poll = Poll.objects.create(
            card=card,
            question=clean_text(data, 'question', 500),
            allow_multiple=bool(data.get('allowMultiple', False)),
            ends_at=parse_datetime_value(data.get('endsAt')),
            created_by=request.user,
        )
        for position, text in enumerate(options):
            PollOption.objects.create(
                poll=poll,
                text=clean_text({'text': text}, 'text', 200),
                position=position,
            )

    log_activity(request.board, request.user, 'poll_created', 'poll', poll.id, card=card,
                 details={'question': poll.question})
    return JsonResponse(serialize_poll(poll, request.user), status=201)


def _poll_for(request, poll_id, role):
    poll = get_object_or_404(Poll.objects.select_related('card__column__board'), id=poll_id)
    require_board_role(request, poll.card.column.board, role)
    return poll


@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'PATCH', 'PUT', 'DELETE'])
def poll_detail(request, poll_id):
    poll = _poll_for(request, poll_id, VIEW)

    if request.method == 'GET':
        return JsonResponse(serialize_poll(poll, request.user))

    if poll.created_by_id != request.user.id and not BoardPermissions.is_admin(request.user, request.board):
        raise PermissionDenied("Only the poll creator or a board admin can change this poll")

    if request.method == 'DELETE':
        poll.delete()
        return JsonResponse({'success': True})

    data = parse_json_body(request)
    if 'question' in data:
        poll.question = clean_text(data, 'question', 500)
    if 'isClosed' in data:
        poll.is_closed = bool(data['isClosed'])
    if 'endsAt' in data:
        poll.ends_at = parse_datetime_value(data.get('endsAt'))
    poll.save()
    return JsonResponse(serialize_poll(poll, request.user))


@csrf_exempt
@api_login_required
@require_http_methods(['POST', 'DELETE'])
def poll_vote(request, poll_id):
    """
    POST   - {"optionIds": [...]} or {"optionId": ...}, replaces earlier votes
    DELETE - withdraws the user's votes
    """
    poll = _poll_for(request, poll_id, VIEW)

    if request.method == 'DELETE':
        PollVote.objects.filter(poll=poll, user=request.user).delete()
        return JsonResponse(serialize_poll(poll, request.user))

    if not poll.is_open():
        raise ValidationError("This poll is closed")

    data = parse_json_body(request)
    if 'optionIds' in data:
        option_ids = clean_id_list(data, 'optionIds')
    elif data.get('optionId') is not None:
        option_ids = [parse_int(data['optionId'], default=0)]
    else:
        raise ValidationError({'optionIds': ["Pick at least one option"]})

    option_ids = list(dict.fromkeys(option_ids))
    if not option_ids:
        raise ValidationError({'optionIds': ["Pick at least one option"]})
    if len(option_ids) > 1 and not poll.allow_multiple:
        raise ValidationError({'optionIds': ["This poll allows a single choice"]})

    options = list(poll.options.filter(id__in=option_ids))
    if len(options) != len(option_ids):
        raise ValidationError({'optionIds': ["Unknown option"]})

    with transaction.atomic():
        PollVote.objects.filter(poll=poll, user=request.user).delete()
        PollVote.objects.bulk_create([
            PollVote(poll=poll, option=option, user=request.user) for option in options
        ])

    return JsonResponse(serialize_poll(poll, request.user))


# === CARD RELATIONS ===

RELATION_TYPES = [key for key, _ in CardRelation.RELATION_CHOICES]


@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'POST', 'DELETE'])
@card_access_required(VIEW, write_required=EDIT)
def card_relations(request, card_id):
    """
    GET    - outgoing and incoming relations of the card
    POST   - {targetCardId, relationType}
    DELETE - ?targetCardId= removes the outgoing relation
    """
    card = request.card
    related = CardRelation.objects.select_related(
        'source_card__column__board', 'target_card__column__board'
    )

    if request.method == 'GET':
        relations = list(related.filter(source_card=card)) + list(related.filter(target_card=card))
        return JsonResponse({'relations': [serialize_relation(relation) for relation in relations]})

    if request.method == 'DELETE':
        target_id = request.GET.get('targetCardId')
        if not target_id:
            raise ValidationError({'targetCardId': ["This field is required"]})
        relation = get_object_or_404(CardRelation, source_card=card, target_card_id=parse_int(target_id, default=0))
        relation.delete()
        broadcast_board_event(request.board.id, 'card_updated', {'cardId': card.id, 'relations': True}, request.user)
        return JsonResponse({'success': True})

    data = parse_json_body(request)
    relation_type = data.get('relationType')
    if relation_type not in RELATION_TYPES:
        raise ValidationError({'relationType': [f"Must be one of {', '.join(RELATION_TYPES)}"]})

    target_id = parse_int(data.get('targetCardId'), default=0)
    if target_id == card.id:
        raise ValidationError({'targetCardId': ["Cannot relate a card to itself"]})

    target = Card.objects.select_related('column__board').filter(id=target_id).first()
    # Cards on boards the user cannot see are reported as missing
    if target is None or not BoardPermissions.can_view(request.user, target.column.board):
        return JsonResponse({'error': 'Target card not found'}, status=404)

    if CardRelation.objects.filter(source_card=card, target_card=target).exists():
        return JsonResponse({'error': 'Relation already exists'}, status=409)

    relation = CardRelation.objects.create(source_card=card, target_card=target, relation_type=relation_type)
    log_activity(request.board, request.user, 'card_related', 'card_relation', relation.id, card=card, details={
        'relationType': relation_type,
        'targetCardTitle': target.title,
        'targetBoardName': target.column.board.name,
    })
    broadcast_board_event(request.board.id, 'card_updated', {'cardId': card.id, 'relations': True}, request.user)

    return JsonResponse(serialize_relation(relation, with_cards=False), status=201)


# === TEMPLATES ===

@csrf_exempt
@require_http_methods(['GET', 'POST'])
def templates_collection(request):
    """
    GET  - built-in templates, plus the user's own when signed in
    POST - saves a column layout as a template
    """
    if request.method == 'GET':
        return JsonResponse({'templates': template_service.list_templates(request.user)})

    if not request.user.is_authenticated:
        return JsonResponse({'error': 'Unauthorized'}, status=401)

    data = parse_json_body(request)
    success, message, template = template_service.create_template(
        request.user,
        clean_text(data, 'name', 200),
        data.get('columns'),
        description=clean_text(data, 'description', 5000, required=False),
        category=clean_text(data, 'category', 20, required=False, default='kanban') or 'kanban',
        icon=clean_text(data, 'icon', 16, required=False, default='📋'),
    )
    if not success:
        return JsonResponse({'error': message}, status=400)
    return JsonResponse(template_service.serialize_template(template), status=201)


@csrf_exempt
@api_login_required
@require_POST
def template_save(request):
    """Saves an existing board's columns as a template"""
    data = parse_json_body(request)
    board = get_object_or_404(Board, id=parse_int(data.get('boardId'), default=0))
    require_board_role(request, board, VIEW)

    success, message, template = template_service.save_board_as_template(
        board,
        request.user,
        clean_text(data, 'name', 200),
        description=clean_text(data, 'description', 5000, required=False),
        category=clean_text(data, 'category', 20, required=False, default='kanban') or 'kanban',
        icon=clean_text(data, 'icon', 16, required=False, default='📋'),
    )
    if not success:
        status = 403 if board.owner_id != request.user.id else 400
        return JsonResponse({'error': message}, status=status)
    return JsonResponse(template_service.serialize_template(template), status=201)


@csrf_exempt
@api_login_required
@require_POST
def template_copy(request):
    """Creates a board from a built-in or saved template"""
    data = parse_json_body(request)
    name = clean_text(data, 'name', 200)

    columns, error, status = template_service.resolve_template(data.get('templateId'), request.user)
    if columns is None:
        return JsonResponse({'error': error}, status=status)

    board = template_service.create_board_from_template(
        columns,
        request.user,
        name,
        description=clean_text(data, 'description', 5000, required=False),
    )
    return JsonResponse(serialize_board(board, nested=True), status=201)


# === SEARCH ===

@require_GET
@api_login_required
def search(request):
    """
    Card search across the user's boards

    Title matches rank above description matches.
    """
    cards = Card.objects.filter(
        column__board__in=BoardPermissions.visible_boards(request.user),
        archived=False,
    )

    board_id = request.GET.get('boardId')
    if board_id:
        cards = cards.filter(column__board_id=parse_int(board_id, default=0))

    query = request.GET.get('q', '').strip()
    if query:
        cards = cards.filter(Q(title__icontains=query) | Q(description__icontains=query))

    labels = [item for item in request.GET.get('labels', '').split(',') if item.strip()]
    if labels:
        label_ids = [parse_int(item, default=0) for item in labels]
        cards = cards.filter(labels__id__in=label_ids)

    assignees = [item for item in request.GET.get('assignees', '').split(',') if item.strip()]
    if assignees:
        user_ids = [parse_int(item, default=0) for item in assignees]
        cards = cards.filter(assignees__id__in=user_ids)

    due = request.GET.get('due')
    if due:
        cards = cards.filter(due_date_filter(due))

    cards = cards.distinct().annotate(
        relevance=Case(
            When(title__icontains=query, then=Value(2)),
            When(description__icontains=query, then=Value(1)),
            default=Value(0),
            output_field=IntegerField(),
        ) if query else Value(0, output_field=IntegerField())
    ).order_by('-relevance', '-updated_at', 'id')

    limit = parse_int(request.GET.get('limit'), default=20, minimum=1, maximum=100)
    offset = parse_int(request.GET.get('offset'), default=0)
    total = cards.count()

    results = []
    for card in cards.select_related('column__board').prefetch_related('assignees', 'labels')[offset:offset + limit]:
        item = serialize_card(card)
        item['boardName'] = card.column.board.name
        item['columnName'] = card.column.name
        item['relevance'] = card.relevance
        results.append(item)

    return JsonResponse({
        'results': results,
        'total': total,
        'limit': limit,
        'offset': offset,
        'query': query,
        'searchedAt': timezone.now().isoformat(),
    })
