# apps/exports/utils.py

import logging
from typing import Dict, Optional, Tuple

from django.db import transaction
from django.utils import timezone

from apps.core.models import Board, Card, Checklist, ChecklistItem, Column, Label
from apps.core.serializers import iso
from apps.core.utils import log_activity, parse_datetime_value, parse_int

logger = logging.getLogger(__name__)

EXPORT_VERSION = '1.0'


def _card_export(card) -> Dict:
    return {
        'title': card.title,
        'description': card.description,
        'position': card.position,
        'dueDate': iso(card.due_date),
        'color': card.color,
        'labels': [label.name for label in card.labels.all()],
        'assignees': [user.username for user in card.assignees.all()],
        'checklists': [
            {
                'title': checklist.title,
                'items': [
                    {'text': item.text, 'isCompleted': item.is_completed}
                    for item in checklist.items.all()
                ],
            }
            for checklist in card.checklists.all()
        ],
        'createdAt': iso(card.created_at),
    }


def build_board_export(board) -> Dict:
    """
    Portable JSON snapshot of a board

    Ids are left out, the importer creates fresh ones.
    """
    columns = []
    archived = []

    for column in board.columns.prefetch_related('cards__labels', 'cards__assignees', 'cards__checklists__items'):
        cards = []
        for card in column.cards.all():
            if card.archived:
                item = _card_export(card)
                item['column'] = column.name
                archived.append(item)
            else:
                cards.append(_card_export(card))

        columns.append({
            'name': column.name,
            'position': column.position,
            'wipLimit': column.wip_limit,
            'color': column.color,
            'cards': cards,
        })

    return {
        'version': EXPORT_VERSION,
        'exportedAt': timezone.now().isoformat(),
        'board': {
            'name': board.name,
            'description': board.description,
            'color': board.color,
            'columns': columns,
            'labels': [{'name': label.name, 'color': label.color} for label in board.labels.all()],
            'archivedCards': archived,
        },
    }


def card_rows(board):
    """Flat rows for the CSV and XLSX exports"""
    cards = (
        Card.objects
        .filter(column__board=board)
        .select_related('column')
        .prefetch_related('labels', 'assignees')
        .order_by('column__position', 'position', 'id')
    )
    for card in cards:
        yield [
            card.id,
            card.column.name,
            card.position,
            card.title,
            card.description,
            ', '.join(label.name for label in card.labels.all()),
            ', '.join(user.username for user in card.assignees.all()),
            card.due_date,
            'yes' if card.archived else 'no',
            card.created_at,
        ]


CARD_HEADERS = [
    'ID', 'Column', 'Position', 'Title', 'Description',
    'Labels', 'Assignees', 'Due date', 'Archived', 'Created at'
]


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _list_error(value, what: str, item_type=dict) -> Optional[str]:
    if not isinstance(value, list):
        return f"{what} must be a list"
    if not all(isinstance(item, item_type) for item in value):
        kind = 'an object' if item_type is dict else 'a string'
        return f"Every entry of {what.lower()} must be {kind}"
    return None


def _card_error(card) -> Optional[str]:
    if 'position' in card and not _is_number(card['position']):
        return "Card position must be a number"
    error = _list_error(card.get('labels', []), 'Card labels', str)
    if error:
        return error
    error = _list_error(card.get('checklists', []), 'Checklists')
    if error:
        return error
    for checklist in card.get('checklists', []):
        error = _list_error(checklist.get('items', []), 'Checklist items')
        if error:
            return error
    return None


def _validate_export(data) -> Optional[str]:
    if not isinstance(data, dict):
        return "Export must be a JSON object"
    if data.get('version') != EXPORT_VERSION:
        return f"Unsupported export version {data.get('version')!r}"

    board = data.get('board')
    if not isinstance(board, dict):
        return "Missing board"
    if not str(board.get('name') or '').strip():
        return "Board name is required"

    for key, what in (('columns', 'Columns'), ('labels', 'Labels'), ('archivedCards', 'Archived cards')):
        error = _list_error(board.get(key, []), what)
        if error:
            return error

    for column in board.get('columns', []):
        if not str(column.get('name') or '').strip():
            return "Every column needs a name"
        if 'position' in column and not _is_number(column['position']):
            return "Column position must be a number"
        error = _list_error(column.get('cards', []), 'Cards')
        if error:
            return error
        for card in column.get('cards', []):
            error = _card_error(card)
            if error:
                return error

    for card in board.get('archivedCards', []):
        error = _card_error(card)
        if error:
            return error
    return None


def _create_card(column, data, position, labels_by_name, user, archived=False):
    card = Card.objects.create(
        column=column,
        title=str(data.get('title') or 'Untitled')[:200],
        description=str(data.get('description') or ''),
        position=position,
        due_date=parse_datetime_value(data.get('dueDate')),
        color=str(data.get('color') or '')[:20],
        archived=archived,
        created_by=user,
    )

    labels = [labels_by_name[name] for name in data.get('labels', []) if name in labels_by_name]
    if labels:
        card.labels.set(labels)

    for checklist_data in data.get('checklists', []):
        checklist = Checklist.objects.create(card=card, title=str(checklist_data.get('title') or 'Checklist')[:200])
        for item_position, item in enumerate(checklist_data.get('items', [])):
            ChecklistItem.objects.create(
                checklist=checklist,
                text=str(item.get('text') or '')[:500],
                is_completed=bool(item.get('isCompleted')),
                position=item_position,
            )
    return card


def import_board(data: Dict, user) -> Tuple[bool, str, Optional[Board]]:
    """
    Creates a new board owned by user from a JSON export

    Returns:
        Tuple[success, message, board]
    """
    error = _validate_export(data)
    if error:
        return False, error, None

    source = data['board']

    with transaction.atomic():
        board = Board(
            name=str(source['name']).strip()[:200],
            description=str(source.get('description') or ''),
            color=str(source.get('color') or '#3B82F6')[:20],
            owner=user,
        )
        board.skip_default_columns = True
        board.save()

        labels_by_name = {}
        for label in source.get('labels', []):
            name = str(label.get('name') or '').strip()[:50]
            if name and name not in labels_by_name:
                labels_by_name[name] = Label.objects.create(
                    board=board, name=name, color=str(label.get('color') or '#6B7280')[:20]
                )

        columns_by_name = {}
        ordered = sorted(source.get('columns', []), key=lambda item: item.get('position', 0))
        for position, column_data in enumerate(ordered):
            column = Column.objects.create(
                board=board,
                name=str(column_data['name']).strip()[:50],
                position=position,
                wip_limit=parse_int(column_data.get('wipLimit'), default=0),
                color=str(column_data.get('color') or '')[:20],
            )
            columns_by_name.setdefault(column.name, column)

            cards = sorted(column_data.get('cards', []), key=lambda item: item.get('position', 0))
            for card_position, card_data in enumerate(cards):
                _create_card(column, card_data, card_position, labels_by_name, user)

        fallback = next(iter(columns_by_name.values()), None)
        for card_data in source.get('archivedCards', []):
            column = columns_by_name.get(card_data.get('column'), fallback)
            if column is None:
                continue
            position = column.cards.count()
            _create_card(column, card_data, position, labels_by_name, user, archived=True)

        log_activity(board, user, 'board_imported', 'board', board.id,
                     details={'name': board.name, 'exportedAt': data.get('exportedAt')})

    logger.info("Board %s imported by %s", board.id, user.username)
    return True, "Board imported", board
