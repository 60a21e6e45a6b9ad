# apps/core/utils.py

import json
import logging
from datetime import datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

from django.core.exceptions import BadRequest, ValidationError
from django.db import transaction
from django.db.models import Count, Max, Q
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

logger = logging.getLogger(__name__)


# === REQUEST HELPERS ===

def parse_json_body(request) -> Dict:
    """Decodes a JSON object body, raising BadRequest otherwise"""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise BadRequest("Invalid JSON body")
    if not isinstance(data, dict):
        raise BadRequest("JSON body must be an object")
    return data


def parse_datetime_value(value) -> Optional[datetime]:
    """
    Accepts an ISO datetime, a plain date or None

    Naive values are taken in the current time zone.
    """
    if value in (None, ''):
        return None

    parsed = parse_datetime(str(value))
    if parsed is None:
        day = parse_date(str(value))
        if day is None:
            raise ValidationError({'dueDate': ["Invalid date"]})
        parsed = datetime.combine(day, time.min)

    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def parse_int(value, default: int, minimum: int = 0, maximum: Optional[int] = None) -> int:
    """Query string integer with bounds"""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    number = max(minimum, number)
    if maximum is not None:
        number = min(maximum, number)
    return number


# === POSITIONS ===

def next_position(queryset) -> int:
    """Max position + 1, or 0 for an empty set"""
    current = queryset.aggregate(top=Max('position'))['top']
    return 0 if current is None else current + 1


@transaction.atomic
def move_card(card, target_column, position=None):
    """
    Moves a card to position in target_column

    Both columns end up with contiguous positions 0..n-1. Moving into
    another column whose WIP limit is reached raises ValidationError.
    """
    source_column = card.column
    changing_column = source_column.id != target_column.id

    if changing_column and not target_column.can_add_card():
        raise ValidationError(f"WIP limit reached for column '{target_column.name}'")

    siblings = list(target_column.cards.exclude(id=card.id).order_by('position', 'id'))
    if position is None:
        position = len(siblings)
    try:
        position = int(position)
    except (TypeError, ValueError):
        raise ValidationError({'position': ["Position must be an integer"]})
    position = max(0, min(position, len(siblings)))

    siblings.insert(position, card)
    card.column = target_column
    _rewrite_positions(siblings, moved=card)

    if changing_column:
        remaining = list(source_column.cards.order_by('position', 'id'))
        _rewrite_positions(remaining)

    logger.debug("Card %s moved to column %s at %s", card.id, target_column.id, position)
    return card


def _rewrite_positions(cards, moved=None):
    changed = []
    for index, item in enumerate(cards):
        if moved is not None and item.pk == moved.pk:
            item.position = index
            item.save(update_fields=['column', 'position', 'updated_at'])
        elif item.position != index:
            item.position = index
            changed.append(item)

    if changed:
        type(changed[0]).objects.bulk_update(changed, ['position'])


@transaction.atomic
def reorder_columns(board, column_ids):
    """
    Rewrites column positions to follow column_ids

    column_ids must hold every column of the board exactly once.
    """
    try:
        wanted = [int(column_id) for column_id in column_ids]
    except (TypeError, ValueError):
        raise ValidationError({'columnIds': ["Column ids must be integers"]})

    columns = {column.id: column for column in board.columns.all()}
    if len(wanted) != len(set(wanted)) or set(wanted) != set(columns):
        raise ValidationError({'columnIds': ["Must list every column of the board once"]})

    ordered = []
    for position, column_id in enumerate(wanted):
        column = columns[column_id]
        column.position = position
        ordered.append(column)

    if ordered:
        type(ordered[0]).objects.bulk_update(ordered, ['position'])
    return ordered


# === ACTIVITY ===

def log_activity(board, user, action: str, entity_type: str, entity_id='', card=None, details=None):
    """Records an activity entry for the board's audit trail"""
    from .models import Activity

    return Activity.objects.create(
        board=board,
        card=card,
        user=user if user is not None and user.is_authenticated else None,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        details=details or {},
    )


# === DUE DATE FILTERS ===

DUE_FILTERS = ('any', 'today', 'tomorrow', 'thisWeek', 'nextWeek', 'thisMonth', 'overdue', 'noDate')


def due_date_filter(key: str, now=None) -> Q:
    """Q object for one of the due date filters"""
    if key not in DUE_FILTERS:
        raise ValidationError({'due': [f"Unknown due filter '{key}'"]})

    now = now or timezone.now()
    today = timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)

    if key == 'any':
        return Q()
    if key == 'noDate':
        return Q(due_date__isnull=True)
    if key == 'overdue':
        return Q(due_date__lt=now)
    if key == 'today':
        return Q(due_date__gte=today, due_date__lt=today + timedelta(days=1))
    if key == 'tomorrow':
        return Q(due_date__gte=today + timedelta(days=1), due_date__lt=today + timedelta(days=2))

    week_start = today - timedelta(days=today.weekday())
    if key == 'thisWeek':
        return Q(due_date__gte=week_start, due_date__lt=week_start + timedelta(days=7))
    if key == 'nextWeek':
        return Q(due_date__gte=week_start + timedelta(days=7), due_date__lt=week_start + timedelta(days=14))

    # thisMonth
    month_start = today.replace(day=1)
    if month_start.month == 12:
        month_end = month_start.replace(year=month_start.year + 1, month=1)
    else:
        month_end = month_start.replace(month=month_start.month + 1)
    return Q(due_date__gte=month_start, due_date__lt=month_end)


# === STATISTICS ===

def find_wip_bottlenecks(board) -> List[Dict]:
    """
    Columns at or near their WIP limit

    80% of the limit is a warning, 100% is critical.
    """
    bottlenecks = []

    columns = board.columns.filter(wip_limit__gt=0).annotate(
        active=Count('cards', filter=Q(cards__archived=False))
    )
    for column in columns:
        usage = (column.active / column.wip_limit) * 100

        if usage >= 80:
            bottlenecks.append({
                'columnId': column.id,
                'name': column.name,
                'cards': column.active,
                'wipLimit': column.wip_limit,
                'usage': round(usage, 1),
                'status': 'critical' if usage >= 100 else 'warning',
            })

    return bottlenecks


def task_distribution(board) -> List[Dict]:
    """Open cards per assignee, busiest first"""
    from .models import User

    rows = (
        User.objects
        .filter(assigned_cards__column__board=board, assigned_cards__archived=False)
        .annotate(cards=Count('assigned_cards', distinct=True))
        .order_by('-cards', 'username')
    )
    return [
        {'userId': user.id, 'name': user.display_name, 'cards': user.cards}
        for user in rows
    ]


def checklist_progress(board) -> Tuple[int, int]:
    """(completed, total) checklist items of the board's active cards"""
    from .models import ChecklistItem

    items = ChecklistItem.objects.filter(
        checklist__card__column__board=board,
        checklist__card__archived=False,
    )
    totals = items.aggregate(
        total=Count('id'),
        completed=Count('id', filter=Q(is_completed=True)),
    )
    return totals['completed'], totals['total']


def board_statistics(board) -> Dict:
    """Summary numbers for the board statistics panel"""
    from .models import Card

    cards = Card.objects.filter(column__board=board, archived=False)
    columns = board.columns.annotate(
        active=Count('cards', filter=Q(cards__archived=False))
    )
    completed, total_items = checklist_progress(board)

    return {
        'totalCards': cards.count(),
        'archivedCards': Card.objects.filter(column__board=board, archived=True).count(),
        'overdueCards': cards.filter(due_date__lt=timezone.now()).count(),
        'columns': [
            {
                'id': column.id,
                'name': column.name,
                'cards': column.active,
                'wipLimit': column.wip_limit,
            }
            for column in columns
        ],
        'bottlenecks': find_wip_bottlenecks(board),
        'distribution': task_distribution(board),
        'checklists': {
            'completed': completed,
            'total': total_items,
            'percentage': round(completed / total_items * 100) if total_items else 0,
        },
    }
