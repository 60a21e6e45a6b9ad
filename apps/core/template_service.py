# apps/core/template_service.py

"""
Board templates - built-in layouts plus the ones users save

Mutating functions return (success, message, obj) tuples like the
authentication service.
"""

import logging
from typing import Dict, List, Optional, Tuple

from django.db import transaction

from .models import Board, BoardTemplate
from .utils import log_activity

logger = logging.getLogger(__name__)

BUILT_IN_TEMPLATES = [
    {
        'id': 'kanban-basic',
        'name': 'Kanban Board',
        'description': 'A classic Kanban board for managing work items',
        'category': 'kanban',
        'icon': '📋',
        'columns': [
            {'name': 'Backlog', 'color': '#6b7280'},
            {'name': 'To Do', 'color': '#3b82f6'},
            {'name': 'In Progress', 'color': '#f59e0b'},
            {'name': 'Review', 'color': '#8b5cf6'},
            {'name': 'Done', 'color': '#22c55e'},
        ],
    },
    {
        'id': 'scrum-sprint',
        'name': 'Scrum Sprint',
        'description': 'Sprint planning and tracking',
        'category': 'scrum',
        'icon': '🏃',
        'columns': [
            {'name': 'Product Backlog', 'color': '#64748b'},
            {'name': 'Sprint Backlog', 'color': '#3b82f6'},
            {'name': 'In Progress', 'color': '#f59e0b'},
            {'name': 'Testing', 'color': '#8b5cf6'},
            {'name': 'Done', 'color': '#22c55e'},
        ],
    },
    {
        'id': 'bug-tracking',
        'name': 'Bug Tracking',
        'description': 'Track and manage software bugs',
        'category': 'bug-tracking',
        'icon': '🐛',
        'columns': [
            {'name': 'New', 'color': '#64748b'},
            {'name': 'Confirmed', 'color': '#3b82f6'},
            {'name': 'In Progress', 'color': '#f59e0b'},
            {'name': 'Fixed', 'color': '#22c55e'},
            {'name': 'Verified', 'color': '#10b981'},
            {'name': 'Closed', 'color': '#6b7280'},
        ],
    },
    {
        'id': 'marketing-campaign',
        'name': 'Marketing Campaign',
        'description': 'From idea to live campaign',
        'category': 'marketing',
        'icon': '📣',
        'columns': [
            {'name': 'Ideas', 'color': '#8b5cf6'},
            {'name': 'Planning', 'color': '#3b82f6'},
            {'name': 'In Progress', 'color': '#f59e0b'},
            {'name': 'Review', 'color': '#ec4899'},
            {'name': 'Approved', 'color': '#22c55e'},
            {'name': 'Live', 'color': '#14b8a6'},
        ],
    },
    {
        'id': 'weekly-review',
        'name': 'Weekly Review',
        'description': 'Plan the week and look back on it',
        'category': 'weekly-review',
        'icon': '🗓️',
        'columns': [
            {'name': 'This Week', 'color': '#3b82f6'},
            {'name': 'In Progress', 'color': '#f59e0b'},
            {'name': 'Completed', 'color': '#22c55e'},
            {'name': 'Next Week', 'color': '#64748b'},
            {'name': 'Notes', 'color': '#8b5cf6'},
        ],
    },
]

BUILT_IN_BY_ID = {template['id']: template for template in BUILT_IN_TEMPLATES}
CATEGORIES = [key for key, _ in BoardTemplate.CATEGORY_CHOICES]


def serialize_template(template: BoardTemplate) -> Dict:
    return {
        'id': template.id,
        'name': template.name,
        'description': template.description,
        'category': template.category,
        'icon': template.icon,
        'columns': template.columns,
        'ownerId': template.owner_id,
        'builtIn': False,
        'createdAt': template.created_at.isoformat(),
    }


def list_templates(user) -> List[Dict]:
    """Built-in templates first, then the user's own, newest first"""
    templates = [dict(template, builtIn=True, ownerId=None) for template in BUILT_IN_TEMPLATES]
    if user.is_authenticated:
        templates.extend(serialize_template(template) for template in user.board_templates.all())
    return templates


def clean_columns(columns) -> Tuple[Optional[List[Dict]], str]:
    """[{name, color}] from a request body, or (None, error)"""
    if not isinstance(columns, list) or not columns:
        return None, "A template needs at least one column"

    cleaned = []
    for column in columns:
        if not isinstance(column, dict):
            return None, "Columns must be objects"
        name = column.get('name')
        if not isinstance(name, str) or not name.strip():
            return None, "Every column needs a name"
        color = column.get('color') or ''
        if not isinstance(color, str):
            return None, "Column color must be a string"
        cleaned.append({'name': name.strip()[:50], 'color': color[:20]})
    return cleaned, ''


def create_template(user, name: str, columns, description: str = '', category: str = 'kanban',
                    icon: str = '📋') -> Tuple[bool, str, Optional[BoardTemplate]]:
    if category not in CATEGORIES:
        return False, f"Unknown category '{category}'", None

    cleaned, error = clean_columns(columns)
    if cleaned is None:
        return False, error, None

    template = BoardTemplate.objects.create(
        owner=user,
        name=name,
        description=description,
        category=category,
        icon=icon or '📋',
        columns=cleaned,
    )
    logger.info("Template %s created by %s", template.id, user.username)
    return True, "Template created", template


def save_board_as_template(board: Board, user, name: str, description: str = '', category: str = 'kanban',
                           icon: str = '📋') -> Tuple[bool, str, Optional[BoardTemplate]]:
    """Snapshots the board's columns; only the owner may do this"""
    if board.owner_id != user.id:
        return False, "Only the board owner can save it as a template", None

    columns = [{'name': column.name, 'color': column.color} for column in board.columns.all()]
    return create_template(
        user,
        name,
        columns,
        description=description or board.description,
        category=category,
        icon=icon,
    )


def resolve_template(template_id, user) -> Tuple[Optional[List[Dict]], str, int]:
    """
    Column layout for a built-in id or a user template id

    Returns (columns, error, status); columns is None on failure.
    """
    if isinstance(template_id, str) and template_id in BUILT_IN_BY_ID:
        return BUILT_IN_BY_ID[template_id]['columns'], '', 200

    try:
        template = BoardTemplate.objects.get(id=int(template_id))
    except (TypeError, ValueError, BoardTemplate.DoesNotExist):
        return None, "Template not found", 404

    if template.owner_id != user.id:
        return None, "Access denied", 403
    return template.columns, '', 200


def create_board_from_template(columns: List[Dict], user, name: str, description: str = '') -> Board:
    with transaction.atomic():
        board = Board(name=name, description=description, owner=user)
        board.skip_default_columns = True
        board.save()
        for position, column in enumerate(columns):
            board.columns.create(name=column['name'], color=column.get('color') or '', position=position)

        log_activity(board, user, 'board_created', 'board', board.id,
                     details={'name': board.name, 'fromTemplate': True})

    logger.info("Board %s created from a template by %s", board.id, user.username)
    return board
