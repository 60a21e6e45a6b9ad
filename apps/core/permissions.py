# apps/core/permissions.py

from functools import wraps

from django.core.exceptions import PermissionDenied
from django.db.models import Q
from django.http import Http404, JsonResponse

from .models import Board, BoardMember, Card


class BoardPermissions:
    """
    Board level permissions

    Roles rank viewer < member < admin. The owner is always admin.
    """

    VIEW = BoardMember.ROLE_VIEWER
    EDIT = BoardMember.ROLE_MEMBER
    ADMIN = BoardMember.ROLE_ADMIN

    ROLE_RANK = {
        BoardMember.ROLE_VIEWER: 0,
        BoardMember.ROLE_MEMBER: 1,
        BoardMember.ROLE_ADMIN: 2,
    }

    @staticmethod
    def get_role(user, board):
        """Returns the user's role in the board or None"""
        if not user.is_authenticated:
            return None

        if board.owner_id == user.id:
            return BoardMember.ROLE_ADMIN

        membership = BoardMember.objects.filter(board=board, user=user).first()
        return membership.role if membership else None

    @staticmethod
    def has_role(user, board, required):
        role = BoardPermissions.get_role(user, board)
        if role is None:
            return False
        return BoardPermissions.ROLE_RANK[role] >= BoardPermissions.ROLE_RANK[required]

    @staticmethod
    def can_view(user, board):
        return BoardPermissions.has_role(user, board, BoardPermissions.VIEW)

    @staticmethod
    def can_edit(user, board):
        return BoardPermissions.has_role(user, board, BoardPermissions.EDIT)

    @staticmethod
    def is_admin(user, board):
        return BoardPermissions.has_role(user, board, BoardPermissions.ADMIN)

    @staticmethod
    def visible_boards(user):
        """Boards the user owns or belongs to"""
        return Board.objects.filter(Q(owner=user) | Q(memberships__user=user)).distinct()

    @staticmethod
    def check(user, board, required):
        """
        Raises Http404 when the board is invisible to the user and
        PermissionDenied when the role is too low
        """
        role = BoardPermissions.get_role(user, board)
        if role is None:
            raise Http404("Board not found")
        if BoardPermissions.ROLE_RANK[role] < BoardPermissions.ROLE_RANK[required]:
            raise PermissionDenied("Insufficient permissions")
        return role


# Decorators for views

def api_login_required(view_func):
    """Like login_required, but answers JSON 401 instead of redirecting"""

    @wraps(view_func)
    def wrapped_view(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({'error': 'Unauthorized'}, status=401)
        return view_func(request, *args, **kwargs)

    return wrapped_view


def board_access_required(required=BoardPermissions.VIEW, write_required=None):
    """
    Checks access to the board named by the board_id kwarg

    write_required raises the role for non-safe methods.
    Adds the board to the request for use in the view.
    """

    def decorator(view_func):
        @wraps(view_func)
        def wrapped_view(request, board_id, *args, **kwargs):
            try:
                board = Board.objects.select_related('owner').get(id=board_id)
            except Board.DoesNotExist:
                raise Http404("Board not found")

            role = required
            if write_required and request.method not in ('GET', 'HEAD', 'OPTIONS'):
                role = write_required

            request.board_role = BoardPermissions.check(request.user, board, role)
            request.board = board
            return view_func(request, board_id, *args, **kwargs)

        return wrapped_view

    return decorator


def card_access_required(required=BoardPermissions.VIEW, write_required=None):
    """
    Checks access to the card named by the card_id kwarg

    Adds the card and its board to the request.
    """

    def decorator(view_func):
        @wraps(view_func)
        def wrapped_view(request, card_id, *args, **kwargs):
            try:
                card = Card.objects.select_related('column__board').get(id=card_id)
            except Card.DoesNotExist:
                raise Http404("Card not found")

            role = required
            if write_required and request.method not in ('GET', 'HEAD', 'OPTIONS'):
                role = write_required

            board = card.column.board
            request.board_role = BoardPermissions.check(request.user, board, role)
            request.board = board
            request.card = card
            return view_func(request, card_id, *args, **kwargs)

        return wrapped_view

    return decorator


def require_board_role(request, board, required):
    """Inline check for views that resolve the board themselves"""
    request.board_role = BoardPermissions.check(request.user, board, required)
    request.board = board
    return board
