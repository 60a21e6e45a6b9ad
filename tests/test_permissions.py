# tests/test_permissions.py

from django.core.exceptions import PermissionDenied
from django.http import Http404

from apps.core.models import Board, BoardMember
from apps.core.permissions import BoardPermissions

from .base import BoardTestCase


class BoardPermissionsTests(BoardTestCase):

    def test_roles(self):
        self.assertEqual(BoardPermissions.get_role(self.owner, self.board), BoardMember.ROLE_ADMIN)
        self.assertEqual(BoardPermissions.get_role(self.member, self.board), BoardMember.ROLE_MEMBER)
        self.assertEqual(BoardPermissions.get_role(self.viewer, self.board), BoardMember.ROLE_VIEWER)
        self.assertIsNone(BoardPermissions.get_role(self.outsider, self.board))

    def test_role_ranking(self):
        self.assertTrue(BoardPermissions.can_edit(self.member, self.board))
        self.assertFalse(BoardPermissions.is_admin(self.member, self.board))
        self.assertTrue(BoardPermissions.can_view(self.viewer, self.board))
        self.assertFalse(BoardPermissions.can_edit(self.viewer, self.board))
        self.assertFalse(BoardPermissions.can_view(self.outsider, self.board))

    def test_check_hides_boards_from_outsiders(self):
        with self.assertRaises(Http404):
            BoardPermissions.check(self.outsider, self.board, BoardPermissions.VIEW)
        with self.assertRaises(PermissionDenied):
            BoardPermissions.check(self.viewer, self.board, BoardPermissions.EDIT)
        self.assertEqual(
            BoardPermissions.check(self.member, self.board, BoardPermissions.EDIT),
            BoardMember.ROLE_MEMBER,
        )

    def test_visible_boards(self):
        other = Board.objects.create(name='Private', owner=self.outsider)

        self.assertEqual(list(BoardPermissions.visible_boards(self.viewer)), [self.board])
        self.assertIn(other, BoardPermissions.visible_boards(self.outsider))
        self.assertNotIn(self.board, BoardPermissions.visible_boards(self.outsider))


class ApiAccessTests(BoardTestCase):

    def test_anonymous_gets_json_401(self):
        response = self.client.get('/api/boards')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'error': 'Unauthorized'})

    def test_outsider_gets_404(self):
        self.login(self.outsider)
        response = self.client.get(f'/api/boards/{self.board.id}')
        self.assertEqual(response.status_code, 404)
        self.assertIn('error', response.json())

    def test_viewer_cannot_write(self):
        self.login(self.viewer)
        response = self.post_json(f'/api/boards/{self.board.id}/columns', {'name': 'Review'})
        self.assertEqual(response.status_code, 403)

    def test_invalid_json_is_400(self):
        self.login(self.owner)
        response = self.client.post('/api/boards', '{not json', content_type='application/json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Invalid JSON body')
