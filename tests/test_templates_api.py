# tests/test_templates_api.py

from apps.core.models import Board, BoardTemplate
from apps.core.template_service import BUILT_IN_TEMPLATES

from .base import BoardTestCase


class TemplatesApiTests(BoardTestCase):

    def test_anonymous_sees_built_in_templates(self):
        templates = self.client.get('/api/templates').json()['templates']

        self.assertEqual([item['id'] for item in templates], [item['id'] for item in BUILT_IN_TEMPLATES])
        self.assertTrue(all(item['builtIn'] for item in templates))

    def test_user_templates_are_private(self):
        BoardTemplate.objects.create(owner=self.owner, name='Mine', columns=[{'name': 'A', 'color': ''}])
        self.login(self.member)

        templates = self.client.get('/api/templates').json()['templates']

        self.assertNotIn('Mine', [item['name'] for item in templates])

    def test_create_template(self):
        self.login(self.member)

        response = self.post_json('/api/templates', {
            'name': 'Hiring',
            'category': 'kanban',
            'columns': [{'name': 'Applied'}, {'name': 'Interview', 'color': '#f59e0b'}],
        })

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['columns'][1], {'name': 'Interview', 'color': '#f59e0b'})
        names = [item['name'] for item in self.client.get('/api/templates').json()['templates']]
        self.assertEqual(names[-1], 'Hiring')

    def test_create_template_validation(self):
        self.login(self.member)

        self.assertEqual(self.post_json('/api/templates', {'name': 'X', 'columns': []}).status_code, 400)
        self.assertEqual(
            self.post_json('/api/templates', {'name': 'X', 'category': 'other', 'columns': [{'name': 'A'}]}).status_code,
            400,
        )
        self.assertEqual(self.post_json('/api/templates', {'name': 'X', 'columns': ['A']}).status_code, 400)

    def test_create_template_requires_sign_in(self):
        self.assertEqual(self.post_json('/api/templates', {'name': 'X'}).status_code, 401)

    def test_save_board_as_template(self):
        self.login(self.owner)

        response = self.post_json('/api/templates/save', {'boardId': self.board.id, 'name': 'Product layout'})

        self.assertEqual(response.status_code, 201)
        self.assertEqual([column['name'] for column in response.json()['columns']], ['To Do', 'In Progress', 'Done'])

    def test_only_owner_saves_board_as_template(self):
        self.login(self.member)
        response = self.post_json('/api/templates/save', {'boardId': self.board.id, 'name': 'Copy'})
        self.assertEqual(response.status_code, 403)

        self.login(self.outsider)
        response = self.post_json('/api/templates/save', {'boardId': self.board.id, 'name': 'Copy'})
        self.assertEqual(response.status_code, 404)

    def test_copy_built_in_template(self):
        self.login(self.member)

        response = self.post_json('/api/templates/copy', {'templateId': 'bug-tracking', 'name': 'Bugs'})

        self.assertEqual(response.status_code, 201)
        board = Board.objects.get(id=response.json()['id'])
        self.assertEqual(board.owner, self.member)
        self.assertEqual(
            list(board.columns.values_list('name', flat=True)),
            ['New', 'Confirmed', 'In Progress', 'Fixed', 'Verified', 'Closed'],
        )
        self.assertEqual(board.columns.first().color, '#64748b')

    def test_copy_saved_template(self):
        template = BoardTemplate.objects.create(
            owner=self.owner, name='Mine', columns=[{'name': 'Inbox', 'color': ''}, {'name': 'Shipped', 'color': ''}]
        )
        self.login(self.owner)

        response = self.post_json('/api/templates/copy', {'templateId': template.id, 'name': 'Launch'})

        self.assertEqual([column['name'] for column in response.json()['columns']], ['Inbox', 'Shipped'])

    def test_copy_errors(self):
        template = BoardTemplate.objects.create(owner=self.owner, name='Mine', columns=[{'name': 'A', 'color': ''}])
        self.login(self.member)

        self.assertEqual(self.post_json('/api/templates/copy', {'templateId': 'nope', 'name': 'B'}).status_code, 404)
        self.assertEqual(self.post_json('/api/templates/copy', {'templateId': template.id, 'name': 'B'}).status_code, 403)
        self.assertEqual(self.post_json('/api/templates/copy', {'templateId': 'kanban-basic'}).status_code, 400)
