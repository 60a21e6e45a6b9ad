# tests/test_boards_api.py

from apps.core.models import Activity, Board, Column

from .base import BoardTestCase


class BoardsApiTests(BoardTestCase):

    def test_list_boards_with_role(self):
        self.login(self.viewer)
        response = self.client.get('/api/boards')

        self.assertEqual(response.status_code, 200)
        boards = response.json()['boards']
        self.assertEqual(len(boards), 1)
        self.assertEqual(boards[0]['role'], 'viewer')
        self.assertEqual(boards[0]['columnsCount'], 3)
        self.assertEqual(boards[0]['membersCount'], 3)

    def test_create_board(self):
        self.login(self.member)
        response = self.post_json('/api/boards', {'name': '  Ops  ', 'color': '#000000'})

        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertEqual(data['name'], 'Ops')
        self.assertEqual(data['ownerId'], self.member.id)
        self.assertEqual([column['name'] for column in data['columns']], ['To Do', 'In Progress', 'Done'])
        self.assertTrue(Activity.objects.filter(board_id=data['id'], action='board_created').exists())

    def test_create_board_requires_name(self):
        self.login(self.member)
        response = self.post_json('/api/boards', {'name': '   '})

        self.assertEqual(response.status_code, 400)
        self.assertIn('name', response.json()['details'])

    def test_board_detail_is_nested(self):
        card = self.make_card(title='Nested')
        self.make_card(title='Archived', archived=True)
        self.login(self.viewer)

        data = self.client.get(f'/api/boards/{self.board.id}').json()

        self.assertEqual(data['role'], 'viewer')
        self.assertEqual(data['columns'][0]['cards'][0]['id'], card.id)
        self.assertEqual(len(data['columns'][0]['cards']), 1)
        self.assertEqual(len(data['members']), 3)

    def test_update_board(self):
        self.login(self.member)
        response = self.patch_json(f'/api/boards/{self.board.id}', {'name': 'Renamed'})

        self.assertEqual(response.status_code, 200)
        self.board.refresh_from_db()
        self.assertEqual(self.board.name, 'Renamed')

    def test_only_admin_deletes_board(self):
        self.login(self.member)
        self.assertEqual(self.delete(f'/api/boards/{self.board.id}').status_code, 403)

        self.login(self.owner)
        self.assertEqual(self.delete(f'/api/boards/{self.board.id}').status_code, 200)
        self.assertFalse(Board.objects.filter(id=self.board.id).exists())


class ColumnsApiTests(BoardTestCase):

    def test_list_columns_with_cards(self):
        self.make_card(self.doing, title='Busy')
        self.login(self.viewer)

        columns = self.client.get(f'/api/boards/{self.board.id}/columns').json()['columns']

        self.assertEqual([column['name'] for column in columns], ['To Do', 'In Progress', 'Done'])
        self.assertEqual(columns[1]['cards'][0]['title'], 'Busy')

    def test_create_column_appends(self):
        self.login(self.member)
        response = self.post_json(f'/api/boards/{self.board.id}/columns', {'name': 'Review', 'wipLimit': 3})

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['position'], 3)
        self.assertEqual(response.json()['wipLimit'], 3)

    def test_create_column_at_position_shifts_others(self):
        self.login(self.member)
        self.post_json(f'/api/boards/{self.board.id}/columns', {'name': 'Backlog', 'position': 0})

        self.assertEqual(
            list(self.board.columns.values_list('name', flat=True)),
            ['Backlog', 'To Do', 'In Progress', 'Done'],
        )

    def test_column_name_length(self):
        self.login(self.member)
        response = self.post_json(f'/api/boards/{self.board.id}/columns', {'name': 'x' * 51})
        self.assertEqual(response.status_code, 400)

    def test_update_column_position(self):
        self.login(self.member)
        response = self.patch_json(f'/api/boards/{self.board.id}/columns/{self.done.id}', {'position': 0})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['position'], 0)
        self.assertEqual(
            list(self.board.columns.values_list('name', flat=True)),
            ['Done', 'To Do', 'In Progress'],
        )

    def test_delete_column_compacts_positions(self):
        self.login(self.owner)
        response = self.delete(f'/api/boards/{self.board.id}/columns/{self.todo.id}')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(list(self.board.columns.values_list('position', flat=True)), [0, 1])

    def test_member_cannot_delete_column(self):
        self.login(self.member)
        response = self.delete(f'/api/boards/{self.board.id}/columns/{self.todo.id}')
        self.assertEqual(response.status_code, 403)
        self.assertTrue(Column.objects.filter(id=self.todo.id).exists())

    def test_reorder_columns(self):
        self.login(self.member)
        response = self.post_json(
            f'/api/boards/{self.board.id}/columns/reorder',
            {'columnIds': [self.doing.id, self.done.id, self.todo.id]},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            [column['id'] for column in response.json()['columns']],
            [self.doing.id, self.done.id, self.todo.id],
        )

    def test_reorder_rejects_partial_list(self):
        self.login(self.member)
        response = self.post_json(
            f'/api/boards/{self.board.id}/columns/reorder',
            {'columnIds': [self.doing.id]},
        )
        self.assertEqual(response.status_code, 400)
