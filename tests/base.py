# tests/base.py

from django.test import TestCase

from apps.core.models import Board, BoardMember, Card, User


class BoardTestCase(TestCase):
    """
    A board with one user per role

    owner (admin), member, viewer and an outsider with no access.
    The board starts with the default columns To Do, In Progress, Done.
    """

    password = 'secret-pass-123'

    @classmethod
    def setUpTestData(cls):
        cls.owner = User.objects.create_user('owner', 'owner@example.com', cls.password, first_name='Olivia')
        cls.member = User.objects.create_user('member', 'member@example.com', cls.password)
        cls.viewer = User.objects.create_user('viewer', 'viewer@example.com', cls.password)
        cls.outsider = User.objects.create_user('outsider', 'outsider@example.com', cls.password)

        cls.board = Board.objects.create(name='Product', owner=cls.owner)
        BoardMember.objects.create(board=cls.board, user=cls.member, role=BoardMember.ROLE_MEMBER)
        BoardMember.objects.create(board=cls.board, user=cls.viewer, role=BoardMember.ROLE_VIEWER)

        cls.todo, cls.doing, cls.done = list(cls.board.columns.all())

    def login(self, user):
        self.client.force_login(user)

    def make_card(self, column=None, title='Card', **kwargs):
        column = column or self.todo
        position = kwargs.pop('position', column.cards.count())
        return Card.objects.create(column=column, title=title, position=position, created_by=self.owner, **kwargs)

    # === JSON helpers ===

    def get_json(self, url, **params):
        return self.client.get(url, params)

    def post_json(self, url, data=None):
        return self.client.post(url, data or {}, content_type='application/json')

    def patch_json(self, url, data):
        return self.client.patch(url, data, content_type='application/json')

    def put_json(self, url, data):
        return self.client.put(url, data, content_type='application/json')

    def delete(self, url):
        return self.client.delete(url)
