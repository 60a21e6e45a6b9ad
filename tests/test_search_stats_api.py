# tests/test_search_stats_api.py

from datetime import timedelta

from django.utils import timezone

from apps.core.models import Board, Checklist, Label
from apps.core.utils import log_activity

from .base import BoardTestCase


class SearchApiTests(BoardTestCase):

    def search(self, **params):
        return self.client.get('/api/search', params).json()

    def test_title_matches_rank_first(self):
        self.make_card(title='Cleanup', description='remove the login hack')
        self.make_card(title='Login page')
        self.make_card(title='Unrelated')
        self.login(self.viewer)

        data = self.search(q='login')

        self.assertEqual(data['total'], 2)
        self.assertEqual([item['title'] for item in data['results']], ['Login page', 'Cleanup'])
        self.assertEqual([item['relevance'] for item in data['results']], [2, 1])
        self.assertEqual(data['results'][0]['boardName'], 'Product')
        self.assertEqual(data['results'][0]['columnName'], 'To Do')

    def test_search_only_sees_own_boards(self):
        other = Board.objects.create(name='Secret', owner=self.outsider)
        self.make_card(other.columns.first(), title='Secret login')
        self.login(self.viewer)

        self.assertEqual(self.search(q='login')['total'], 0)

    def test_filters(self):
        label = Label.objects.create(board=self.board, name='bug', color='#f00')
        late = self.make_card(title='Late', due_date=timezone.now() - timedelta(days=1))
        late.labels.add(label)
        late.assignees.add(self.member)
        self.make_card(title='Plain')
        self.make_card(title='Archived', archived=True)
        self.login(self.viewer)

        self.assertEqual([item['title'] for item in self.search(due='overdue')['results']], ['Late'])
        self.assertEqual([item['title'] for item in self.search(labels=str(label.id))['results']], ['Late'])
        self.assertEqual([item['title'] for item in self.search(assignees=str(self.member.id))['results']], ['Late'])
        self.assertEqual(self.search()['total'], 2)

    def test_unknown_due_filter(self):
        self.login(self.viewer)
        self.assertEqual(self.client.get('/api/search', {'due': 'someday'}).status_code, 400)

    def test_limit_is_capped(self):
        self.login(self.viewer)
        self.assertEqual(self.search(limit=1000)['limit'], 100)


class BoardStatsTests(BoardTestCase):

    def test_statistics(self):
        self.doing.wip_limit = 2
        self.doing.save()
        first = self.make_card(self.doing, due_date=timezone.now() - timedelta(days=1))
        first.assignees.add(self.member)
        self.make_card(self.doing)
        self.make_card(archived=True)

        checklist = Checklist.objects.create(card=first, title='Steps')
        checklist.items.create(text='a', is_completed=True, position=0)
        checklist.items.create(text='b', position=1)
        checklist.items.create(text='c', position=2)
        checklist.items.create(text='d', position=3)

        self.login(self.viewer)
        data = self.client.get(f'/api/boards/{self.board.id}/stats').json()

        self.assertEqual(data['totalCards'], 2)
        self.assertEqual(data['archivedCards'], 1)
        self.assertEqual(data['overdueCards'], 1)
        self.assertEqual(data['bottlenecks'][0]['status'], 'critical')
        self.assertEqual(data['bottlenecks'][0]['usage'], 100.0)
        self.assertEqual(data['distribution'], [{'userId': self.member.id, 'name': 'member', 'cards': 1}])
        self.assertEqual(data['checklists'], {'completed': 1, 'total': 4, 'percentage': 25})

    def test_warning_threshold(self):
        self.doing.wip_limit = 5
        self.doing.save()
        for _ in range(4):
            self.make_card(self.doing)

        self.login(self.viewer)
        bottleneck = self.client.get(f'/api/boards/{self.board.id}/stats').json()['bottlenecks'][0]
        self.assertEqual((bottleneck['status'], bottleneck['usage']), ('warning', 80.0))


class ActivitiesApiTests(BoardTestCase):

    def test_feed_is_newest_first_and_paged(self):
        card = self.make_card()
        for index in range(5):
            log_activity(self.board, self.owner, 'card_updated', 'card', card.id, card=card, details={'n': index})
        log_activity(self.board, self.member, 'comment_added', 'comment', 1, card=card)

        self.login(self.viewer)
        data = self.client.get(f'/api/boards/{self.board.id}/activities', {'limit': 2}).json()

        self.assertEqual(data['total'], 6)
        self.assertTrue(data['hasMore'])
        self.assertEqual(data['activities'][0]['action'], 'comment_added')
        self.assertEqual(data['activities'][1]['details'], {'n': 4})

    def test_filters(self):
        card = self.make_card()
        log_activity(self.board, self.owner, 'card_updated', 'card', card.id, card=card)
        log_activity(self.board, self.member, 'comment_added', 'comment', 1, card=card)

        self.login(self.viewer)
        url = f'/api/boards/{self.board.id}/activities'
        self.assertEqual(self.client.get(url, {'action': 'comment_added'}).json()['total'], 1)
        self.assertEqual(self.client.get(url, {'userId': self.owner.id}).json()['total'], 1)
        self.assertEqual(self.client.get(url, {'cardId': card.id}).json()['total'], 2)

    def test_api_writes_are_logged(self):
        self.login(self.member)
        card = self.post_json('/api/cards', {'columnId': self.todo.id, 'title': 'Logged'}).json()

        feed = self.client.get(f'/api/boards/{self.board.id}/activities').json()['activities']
        self.assertEqual(feed[0]['action'], 'card_created')
        self.assertEqual(feed[0]['entityId'], str(card['id']))
        self.assertEqual(feed[0]['user']['id'], self.member.id)
