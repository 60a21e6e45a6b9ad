# tests/test_integrations_api.py

from unittest import mock

import requests

from apps.integrations import webhooks
from apps.integrations.models import Integration

from .base import BoardTestCase
from .fakes import FakeResponse

SLACK_URL = 'https://hooks.slack.com/services/T000/B000/XXXX'
DISCORD_URL = 'https://discord.com/api/webhooks/1/abc'


class IntegrationsApiTests(BoardTestCase):

    def add(self, **extra):
        data = {'type': 'slack', 'name': 'Team chat', 'webhookUrl': SLACK_URL, 'events': ['card_created']}
        data.update(extra)
        return self.post_json(f'/api/boards/{self.board.id}/integrations', data)

    def test_admin_adds_integration(self):
        self.login(self.owner)

        response = self.add()

        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.json()['enabled'])
        listed = self.client.get(f'/api/boards/{self.board.id}/integrations').json()['integrations']
        self.assertEqual([item['name'] for item in listed], ['Team chat'])

    def test_members_cannot_manage_integrations(self):
        self.login(self.member)
        self.assertEqual(self.add().status_code, 403)
        self.assertEqual(self.client.get(f'/api/boards/{self.board.id}/integrations').status_code, 403)

    def test_integration_validation(self):
        self.login(self.owner)

        self.assertEqual(self.add(type='teams').status_code, 400)
        self.assertEqual(self.add(webhookUrl='https://example.com/hook').status_code, 400)
        self.assertEqual(self.add(type='discord').status_code, 400)
        self.assertEqual(self.add(type='discord', webhookUrl=DISCORD_URL).status_code, 201)
        self.assertEqual(self.add(events=['card_exploded']).status_code, 400)
        self.assertEqual(self.add(events=[]).status_code, 400)

    def test_update_and_delete(self):
        integration = Integration.objects.create(
            board=self.board, type='slack', name='Chat', webhook_url=SLACK_URL, events=['card_created']
        )
        self.login(self.owner)
        url = f'/api/integrations/{integration.id}'

        data = self.patch_json(url, {'enabled': False, 'events': ['card_moved', 'card_moved']}).json()
        self.assertFalse(data['enabled'])
        self.assertEqual(data['events'], ['card_moved'])

        self.assertEqual(self.delete(url).json(), {'success': True})
        self.assertFalse(Integration.objects.exists())


class WebhookDispatchTests(BoardTestCase):

    def setUp(self):
        self.slack = Integration.objects.create(
            board=self.board, type='slack', name='Slack', webhook_url=SLACK_URL, events=['card_moved']
        )
        self.discord = Integration.objects.create(
            board=self.board, type='discord', name='Discord', webhook_url=DISCORD_URL,
            events=['card_moved', 'comment_added'],
        )

    def dispatch(self, event='card_moved', **extra):
        data = {'event': event, 'boardId': self.board.id, 'card': {'id': 1, 'title': 'Ship it', 'columnName': 'Done'}}
        data.update(extra)
        return self.post_json('/api/integrations/webhook', data)

    def test_event_reaches_subscribed_integrations(self):
        self.login(self.member)

        with mock.patch('apps.integrations.webhooks.requests.post', return_value=FakeResponse(200)) as post:
            data = self.dispatch().json()

        self.assertEqual((data['sent'], data['failed']), (2, 0))
        urls = [call.args[0] for call in post.call_args_list]
        self.assertEqual(urls, [SLACK_URL, DISCORD_URL])

        slack_payload = post.call_args_list[0].kwargs['json']
        self.assertIn('Card Moved', slack_payload['blocks'][0]['text']['text'])
        self.assertIn('*Moved to:*\nDone', [block.get('text', {}).get('text') for block in slack_payload['blocks']])

        discord_payload = post.call_args_list[1].kwargs['json']
        self.assertEqual(discord_payload['embeds'][0]['color'], 0x8B5CF6)

    def test_only_subscribed_and_enabled_integrations(self):
        self.discord.enabled = False
        self.discord.save()
        self.login(self.member)

        with mock.patch('apps.integrations.webhooks.requests.post', return_value=FakeResponse(200)) as post:
            data = self.dispatch('comment_added').json()

        self.assertEqual(data, {'sent': 0, 'failed': 0, 'results': []})
        post.assert_not_called()

    def test_delivery_failures_are_reported(self):
        self.login(self.member)
        outcomes = [FakeResponse(500), requests.ConnectionError('down')]

        with mock.patch('apps.integrations.webhooks.requests.post', side_effect=outcomes):
            data = self.dispatch().json()

        self.assertEqual((data['sent'], data['failed']), (0, 2))
        self.assertEqual(data['results'][0]['error'], 'HTTP 500')
        self.assertEqual(data['results'][1]['error'], 'down')

    def test_dispatch_validation(self):
        self.login(self.member)
        self.assertEqual(self.dispatch('card_exploded').status_code, 400)
        self.assertEqual(self.dispatch(card='Ship it').status_code, 400)

        self.login(self.viewer)
        self.assertEqual(self.dispatch().status_code, 403)


def test_slack_message_truncates_comments():
    message = webhooks.slack_message('comment_added', 'Product', details={'comment': 'x' * 400})

    comment = message['blocks'][3]['text']['text']
    assert comment.startswith('*Comment:*\n')
    assert len(comment) == len('*Comment:*\n') + 300
    assert comment.endswith('...')


def test_discord_message_lists_details():
    message = webhooks.discord_message('card_created', 'Product', user={'name': 'Olivia'}, details={'due_date': 'May 1'})

    fields = {field['name']: field['value'] for field in message['embeds'][0]['fields']}
    assert fields == {'Board': 'Product', 'By': 'Olivia', 'Due date': 'May 1'}
    assert message['username'] == 'Corkboard'
