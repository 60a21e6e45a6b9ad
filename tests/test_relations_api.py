# tests/test_relations_api.py

from apps.core.models import Activity, Board, CardRelation

from .base import BoardTestCase


class CardRelationsApiTests(BoardTestCase):

    def setUp(self):
        self.source = self.make_card(title='Login form')
        self.target = self.make_card(self.doing, title='Auth backend')

    def relate(self, relation_type='blocks', target=None):
        target = target or self.target
        return self.post_json(
            f'/api/cards/{self.source.id}/relations',
            {'targetCardId': target.id, 'relationType': relation_type},
        )

    def test_create_relation(self):
        self.login(self.member)

        response = self.relate()

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['relationType'], 'blocks')
        self.assertEqual(response.json()['targetCardId'], self.target.id)
        self.assertTrue(Activity.objects.filter(action='card_related', card=self.source).exists())

    def test_relations_listed_from_both_ends(self):
        CardRelation.objects.create(source_card=self.source, target_card=self.target, relation_type='depends_on')
        self.login(self.viewer)

        outgoing = self.client.get(f'/api/cards/{self.source.id}/relations').json()['relations']
        incoming = self.client.get(f'/api/cards/{self.target.id}/relations').json()['relations']

        self.assertEqual(len(outgoing), 1)
        self.assertEqual(outgoing, incoming)
        self.assertEqual(outgoing[0]['targetCard']['columnName'], self.doing.name)
        self.assertEqual(outgoing[0]['sourceCard']['boardName'], 'Product')

    def test_relation_rules(self):
        self.login(self.member)

        self.assertEqual(self.relate('duplicates').status_code, 400)
        self.assertEqual(self.relate(target=self.source).status_code, 400)
        self.assertEqual(self.relate().status_code, 201)
        self.assertEqual(self.relate('related_to').status_code, 409)

    def test_target_on_hidden_board_is_not_found(self):
        hidden = Board.objects.create(name='Private', owner=self.outsider)
        hidden_card = self.make_card(hidden.columns.first(), title='Secret')
        self.login(self.member)

        response = self.relate(target=hidden_card)

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['error'], 'Target card not found')

    def test_cross_board_relation(self):
        other = Board.objects.create(name='Platform', owner=self.member)
        other_card = self.make_card(other.columns.first(), title='API gateway')
        self.login(self.member)

        self.assertEqual(self.relate(target=other_card).status_code, 201)
        relation = self.client.get(f'/api/cards/{self.source.id}/relations').json()['relations'][0]
        self.assertEqual(relation['targetCard']['boardName'], 'Platform')

    def test_viewer_cannot_relate(self):
        self.login(self.viewer)
        self.assertEqual(self.relate().status_code, 403)

    def test_delete_relation(self):
        CardRelation.objects.create(source_card=self.source, target_card=self.target, relation_type='blocks')
        self.login(self.member)
        url = f'/api/cards/{self.source.id}/relations'

        self.assertEqual(self.client.delete(url).status_code, 400)
        self.assertEqual(self.client.delete(f'{url}?targetCardId=999999').status_code, 404)
        self.assertEqual(self.client.delete(f'{url}?targetCardId={self.target.id}').json(), {'success': True})
        self.assertFalse(CardRelation.objects.exists())

    def test_relations_go_with_the_card(self):
        CardRelation.objects.create(source_card=self.source, target_card=self.target, relation_type='blocks')
        self.target.delete()
        self.assertFalse(CardRelation.objects.exists())
