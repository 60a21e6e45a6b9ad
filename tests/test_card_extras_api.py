# tests/test_card_extras_api.py

from django.core.files.uploadedfile import SimpleUploadedFile

from apps.core.models import Attachment, Checklist, Comment, Label

from .base import BoardTestCase


class LabelsApiTests(BoardTestCase):

    def test_create_and_list_labels(self):
        self.login(self.member)
        response = self.post_json(f'/api/boards/{self.board.id}/labels', {'name': 'urgent', 'color': '#EF4444'})
        self.assertEqual(response.status_code, 201)

        self.login(self.viewer)
        labels = self.client.get(f'/api/boards/{self.board.id}/labels').json()['labels']
        self.assertEqual([label['name'] for label in labels], ['urgent'])

    def test_label_requires_color(self):
        self.login(self.member)
        response = self.post_json(f'/api/boards/{self.board.id}/labels', {'name': 'urgent'})
        self.assertEqual(response.status_code, 400)

    def test_attach_and_detach_label(self):
        label = Label.objects.create(board=self.board, name='bug', color='#f00')
        card = self.make_card()
        self.login(self.member)

        response = self.post_json(f'/api/cards/{card.id}/labels/{label.id}')
        self.assertEqual([item['id'] for item in response.json()['labels']], [label.id])

        response = self.delete(f'/api/cards/{card.id}/labels/{label.id}')
        self.assertEqual(response.json()['labels'], [])

    def test_label_from_other_board_is_refused(self):
        from apps.core.models import Board

        other = Board.objects.create(name='Other', owner=self.member)
        label = Label.objects.create(board=other, name='bug', color='#f00')
        card = self.make_card()
        self.login(self.member)

        self.assertEqual(self.post_json(f'/api/cards/{card.id}/labels/{label.id}').status_code, 400)

    def test_update_and_delete_label(self):
        label = Label.objects.create(board=self.board, name='bug', color='#f00')
        self.login(self.member)

        response = self.patch_json(f'/api/labels/{label.id}', {'name': 'defect'})
        self.assertEqual(response.json()['name'], 'defect')

        self.assertEqual(self.delete(f'/api/labels/{label.id}').status_code, 200)
        self.assertFalse(Label.objects.filter(id=label.id).exists())


class CommentsApiTests(BoardTestCase):

    def test_add_and_list_comments(self):
        card = self.make_card()
        self.login(self.member)

        response = self.post_json(f'/api/cards/{card.id}/comments', {'content': 'Looks good'})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['author']['id'], self.member.id)

        comments = self.client.get(f'/api/cards/{card.id}/comments').json()['comments']
        self.assertEqual([comment['content'] for comment in comments], ['Looks good'])

    def test_empty_comment_is_refused(self):
        card = self.make_card()
        self.login(self.member)
        self.assertEqual(self.post_json(f'/api/cards/{card.id}/comments', {'content': '  '}).status_code, 400)

    def test_only_author_edits_comment(self):
        card = self.make_card()
        comment = Comment.objects.create(card=card, author=self.member, content='first')

        self.login(self.owner)
        self.assertEqual(self.patch_json(f'/api/comments/{comment.id}', {'content': 'hijack'}).status_code, 403)

        self.login(self.member)
        response = self.patch_json(f'/api/comments/{comment.id}', {'content': 'edited'})
        self.assertEqual(response.json()['content'], 'edited')

        self.assertEqual(self.delete(f'/api/comments/{comment.id}').status_code, 200)
        self.assertFalse(Comment.objects.filter(id=comment.id).exists())


class ChecklistsApiTests(BoardTestCase):

    def test_create_checklist_with_items(self):
        card = self.make_card()
        self.login(self.member)

        response = self.post_json(f'/api/cards/{card.id}/checklists', {
            'title': 'Release',
            'items': ['Tag', 'Deploy'],
        })

        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertEqual([item['text'] for item in data['items']], ['Tag', 'Deploy'])
        self.assertEqual((data['completed'], data['total']), (0, 2))

    def test_items_lifecycle(self):
        card = self.make_card()
        checklist = Checklist.objects.create(card=card, title='Steps')
        self.login(self.member)

        item = self.post_json(f'/api/checklists/{checklist.id}/items', {'text': 'Write tests'}).json()
        self.assertEqual(item['position'], 0)

        response = self.patch_json(
            f'/api/checklists/{checklist.id}/items/{item["id"]}',
            {'isCompleted': True},
        )
        self.assertTrue(response.json()['isCompleted'])

        data = self.client.get(f'/api/checklists/{checklist.id}').json()
        self.assertEqual((data['completed'], data['total']), (1, 1))

        self.assertEqual(self.delete(f'/api/checklists/{checklist.id}/items/{item["id"]}').status_code, 200)
        self.assertEqual(self.delete(f'/api/checklists/{checklist.id}').status_code, 200)
        self.assertFalse(Checklist.objects.filter(id=checklist.id).exists())

    def test_viewer_cannot_tick_items(self):
        card = self.make_card()
        checklist = Checklist.objects.create(card=card, title='Steps')
        item = checklist.items.create(text='x', position=0)
        self.login(self.viewer)

        response = self.patch_json(f'/api/checklists/{checklist.id}/items/{item.id}', {'isCompleted': True})
        self.assertEqual(response.status_code, 403)


class AttachmentsApiTests(BoardTestCase):

    def test_upload_and_delete(self):
        card = self.make_card()
        self.login(self.member)

        upload = SimpleUploadedFile('notes.txt', b'hello', content_type='text/plain')
        response = self.client.post(f'/api/cards/{card.id}/attachments', {'file': upload})

        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertEqual((data['name'], data['size'], data['contentType']), ('notes.txt', 5, 'text/plain'))

        self.assertEqual(self.delete(f'/api/attachments/{data["id"]}').status_code, 200)
        self.assertFalse(Attachment.objects.filter(id=data['id']).exists())

    def test_upload_without_file(self):
        card = self.make_card()
        self.login(self.member)
        self.assertEqual(self.client.post(f'/api/cards/{card.id}/attachments', {}).status_code, 400)
