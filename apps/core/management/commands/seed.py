# apps/core/management/commands/seed.py

from datetime import timedelta

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from apps.core.models import Board, Card, Checklist, ChecklistItem, Comment, Label, User
from apps.core.utils import log_activity


DEMO_CARDS = {
    'To Do': [
        ('Write onboarding guide', 'Cover sign-up and the first board', 3),
        ('Design invite e-mail', '', None),
    ],
    'In Progress': [
        ('Offline sync for cards', 'Queue writes while the network is down', 1),
    ],
    'Done': [
        ('Set up the project', 'Django, Channels and Redis', -2),
    ],
}


class Command(BaseCommand):
    help = 'Creates a demo user with a populated board'

    def add_arguments(self, parser):
        parser.add_argument('--username', default='demo')
        parser.add_argument('--password', default='demo12345')
        parser.add_argument('--email', default='demo@corkboard.local')

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write('🌱 Seeding demo data...')

        user, created = User.objects.get_or_create(
            username=options['username'],
            defaults={'email': options['email'], 'first_name': 'Demo'},
        )
        if created:
            user.set_password(options['password'])
            user.save()
            self.stdout.write(f"  👤 User '{user.username}' created")
        else:
            self.stdout.write(f"  👤 User '{user.username}' already exists")

        if Board.objects.filter(owner=user, name='Demo board').exists():
            self.stdout.write(self.style.WARNING('Demo board already exists, nothing to do'))
            return

        board = Board.objects.create(
            name='Demo board',
            description='A board to play with',
            owner=user,
        )
        log_activity(board, user, 'board_created', 'board', board.id, details={'name': board.name})

        labels = {
            name: Label.objects.create(board=board, name=name, color=color)
            for name, color in [('bug', '#EF4444'), ('feature', '#10B981'), ('docs', '#3B82F6')]
        }

        now = timezone.now()
        for column in board.columns.all():
            for position, (title, description, due_in) in enumerate(DEMO_CARDS.get(column.name, [])):
                card = Card.objects.create(
                    column=column,
                    title=title,
                    description=description,
                    position=position,
                    due_date=now + timedelta(days=due_in) if due_in is not None else None,
                    created_by=user,
                )
                card.assignees.add(user)
                card.labels.add(labels['docs'] if 'guide' in title else labels['feature'])

        card = Card.objects.get(column__board=board, title='Offline sync for cards')
        checklist = Checklist.objects.create(card=card, title='Steps')
        for position, (text, done) in enumerate([('Local store', True), ('Sync engine', True), ('Cache', False)]):
            ChecklistItem.objects.create(checklist=checklist, text=text, is_completed=done, position=position)
        Comment.objects.create(card=card, author=user, content='Retry on reconnect, stop on 401.')

        self.stdout.write(
            self.style.SUCCESS(
                f"\n✅ Demo board ready (id={board.id})\n"
                f"🔑 Sign in with {user.username}/{options['password']}\n"
            )
        )
