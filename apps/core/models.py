# apps/core/models.py

import secrets

from django.contrib.auth.models import AbstractUser
from django.core.validators import MinLengthValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from PIL import Image


class User(AbstractUser):
    """
    Custom user model

    Avatars are shrunk to fit in 300x300 on save.
    """

    avatar = models.ImageField(upload_to='avatars/', blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'user'

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)

        if self.avatar:
            img = Image.open(self.avatar.path)
            if img.height > 300 or img.width > 300:
                img.thumbnail((300, 300))
                img.save(self.avatar.path)

    @property
    def display_name(self):
        return self.get_full_name() or self.username

    def __str__(self):
        return self.display_name


class Board(models.Model):
    """Kanban board, the root of columns, cards and labels"""

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    color = models.CharField(max_length=20, default='#3B82F6')
    owner = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='owned_boards'
    )
    members = models.ManyToManyField(
        User,
        through='BoardMember',
        related_name='boards'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'board'
        ordering = ['-updated_at']

    def __str__(self):
        return self.name

    def create_default_columns(self, names):
        """Creates the starting columns of a new board"""
        for position, name in enumerate(names):
            Column.objects.create(board=self, name=name, position=position)


class BoardMember(models.Model):
    """Membership of a user in a board, with a role"""

    ROLE_ADMIN = 'admin'
    ROLE_MEMBER = 'member'
    ROLE_VIEWER = 'viewer'

    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Admin'),
        (ROLE_MEMBER, 'Member'),
        (ROLE_VIEWER, 'Viewer'),
    ]

    board = models.ForeignKey(Board, on_delete=models.CASCADE, related_name='memberships')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='memberships')
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_MEMBER)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'board_member'
        ordering = ['joined_at']
        unique_together = ['board', 'user']

    def __str__(self):
        return f"{self.user} @ {self.board} ({self.role})"


def generate_share_token():
    return f"share_{secrets.token_hex(16)}"


class BoardShare(models.Model):
    """Public invite settings of a board"""

    board = models.OneToOneField(Board, on_delete=models.CASCADE, related_name='share')
    share_token = models.CharField(max_length=64, unique=True, default=generate_share_token)
    is_public = models.BooleanField(default=False)
    can_edit = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'board_share'

    def __str__(self):
        return f"{self.board} [{self.share_token}]"


class Column(models.Model):
    """Column of a board"""

    board = models.ForeignKey(Board, on_delete=models.CASCADE, related_name='columns')
    name = models.CharField(max_length=50, validators=[MinLengthValidator(1)])
    position = models.IntegerField(default=0)
    wip_limit = models.IntegerField(
        default=0,
        validators=[MinValueValidator(0)],
        help_text="Work In Progress - 0 = unlimited"
    )
    color = models.CharField(max_length=20, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'column'
        ordering = ['position', 'id']

    def __str__(self):
        return f"{self.name} - {self.board.name}"

    def active_cards(self):
        return self.cards.filter(archived=False)

    def can_add_card(self):
        """Checks the WIP limit"""
        if self.wip_limit == 0:
            return True
        return self.active_cards().count() < self.wip_limit


class Label(models.Model):
    board = models.ForeignKey(Board, on_delete=models.CASCADE, related_name='labels')
    name = models.CharField(max_length=50, validators=[MinLengthValidator(1)])
    color = models.CharField(max_length=20, validators=[MinLengthValidator(1)])
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'label'
        ordering = ['name']

    def __str__(self):
        return self.name


class Card(models.Model):
    """Card of a column"""

    column = models.ForeignKey(Column, on_delete=models.CASCADE, related_name='cards')
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    position = models.IntegerField(default=0)
    due_date = models.DateTimeField(null=True, blank=True)
    color = models.CharField(max_length=20, blank=True, default='')
    archived = models.BooleanField(default=False)
    assignees = models.ManyToManyField(User, blank=True, related_name='assigned_cards')
    labels = models.ManyToManyField(Label, blank=True, related_name='cards')
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        related_name='created_cards'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'card'
        ordering = ['position', 'id']

    def __str__(self):
        return self.title

    @property
    def board(self):
        return self.column.board

    def is_overdue(self):
        if self.due_date and not self.archived:
            return timezone.now() > self.due_date
        return False


class Comment(models.Model):
    card = models.ForeignKey(Card, on_delete=models.CASCADE, related_name='comments')
    author = models.ForeignKey(User, on_delete=models.CASCADE, related_name='comments')
    content = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'comment'
        ordering = ['created_at']

    def __str__(self):
        return f"Comment by {self.author} on {self.created_at:%Y-%m-%d}"


class Checklist(models.Model):
    card = models.ForeignKey(Card, on_delete=models.CASCADE, related_name='checklists')
    title = models.CharField(max_length=200)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'checklist'
        ordering = ['created_at', 'id']

    def __str__(self):
        return self.title


class ChecklistItem(models.Model):
    checklist = models.ForeignKey(Checklist, on_delete=models.CASCADE, related_name='items')
    text = models.CharField(max_length=500)
    is_completed = models.BooleanField(default=False)
    position = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'checklist_item'
        ordering = ['position', 'id']

    def __str__(self):
        return self.text


class Attachment(models.Model):
    card = models.ForeignKey(Card, on_delete=models.CASCADE, related_name='attachments')
    file = models.FileField(upload_to='attachments/%Y/%m/')
    name = models.CharField(max_length=255)
    size = models.PositiveIntegerField(default=0)
    content_type = models.CharField(max_length=100, blank=True)
    uploaded_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        related_name='attachments'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'attachment'
        ordering = ['-created_at']

    def __str__(self):
        return self.name


class Activity(models.Model):
    """Audit trail of a board"""

    board = models.ForeignKey(Board, on_delete=models.CASCADE, related_name='activities')
    card = models.ForeignKey(
        Card,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='activities'
    )
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        related_name='activities'
    )
    action = models.CharField(max_length=50, db_index=True)
    entity_type = models.CharField(max_length=30)
    entity_id = models.CharField(max_length=64, blank=True)
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'activity'
        ordering = ['-created_at', '-id']
        verbose_name_plural = 'activities'

    def __str__(self):
        return f"{self.action} ({self.entity_type} {self.entity_id})"


class CardVote(models.Model):
    card = models.ForeignKey(Card, on_delete=models.CASCADE, related_name='votes')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='card_votes')
    emoji = models.CharField(max_length=16, default='👍')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'card_vote'
        ordering = ['created_at']
        unique_together = ['card', 'user']


class Poll(models.Model):
    card = models.ForeignKey(Card, on_delete=models.CASCADE, related_name='polls')
    question = models.CharField(max_length=500)
    allow_multiple = models.BooleanField(default=False)
    ends_at = models.DateTimeField(null=True, blank=True)
    is_closed = models.BooleanField(default=False)
    created_by = models.ForeignKey(User, on_delete=models.CASCADE, related_name='polls')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'poll'
        ordering = ['-created_at']

    def __str__(self):
        return self.question

    def is_open(self):
        """Open polls accept votes"""
        if self.is_closed:
            return False
        if self.ends_at and timezone.now() > self.ends_at:
            return False
        return True


class PollOption(models.Model):
    poll = models.ForeignKey(Poll, on_delete=models.CASCADE, related_name='options')
    text = models.CharField(max_length=200)
    position = models.IntegerField(default=0)

    class Meta:
        db_table = 'poll_option'
        ordering = ['position', 'id']

    def __str__(self):
        return self.text


class PollVote(models.Model):
    poll = models.ForeignKey(Poll, on_delete=models.CASCADE, related_name='votes')
    option = models.ForeignKey(PollOption, on_delete=models.CASCADE, related_name='votes')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='poll_votes')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'poll_vote'
        unique_together = ['option', 'user']


class CardRelation(models.Model):
    """Directed link between two cards, possibly on different boards"""

    BLOCKS = 'blocks'
    BLOCKED_BY = 'blocked_by'
    DEPENDS_ON = 'depends_on'
    RELATED_TO = 'related_to'

    RELATION_CHOICES = [
        (BLOCKS, 'Blocks'),
        (BLOCKED_BY, 'Blocked by'),
        (DEPENDS_ON, 'Depends on'),
        (RELATED_TO, 'Related to'),
    ]

    source_card = models.ForeignKey(Card, on_delete=models.CASCADE, related_name='outgoing_relations')
    target_card = models.ForeignKey(Card, on_delete=models.CASCADE, related_name='incoming_relations')
    relation_type = models.CharField(max_length=20, choices=RELATION_CHOICES)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'card_relation'
        ordering = ['created_at']
        unique_together = ['source_card', 'target_card']

    def __str__(self):
        return f"{self.source_card_id} {self.relation_type} {self.target_card_id}"


class BoardTemplate(models.Model):
    """Column layout saved by a user for new boards"""

    CATEGORY_CHOICES = [
        ('kanban', 'Kanban'),
        ('scrum', 'Scrum'),
        ('bug-tracking', 'Bug tracking'),
        ('marketing', 'Marketing'),
        ('weekly-review', 'Weekly review'),
    ]

    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='board_templates')
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='kanban')
    icon = models.CharField(max_length=16, default='📋')
    # [{"name": ..., "color": ...}] in board order
    columns = models.JSONField(default=list)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'board_template'
        ordering = ['-created_at']

    def __str__(self):
        return self.name
