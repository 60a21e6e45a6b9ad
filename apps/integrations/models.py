# apps/integrations/models.py

from django.db import models

from apps.core.models import Board, User

SLACK = 'slack'
DISCORD = 'discord'

EVENTS = [
    'card_created',
    'card_moved',
    'card_edited',
    'card_deleted',
    'comment_added',
    'due_date_set',
    'member_assigned',
]


class Integration(models.Model):
    """A chat webhook that receives a board's events"""

    TYPE_CHOICES = [
        (SLACK, 'Slack'),
        (DISCORD, 'Discord'),
    ]

    board = models.ForeignKey(Board, on_delete=models.CASCADE, related_name='integrations')
    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    name = models.CharField(max_length=100)
    webhook_url = models.URLField(max_length=500)
    channel_id = models.CharField(max_length=100, blank=True)
    enabled = models.BooleanField(default=True)
    # Subset of EVENTS
    events = models.JSONField(default=list)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        related_name='integrations',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'integration'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.name} ({self.type})"

    def wants(self, event: str) -> bool:
        return self.enabled and event in self.events
