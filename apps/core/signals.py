# apps/core/signals.py

import logging

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Board, BoardMember

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Board)
def setup_new_board(sender, instance, created, **kwargs):
    """
    Gives a new board its owner membership and default columns

    Boards built by the importer set skip_default_columns, they bring
    their own columns.
    """
    if not created:
        return

    BoardMember.objects.get_or_create(
        board=instance,
        user=instance.owner,
        defaults={'role': BoardMember.ROLE_ADMIN},
    )

    if getattr(instance, 'skip_default_columns', False):
        return

    if not instance.columns.exists():
        instance.create_default_columns(settings.CORKBOARD_DEFAULT_COLUMNS)
        logger.debug("Default columns created for board %s", instance.pk)
