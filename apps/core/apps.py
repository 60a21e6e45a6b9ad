# apps/core/apps.py

from django.apps import AppConfig


class CoreConfig(AppConfig):
    name = 'apps.core'
    label = 'core'
    verbose_name = 'Boards'

    def ready(self):
        # Registers the activity and default-column receivers
        from . import signals  # noqa: F401
