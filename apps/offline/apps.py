# apps/offline/apps.py

from django.apps import AppConfig


class OfflineConfig(AppConfig):
    """Client-side kit: local store, write queue, replay and response cache"""

    name = 'apps.offline'
    verbose_name = 'Offline kit'
