# apps/integrations/apps.py

from django.apps import AppConfig


class IntegrationsConfig(AppConfig):
    """Slack and Discord webhooks notified about board events"""

    name = 'apps.integrations'
    verbose_name = 'Integrations'
