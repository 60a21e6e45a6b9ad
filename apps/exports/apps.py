# apps/exports/apps.py

from django.apps import AppConfig


class ExportsConfig(AppConfig):
    name = 'apps.exports'
    verbose_name = 'Board import/export'
