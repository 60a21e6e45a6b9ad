# apps/integrations/admin.py

from django.contrib import admin

from .models import Integration


@admin.register(Integration)
class IntegrationAdmin(admin.ModelAdmin):
    list_display = ['name', 'type', 'board', 'enabled', 'updated_at']
    list_filter = ['type', 'enabled']
    search_fields = ['name', 'board__name']
