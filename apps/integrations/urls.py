# apps/integrations/urls.py

from django.urls import path
from . import views

app_name = 'integrations'

urlpatterns = [
    path('boards/<int:board_id>/integrations', views.board_integrations, name='board_integrations'),
    path('integrations/webhook', views.webhook_dispatch, name='webhook'),
    path('integrations/<int:integration_id>', views.integration_detail, name='integration_detail'),
]
