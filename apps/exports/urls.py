# apps/exports/urls.py

from django.urls import path
from . import views

app_name = 'exports'

urlpatterns = [
    path('boards/import', views.import_board_view, name='import_board'),
    path('boards/<int:board_id>/export', views.export_board, name='export_board'),
]
