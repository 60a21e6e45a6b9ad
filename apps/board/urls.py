# apps/board/urls.py

from django.urls import path
from . import views

app_name = 'board'

urlpatterns = [
    # === BOARDS ===
    path('boards', views.boards_collection, name='boards'),
    path('boards/<int:board_id>', views.board_detail, name='board_detail'),
    path('boards/<int:board_id>/stats', views.board_stats, name='board_stats'),
    path('boards/<int:board_id>/activities', views.board_activities, name='board_activities'),
    path('boards/<int:board_id>/share', views.board_share, name='board_share'),

    # === COLUMNS ===
    path('boards/<int:board_id>/columns', views.board_columns, name='board_columns'),
    path('boards/<int:board_id>/columns/reorder', views.columns_reorder, name='columns_reorder'),
    path('boards/<int:board_id>/columns/<int:column_id>', views.column_detail, name='column_detail'),

    # === LABELS ===
    path('boards/<int:board_id>/labels', views.board_labels, name='board_labels'),
    path('labels/<int:label_id>', views.label_detail, name='label_detail'),

    # === CARDS ===
    path('cards', views.cards_collection, name='cards'),
    path('cards/<int:card_id>', views.card_detail, name='card_detail'),
    path('cards/<int:card_id>/move', views.card_move, name='card_move'),
    path('cards/<int:card_id>/labels/<int:label_id>', views.card_label, name='card_label'),
    path('cards/<int:card_id>/comments', views.card_comments, name='card_comments'),
    path('cards/<int:card_id>/checklists', views.card_checklists, name='card_checklists'),
    path('cards/<int:card_id>/attachments', views.card_attachments, name='card_attachments'),
    path('cards/<int:card_id>/votes', views.card_votes, name='card_votes'),
    path('cards/<int:card_id>/polls', views.card_polls, name='card_polls'),
    path('cards/<int:card_id>/relations', views.card_relations, name='card_relations'),

    # === CARD EXTRAS ===
    path('comments/<int:comment_id>', views.comment_detail, name='comment_detail'),
    path('checklists/<int:checklist_id>', views.checklist_detail, name='checklist_detail'),
    path('checklists/<int:checklist_id>/items', views.checklist_items, name='checklist_items'),
    path('checklists/<int:checklist_id>/items/<int:item_id>', views.checklist_item_detail,
         name='checklist_item_detail'),
    path('attachments/<int:attachment_id>', views.attachment_detail, name='attachment_detail'),
    path('polls/<int:poll_id>', views.poll_detail, name='poll_detail'),
    path('polls/<int:poll_id>/vote', views.poll_vote, name='poll_vote'),

    # === TEMPLATES ===
    path('templates', views.templates_collection, name='templates'),
    path('templates/save', views.template_save, name='template_save'),
    path('templates/copy', views.template_copy, name='template_copy'),

    # === SHARING ===
    path('invite/<str:code>', views.invite_detail, name='invite_detail'),
    path('invite/<str:code>/accept', views.invite_accept, name='invite_accept'),

    # === SEARCH ===
    path('search', views.search, name='search'),
]
