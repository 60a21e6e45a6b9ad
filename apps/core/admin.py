# apps/core/admin.py

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.db.models import Count, Q
from django.utils import timezone
from django.utils.html import format_html

from .models import (
    User, Board, BoardMember, BoardShare, Column, Label, Card, Comment,
    Checklist, ChecklistItem, Attachment, Activity, CardVote, Poll, PollOption,
    CardRelation, BoardTemplate
)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin for the custom user model"""

    list_display = ['username', 'email', 'get_full_name', 'is_active', 'date_joined']
    list_filter = ['is_staff', 'is_active', 'date_joined']
    search_fields = ['username', 'first_name', 'last_name', 'email']
    ordering = ['-date_joined']

    fieldsets = BaseUserAdmin.fieldsets + (
        ('Profile', {
            'fields': ('avatar',)
        }),
    )


class BoardMemberInline(admin.TabularInline):
    model = BoardMember
    extra = 0
    fields = ['user', 'role', 'joined_at']
    readonly_fields = ['joined_at']


class ColumnInline(admin.TabularInline):
    model = Column
    extra = 0
    fields = ['name', 'position', 'wip_limit', 'color']
    ordering = ['position']


@admin.register(Board)
class BoardAdmin(admin.ModelAdmin):
    """Admin for boards"""

    list_display = ['name', 'owner', 'members_count', 'columns_count', 'color_preview', 'updated_at']
    list_filter = ['created_at']
    search_fields = ['name', 'description', 'owner__username']
    readonly_fields = ['created_at', 'updated_at']

    inlines = [BoardMemberInline, ColumnInline]

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(
            _members=Count('memberships', distinct=True),
            _columns=Count('columns', distinct=True),
        )

    def members_count(self, obj):
        return obj._members

    members_count.short_description = 'Members'

    def columns_count(self, obj):
        return obj._columns

    columns_count.short_description = 'Columns'

    def color_preview(self, obj):
        return format_html(
            '<div style="width: 20px; height: 20px; background-color: {}; '
            'border: 1px solid #ccc; border-radius: 3px;"></div>',
            obj.color
        )

    color_preview.short_description = 'Color'


@admin.register(BoardShare)
class BoardShareAdmin(admin.ModelAdmin):
    list_display = ['board', 'share_token', 'is_public', 'can_edit', 'updated_at']
    list_filter = ['is_public', 'can_edit']
    search_fields = ['board__name', 'share_token']


@admin.register(Column)
class ColumnAdmin(admin.ModelAdmin):
    """Admin for Kanban columns"""

    list_display = ['name', 'board', 'position', 'wip_limit', 'cards_count']
    list_filter = ['board']
    search_fields = ['name', 'board__name']
    ordering = ['board', 'position']

    def cards_count(self, obj):
        """Active cards against the WIP limit"""
        total = obj.active_cards().count()

        if obj.wip_limit > 0 and total >= obj.wip_limit:
            return format_html(
                '<span style="color: red; font-weight: bold;">{}/{}</span>',
                total, obj.wip_limit
            )
        elif obj.wip_limit > 0:
            return f"{total}/{obj.wip_limit}"
        return total

    cards_count.short_description = 'Cards/WIP'


@admin.register(Label)
class LabelAdmin(admin.ModelAdmin):
    list_display = ['name', 'board', 'color']
    list_filter = ['board']
    search_fields = ['name']


class CommentInline(admin.TabularInline):
    model = Comment
    extra = 0
    fields = ['author', 'content', 'created_at']
    readonly_fields = ['created_at']

    def has_add_permission(self, request, obj=None):
        return False


class ChecklistInline(admin.TabularInline):
    model = Checklist
    extra = 0
    fields = ['title']


@admin.register(Card)
class CardAdmin(admin.ModelAdmin):
    """Admin for cards"""

    list_display = ['id', 'title', 'column', 'position', 'due_status', 'archived', 'updated_at']
    list_filter = ['archived', 'column__board', 'created_at']
    search_fields = ['title', 'description']
    date_hierarchy = 'created_at'
    filter_horizontal = ['assignees', 'labels']
    readonly_fields = ['created_at', 'updated_at', 'created_by']

    inlines = [ChecklistInline, CommentInline]

    def due_status(self, obj):
        if not obj.due_date:
            return '-'

        if obj.is_overdue():
            days = (timezone.now() - obj.due_date).days
            return format_html('<span style="color: red;">Overdue {} days</span>', days)

        days = (obj.due_date - timezone.now()).days
        if days == 0:
            return format_html('<span style="color: orange;">Due today</span>')
        return f"In {days} days"

    due_status.short_description = 'Due'


class ChecklistItemInline(admin.TabularInline):
    model = ChecklistItem
    extra = 0
    fields = ['text', 'is_completed', 'position']


@admin.register(Checklist)
class ChecklistAdmin(admin.ModelAdmin):
    list_display = ['title', 'card', 'progress']
    search_fields = ['title', 'card__title']
    inlines = [ChecklistItemInline]

    def progress(self, obj):
        totals = obj.items.aggregate(
            total=Count('id'),
            done=Count('id', filter=Q(is_completed=True)),
        )
        return f"{totals['done']}/{totals['total']}"


@admin.register(Attachment)
class AttachmentAdmin(admin.ModelAdmin):
    list_display = ['name', 'card', 'size', 'content_type', 'uploaded_by', 'created_at']
    search_fields = ['name', 'card__title']


@admin.register(Activity)
class ActivityAdmin(admin.ModelAdmin):
    list_display = ['action', 'entity_type', 'entity_id', 'board', 'user', 'created_at']
    list_filter = ['action', 'entity_type']
    search_fields = ['board__name', 'user__username']
    date_hierarchy = 'created_at'

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(CardVote)
class CardVoteAdmin(admin.ModelAdmin):
    list_display = ['card', 'user', 'emoji', 'created_at']


class PollOptionInline(admin.TabularInline):
    model = PollOption
    extra = 0


@admin.register(Poll)
class PollAdmin(admin.ModelAdmin):
    list_display = ['question', 'card', 'allow_multiple', 'is_closed', 'ends_at']
    list_filter = ['is_closed', 'allow_multiple']
    inlines = [PollOptionInline]


@admin.register(CardRelation)
class CardRelationAdmin(admin.ModelAdmin):
    list_display = ['source_card', 'relation_type', 'target_card', 'created_at']
    list_filter = ['relation_type']
    raw_id_fields = ['source_card', 'target_card']


@admin.register(BoardTemplate)
class BoardTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'owner', 'created_at']
    list_filter = ['category']
    search_fields = ['name', 'owner__username']
