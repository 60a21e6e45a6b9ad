# apps/core/serializers.py

"""
Model to JSON helpers

The API speaks camelCase, the models snake_case. These functions are the
only place where the two meet.
"""


def iso(value):
    return value.isoformat() if value else None


def serialize_user(user):
    if user is None:
        return None
    return {
        'id': user.id,
        'username': user.username,
        'name': user.display_name,
        'email': user.email,
        'image': user.avatar.url if user.avatar else None,
    }


def serialize_member(membership):
    return {
        'id': membership.id,
        'role': membership.role,
        'joinedAt': iso(membership.joined_at),
        'user': serialize_user(membership.user),
    }


def serialize_label(label):
    return {
        'id': label.id,
        'boardId': label.board_id,
        'name': label.name,
        'color': label.color,
    }


def serialize_card(card, detail=False):
    data = {
        'id': card.id,
        'title': card.title,
        'description': card.description,
        'position': card.position,
        'dueDate': iso(card.due_date),
        'color': card.color,
        'archived': card.archived,
        'columnId': card.column_id,
        'boardId': card.column.board_id,
        'createdById': card.created_by_id,
        'createdAt': iso(card.created_at),
        'updatedAt': iso(card.updated_at),
        'assignees': [serialize_user(user) for user in card.assignees.all()],
        'labels': [serialize_label(label) for label in card.labels.all()],
    }
    if detail:
        data['comments'] = [serialize_comment(comment) for comment in card.comments.all()]
        data['checklists'] = [serialize_checklist(checklist) for checklist in card.checklists.all()]
        data['attachments'] = [serialize_attachment(item) for item in card.attachments.all()]
    return data


def serialize_column(column, with_cards=False):
    data = {
        'id': column.id,
        'boardId': column.board_id,
        'name': column.name,
        'position': column.position,
        'wipLimit': column.wip_limit,
        'color': column.color,
    }
    if with_cards:
        data['cards'] = [
            serialize_card(card)
            for card in column.cards.filter(archived=False).order_by('position', 'id')
        ]
    return data


def serialize_board(board, nested=False):
    data = {
        'id': board.id,
        'name': board.name,
        'description': board.description,
        'color': board.color,
        'ownerId': board.owner_id,
        'createdAt': iso(board.created_at),
        'updatedAt': iso(board.updated_at),
    }
    if nested:
        data['columns'] = [serialize_column(column, with_cards=True) for column in board.columns.all()]
        data['labels'] = [serialize_label(label) for label in board.labels.all()]
        data['members'] = [
            serialize_member(membership)
            for membership in board.memberships.select_related('user')
        ]
    return data


def serialize_comment(comment):
    return {
        'id': comment.id,
        'cardId': comment.card_id,
        'content': comment.content,
        'createdAt': iso(comment.created_at),
        'updatedAt': iso(comment.updated_at),
        'author': serialize_user(comment.author),
    }


def serialize_checklist_item(item):
    return {
        'id': item.id,
        'checklistId': item.checklist_id,
        'text': item.text,
        'isCompleted': item.is_completed,
        'position': item.position,
    }


def serialize_checklist(checklist):
    items = list(checklist.items.all())
    return {
        'id': checklist.id,
        'cardId': checklist.card_id,
        'title': checklist.title,
        'items': [serialize_checklist_item(item) for item in items],
        'completed': sum(1 for item in items if item.is_completed),
        'total': len(items),
    }


def serialize_attachment(attachment):
    return {
        'id': attachment.id,
        'cardId': attachment.card_id,
        'name': attachment.name,
        'size': attachment.size,
        'contentType': attachment.content_type,
        'url': attachment.file.url if attachment.file else None,
        'uploadedById': attachment.uploaded_by_id,
        'createdAt': iso(attachment.created_at),
    }


def serialize_activity(activity):
    return {
        'id': activity.id,
        'boardId': activity.board_id,
        'cardId': activity.card_id,
        'action': activity.action,
        'entityType': activity.entity_type,
        'entityId': activity.entity_id,
        'details': activity.details,
        'createdAt': iso(activity.created_at),
        'user': serialize_user(activity.user),
    }


def serialize_share(share, request=None):
    path = f"/invite/{share.share_token}"
    return {
        'boardId': share.board_id,
        'shareToken': share.share_token,
        'isPublic': share.is_public,
        'canEdit': share.can_edit,
        'shareUrl': request.build_absolute_uri(path) if request is not None else path,
        'updatedAt': iso(share.updated_at),
    }


def serialize_poll(poll, user=None):
    """Poll with per option counts and percentages"""
    options = list(poll.options.all())
    votes = list(poll.votes.all())
    total = len(votes)

    counts = {}
    mine = set()
    for vote in votes:
        counts[vote.option_id] = counts.get(vote.option_id, 0) + 1
        if user is not None and vote.user_id == user.id:
            mine.add(vote.option_id)

    return {
        'id': poll.id,
        'cardId': poll.card_id,
        'question': poll.question,
        'allowMultiple': poll.allow_multiple,
        'endsAt': iso(poll.ends_at),
        'isClosed': poll.is_closed,
        'isOpen': poll.is_open(),
        'createdById': poll.created_by_id,
        'createdAt': iso(poll.created_at),
        'totalVotes': total,
        'options': [
            {
                'id': option.id,
                'text': option.text,
                'votes': counts.get(option.id, 0),
                'percentage': round(counts.get(option.id, 0) / total * 100) if total else 0,
                'voted': option.id in mine,
            }
            for option in options
        ],
    }


def serialize_card_summary(card):
    column = card.column
    return {
        'id': card.id,
        'title': card.title,
        'boardId': column.board_id,
        'boardName': column.board.name,
        'columnId': column.id,
        'columnName': column.name,
    }


def serialize_relation(relation, with_cards=True):
    data = {
        'id': relation.id,
        'sourceCardId': relation.source_card_id,
        'targetCardId': relation.target_card_id,
        'relationType': relation.relation_type,
        'createdAt': iso(relation.created_at),
        'updatedAt': iso(relation.updated_at),
    }
    if with_cards:
        data['sourceCard'] = serialize_card_summary(relation.source_card)
        data['targetCard'] = serialize_card_summary(relation.target_card)
    return data
