"""Conversation and message operations shared by the REST API and Socket.IO.

Functions here are synchronous; the Socket.IO handlers call them through
``database_sync_to_async``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count
from django.db.transaction import on_commit
from rest_framework.exceptions import NotFound
from rest_framework.exceptions import PermissionDenied
from rest_framework.exceptions import ValidationError

from senaconnect.realtime.publishers.chat import build_message_payload
from senaconnect.realtime.publishers.chat import publish_new_message

from .models import Conversation
from .models import Message

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Iterable

    from django.db.models import QuerySet

    from senaconnect.realtime.payloads import NewMessage
    from senaconnect.users.models import User

logger = logging.getLogger(__name__)

UserModel = get_user_model()


def conversations_for(user: User) -> QuerySet[Conversation]:
    return (
        Conversation.objects.filter(participants=user)
        .prefetch_related("participants")
        .distinct()
    )


def participant_ids(conversation: Conversation) -> list[int]:
    return list(conversation.participants.values_list("id", flat=True))


def is_participant(conversation_id: int, user_id: int) -> bool:
    return Conversation.objects.filter(
        pk=conversation_id, participants__id=user_id
    ).exists()


def get_conversation_for(user: User, conversation_id: int) -> Conversation:
    conversation = Conversation.objects.filter(pk=conversation_id).first()
    if conversation is None:
        msg = "Conversation not found."
        raise NotFound(msg)
    if not conversation.participants.filter(pk=user.pk).exists():
        msg = "You are not a participant of this conversation."
        raise PermissionDenied(msg)
    return conversation


def _resolve_participants(actor: User, ids: Iterable[int]) -> set[int]:
    wanted = {int(i) for i in ids} | {actor.pk}
    found = set(UserModel.objects.filter(pk__in=wanted).values_list("id", flat=True))
    missing = sorted(wanted - found)
    if missing:
        raise ValidationError({"participant_ids": [f"Unknown user ids: {missing}"]})
    if len(wanted) < 2:  # noqa: PLR2004
        msg = "A conversation needs at least two participants."
        raise ValidationError({"participant_ids": [msg]})
    return wanted


def find_conversation(ids: set[int]) -> Conversation | None:
    """Return the conversation whose participants are exactly ``ids``."""

    candidates = Conversation.objects.annotate(
        participants_count=Count("participants", distinct=True)
    ).filter(participants_count=len(ids))
    for user_id in ids:
        candidates = candidates.filter(participants__id=user_id)
    return candidates.order_by("id").first()


def get_or_create_conversation(
    actor: User, ids: Iterable[int]
) -> tuple[Conversation, bool]:
    wanted = _resolve_participants(actor, ids)
    with transaction.atomic():
        existing = find_conversation(wanted)
        if existing is not None:
            return existing, False
        conversation = Conversation.objects.create()
        conversation.participants.set(wanted)
    logger.info(
        "User %s started conversation %s with %s", actor.pk, conversation.pk, sorted(wanted)
    )
    return conversation, True


def set_participants(
    conversation: Conversation, actor: User, ids: Iterable[int]
) -> Conversation:
    wanted = _resolve_participants(actor, ids)
    conversation.participants.set(wanted)
    conversation.save(update_fields=["updated_at"])
    return conversation


def create_message(
    conversation: Conversation,
    sender: User | int,
    *,
    text: str = "",
    image: Any = None,
    image_url: str = "",
) -> Message:
    text = (text or "").strip()
    if not text and not image and not image_url:
        msg = "A message needs text or an image."
        raise ValidationError({"text": [msg]})

    sender_id = sender if isinstance(sender, int) else sender.pk
    with transaction.atomic():
        message = Message.objects.create(
            conversation=conversation,
            sender_id=sender_id,
            text=text,
            image=image or "",
            image_url=image_url or "",
        )
        # Bump the conversation so it sorts first in the sidebar.
        conversation.save(update_fields=["updated_at"])
    return message


def post_message(
    conversation: Conversation,
    sender: User,
    *,
    text: str = "",
    image: Any = None,
    image_url: str = "",
    temp_id: str | None = None,
) -> Message:
    """Create a message from the REST API and announce it after commit."""

    message = create_message(
        conversation, sender, text=text, image=image, image_url=image_url
    )
    audience = participant_ids(conversation)
    on_commit(lambda: publish_new_message(message, audience, temp_id))
    return message


def send_message_as(
    sender_id: int,
    conversation_id: int,
    *,
    text: str = "",
    image_url: str = "",
    temp_id: str | None = None,
) -> tuple[NewMessage, list[int]]:
    """Persist a message sent over the socket.

    The caller emits the returned payload itself, from the event loop.
    """

    if not is_participant(conversation_id, sender_id):
        msg = "You are not a participant of this conversation."
        raise PermissionDenied(msg)
    conversation = Conversation.objects.get(pk=conversation_id)
    message = create_message(conversation, sender_id, text=text, image_url=image_url)
    return build_message_payload(message, temp_id), participant_ids(conversation)


def mark_seen(user_id: int, conversation_id: int, message_ids: Iterable[int]) -> int:
    if not is_participant(conversation_id, user_id):
        return 0
    messages = (
        Message.objects.filter(conversation_id=conversation_id, pk__in=list(message_ids))
        .exclude(sender_id=user_id)
        .values_list("id", flat=True)
    )
    through = Message.seen_by.through
    rows = [through(message_id=mid, user_id=user_id) for mid in messages]
    through.objects.bulk_create(rows, ignore_conflicts=True)
    return len(rows)
