from __future__ import annotations

from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync

from senaconnect.realtime.payloads import NewMessage
from senaconnect.realtime.socketio import chat_gateway

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Iterable

    from senaconnect.chat.models import Message


def build_message_payload(message: Message, temp_id: str | None = None) -> NewMessage:
    return NewMessage(
        id=message.pk,
        text=message.text,
        image_url=message.resolved_image_url,
        created_at=message.created_at.isoformat(),
        sender_id=message.sender_id,
        conversation_id=message.conversation_id,
        temp_id=temp_id,
        seen_by=list(message.seen_by.values_list("id", flat=True)),
    )


def publish_new_message(
    message: Message, participant_ids: Iterable[int], temp_id: str | None = None
) -> None:
    """Push a message created over REST to its room and its participants."""

    async_to_sync(chat_gateway.publish_message)(
        build_message_payload(message, temp_id), list(participant_ids)
    )
