from __future__ import annotations

from typing import TYPE_CHECKING
from typing import Any

from asgiref.sync import async_to_sync

from senaconnect.friends.api.serializers import FriendRequestSerializer
from senaconnect.realtime.socketio import friends_gateway

if TYPE_CHECKING:  # import for type checking only
    from senaconnect.chat.models import Conversation
    from senaconnect.friends.models import FriendRequest


def build_friend_request_payload(request: FriendRequest) -> dict[str, Any]:
    return dict(FriendRequestSerializer(request).data)


def build_conversation_payload(conversation: Conversation) -> dict[str, Any]:
    return {
        "id": conversation.pk,
        "participantIds": sorted(conversation.participants.values_list("id", flat=True)),
    }


def publish_friend_request_sent(request: FriendRequest) -> None:
    async_to_sync(friends_gateway.notify_request_sent)(
        request.receiver_id, build_friend_request_payload(request)
    )


def publish_friend_request_accepted(
    request: FriendRequest, conversation: Conversation | None = None
) -> None:
    """Both sides hear about the new friendship and the conversation it opened."""

    async_to_sync(friends_gateway.notify_request_accepted)(
        [request.sender_id, request.receiver_id],
        build_friend_request_payload(request),
        build_conversation_payload(conversation) if conversation is not None else None,
    )


def publish_friend_request_rejected(request: FriendRequest) -> None:
    async_to_sync(friends_gateway.notify_request_rejected)(
        request.sender_id, build_friend_request_payload(request)
    )


def publish_friend_request_deleted(request: dict[str, Any]) -> None:
    # The row is gone by now, so the payload is built before deletion.
    user_ids = [request["sender"]["id"], request["receiver"]["id"]]
    async_to_sync(friends_gateway.notify_request_deleted)(user_ids, request)


def publish_user_blocked(blocker_id: int, blocked_id: int) -> None:
    async_to_sync(friends_gateway.notify_user_blocked)(blocker_id, blocked_id)
