"""Typed notification payloads pushed over the realtime channel.

Each class is one variant of the outbound message union: ``event_type`` is the
Socket.IO event name and ``to_payload()`` renders the camelCase body the
frontend expects. Nested objects (events, users, comments) are passed in
already serialized.
"""

from __future__ import annotations

from dataclasses import asdict
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timezone
from typing import Any
from typing import ClassVar


def utc_timestamp() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass(frozen=True)
class Notification:
    event_type: ClassVar[str] = ""

    def to_payload(self) -> dict[str, Any]:
        return {_camel(key): value for key, value in asdict(self).items()}

    def as_message(self) -> tuple[str, dict[str, Any]]:
        return self.event_type, self.to_payload()


# Events ---------------------------------------------------------------------


@dataclass(frozen=True)
class EventCreated(Notification):
    event_type: ClassVar[str] = "eventCreated"

    event: dict[str, Any]

    def to_payload(self) -> dict[str, Any]:
        return dict(self.event)


@dataclass(frozen=True)
class EventPublished(Notification):
    event_type: ClassVar[str] = "eventPublished"

    event: dict[str, Any]
    message: str
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class EventUpdated(Notification):
    event_type: ClassVar[str] = "eventUpdated"

    event: dict[str, Any]

    def to_payload(self) -> dict[str, Any]:
        return dict(self.event)


@dataclass(frozen=True)
class EventDeleted(Notification):
    event_type: ClassVar[str] = "eventDeleted"

    event_id: int


@dataclass(frozen=True)
class EventRegistration(Notification):
    event_type: ClassVar[str] = "eventRegistration"

    event: dict[str, Any]
    attendee: dict[str, Any]
    message: str
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class EventUnregistration(Notification):
    event_type: ClassVar[str] = "eventUnregistration"

    event_id: int


# Posts ----------------------------------------------------------------------


@dataclass(frozen=True)
class PostLiked(Notification):
    event_type: ClassVar[str] = "postLiked"

    post_id: int
    user: dict[str, Any]
    likes_count: int
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class PostCommented(Notification):
    event_type: ClassVar[str] = "postCommented"

    post_id: int
    comment: dict[str, Any]
    timestamp: str = field(default_factory=utc_timestamp)


# Chat -----------------------------------------------------------------------


@dataclass(frozen=True)
class NewMessage(Notification):
    event_type: ClassVar[str] = "newMessage"

    id: int
    text: str
    image_url: str | None
    created_at: str
    sender_id: int
    conversation_id: int
    temp_id: str | None = None
    seen_by: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class NewMessageNotification(Notification):
    event_type: ClassVar[str] = "newMessageNotification"

    conversation_id: int
    message: dict[str, Any]
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class JoinedConversation(Notification):
    event_type: ClassVar[str] = "joinedConversation"

    conversation_id: int
    ok: bool = True
    note: str | None = None


@dataclass(frozen=True)
class UserJoined(Notification):
    event_type: ClassVar[str] = "userJoined"

    conversation_id: int
    user_id: int
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class UserLeft(Notification):
    event_type: ClassVar[str] = "userLeft"

    conversation_id: int
    user_id: int
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class UserTyping(Notification):
    event_type: ClassVar[str] = "userTyping"

    conversation_id: int
    user_id: int
    typing: bool
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class TypingAck(Notification):
    event_type: ClassVar[str] = "typingAck"

    conversation_id: int
    ok: bool = True


@dataclass(frozen=True)
class MessageSeen(Notification):
    event_type: ClassVar[str] = "messageSeen"

    conversation_id: int
    message_ids: list[int]
    user_id: int
    timestamp: str = field(default_factory=utc_timestamp)


# Friends --------------------------------------------------------------------


@dataclass(frozen=True)
class FriendRequestSent(Notification):
    event_type: ClassVar[str] = "friendRequestSent"

    request: dict[str, Any]
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class FriendRequestAccepted(Notification):
    event_type: ClassVar[str] = "friendRequestAccepted"

    request: dict[str, Any]
    conversation: dict[str, Any] | None = None
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class FriendRequestRejected(Notification):
    event_type: ClassVar[str] = "friendRequestRejected"

    request: dict[str, Any]
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class FriendRequestDeleted(Notification):
    event_type: ClassVar[str] = "friendRequestDeleted"

    request: dict[str, Any]
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class UserBlocked(Notification):
    event_type: ClassVar[str] = "userBlocked"

    blocker_id: int
    blocked_id: int


@dataclass(frozen=True)
class UserBlockedConfirmation(UserBlocked):
    event_type: ClassVar[str] = "userBlockedConfirmation"


# Errors ---------------------------------------------------------------------


@dataclass(frozen=True)
class ErrorNotice(Notification):
    event_type: ClassVar[str] = "error"

    event: str
    message: str


NOTIFICATION_TYPES: dict[str, type[Notification]] = {
    cls.event_type: cls
    for cls in (
        EventCreated,
        EventPublished,
        EventUpdated,
        EventDeleted,
        EventRegistration,
        EventUnregistration,
        PostLiked,
        PostCommented,
        NewMessage,
        NewMessageNotification,
        JoinedConversation,
        UserJoined,
        UserLeft,
        UserTyping,
        TypingAck,
        MessageSeen,
        FriendRequestSent,
        FriendRequestAccepted,
        FriendRequestRejected,
        FriendRequestDeleted,
        UserBlocked,
        UserBlockedConfirmation,
        ErrorNotice,
    )
}
