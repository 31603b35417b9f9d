"""Connection lifecycle and domain notifications for the realtime channel.

A gateway owns one :class:`ConnectionRegistry` and the dispatcher built on
it. The Socket.IO handlers in :mod:`senaconnect.realtime.socketio` call the
three lifecycle hooks; domain publishers call the ``notify_*`` helpers.
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING
from typing import Any

from . import payloads
from .dispatcher import NotificationDispatcher
from .registry import ConnectionRegistry

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Iterable

    from .dispatcher import Transport

logger = logging.getLogger(__name__)

REGISTER = "register"


class ConnectionState(enum.Enum):
    OPEN_UNREGISTERED = "open_unregistered"
    OPEN_REGISTERED = "open_registered"
    CLOSED = "closed"


def _valid_user_id(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def room_for_conversation(conversation_id: int) -> str:
    return f"conversation_{int(conversation_id)}"


class Gateway:
    name = "realtime"

    def __init__(
        self,
        transport: Transport,
        *,
        name: str | None = None,
        registry: ConnectionRegistry | None = None,
    ) -> None:
        if name is not None:
            self.name = name
        self.transport = transport
        self.registry = registry or ConnectionRegistry(self.name)
        self.dispatcher = NotificationDispatcher(self.registry, transport)
        # connection id -> identity established during the handshake
        self._open: dict[str, int | None] = {}

    # Lifecycle ---------------------------------------------------------------

    async def on_connect(self, connection_id: str, user_id: int | None = None) -> None:
        self._open[connection_id] = user_id if _valid_user_id(user_id) else None
        logger.info(
            "[%s] client connected: %s (user=%s)", self.name, connection_id, user_id
        )

    async def on_message(self, connection_id: str, message: Any) -> bool:
        if not isinstance(message, dict):
            logger.warning(
                "[%s] ignoring malformed message from %s", self.name, connection_id
            )
            return False
        if message.get("type") == REGISTER:
            return self._register(connection_id, message.get("userId"))
        logger.debug(
            "[%s] ignoring message type %r from %s",
            self.name,
            message.get("type"),
            connection_id,
        )
        return False

    async def on_disconnect(self, connection_id: str) -> int | None:
        self._open.pop(connection_id, None)
        user_id = self.registry.unregister(connection_id)
        if user_id is not None:
            logger.info(
                "[%s] user %s disconnected socket %s", self.name, user_id, connection_id
            )
        else:
            logger.info("[%s] client disconnected: %s", self.name, connection_id)
        return user_id

    def state(self, connection_id: str) -> ConnectionState:
        if connection_id not in self._open:
            return ConnectionState.CLOSED
        if connection_id in self.registry:
            return ConnectionState.OPEN_REGISTERED
        return ConnectionState.OPEN_UNREGISTERED

    def user_for(self, connection_id: str) -> int | None:
        return self.registry.user_for(connection_id)

    def is_user_connected(self, user_id: int) -> bool:
        return self.registry.is_connected(user_id)

    def _register(self, connection_id: str, claimed: Any) -> bool:
        if connection_id not in self._open:
            logger.warning(
                "[%s] register from closed connection %s", self.name, connection_id
            )
            return False
        if not _valid_user_id(claimed):
            logger.warning(
                "[%s] invalid userId in register: %r from %s",
                self.name,
                claimed,
                connection_id,
            )
            return False
        identity = self._open[connection_id]
        if identity is None:
            logger.warning(
                "[%s] anonymous connection %s tried to register as user %s",
                self.name,
                connection_id,
                claimed,
            )
            return False
        if claimed != identity:
            logger.warning(
                "[%s] connection %s authenticated as user %s claimed user %s",
                self.name,
                connection_id,
                identity,
                claimed,
            )
            return False
        self.registry.register(identity, connection_id)
        logger.info(
            "[%s] user %s registered with socket %s (%d users online)",
            self.name,
            identity,
            connection_id,
            len(self.registry.users()),
        )
        return True


class EventsGateway(Gateway):
    """Notifications about events, registrations and post activity."""

    name = "events"

    async def notify_event_created(self, creator_id: int, event: dict[str, Any]) -> int:
        return await self.dispatcher.send(payloads.EventCreated(event=event), to=creator_id)

    async def notify_event_published(self, event: dict[str, Any]) -> bool:
        logger.info("[%s] broadcasting event published: %s", self.name, event.get("title"))
        notification = payloads.EventPublished(
            event=event,
            message=f"New event published: {event.get('title', '')}",
        )
        return await self.dispatcher.broadcast_notification(notification)

    async def notify_event_updated(
        self,
        event: dict[str, Any],
        attendee_ids: Iterable[int],
        *,
        was_published: bool = False,
    ) -> None:
        if was_published:
            await self.notify_event_published(event)
            return
        attendee_ids = list(attendee_ids)
        if attendee_ids:
            await self.dispatcher.send(payloads.EventUpdated(event=event), to=attendee_ids)

    async def notify_event_deleted(self, event_id: int, attendee_ids: Iterable[int]) -> int:
        attendee_ids = list(attendee_ids)
        if not attendee_ids:
            return 0
        return await self.dispatcher.send(
            payloads.EventDeleted(event_id=event_id), to=attendee_ids
        )

    async def notify_event_registration(
        self,
        creator_id: int,
        event: dict[str, Any],
        attendee: dict[str, Any],
    ) -> int:
        who = attendee.get("name") or attendee.get("email") or "Someone"
        notification = payloads.EventRegistration(
            event=event,
            attendee=attendee,
            message=f"{who} registered for your event: {event.get('title', '')}",
        )
        return await self.dispatcher.send(notification, to=creator_id)

    async def notify_event_unregistration(self, event_id: int, user_id: int) -> int:
        return await self.dispatcher.send(
            payloads.EventUnregistration(event_id=event_id), to=user_id
        )

    async def notify_post_liked(
        self,
        author_id: int,
        post_id: int,
        user: dict[str, Any],
        likes_count: int,
    ) -> int:
        notification = payloads.PostLiked(
            post_id=post_id, user=user, likes_count=likes_count
        )
        return await self.dispatcher.send(notification, to=author_id)

    async def notify_post_commented(
        self,
        author_id: int,
        post_id: int,
        comment: dict[str, Any],
    ) -> int:
        notification = payloads.PostCommented(post_id=post_id, comment=comment)
        return await self.dispatcher.send(notification, to=author_id)


class ChatGateway(Gateway):
    """Chat rooms per conversation plus per-user message notifications."""

    name = "chat"

    def __init__(self, transport: Transport, **kwargs: Any) -> None:
        super().__init__(transport, **kwargs)
        # conversation id -> connections currently in its room
        self._rooms: dict[int, set[str]] = {}

    def members(self, conversation_id: int) -> frozenset[str]:
        return frozenset(self._rooms.get(conversation_id, ()))

    async def on_disconnect(self, connection_id: str) -> int | None:
        user_id = await super().on_disconnect(connection_id)
        for conversation_id in list(self._rooms):
            members = self._rooms[conversation_id]
            if connection_id not in members:
                continue
            members.discard(connection_id)
            if not members:
                del self._rooms[conversation_id]
            if user_id is not None:
                await self._emit_room(
                    conversation_id,
                    payloads.UserLeft(conversation_id=conversation_id, user_id=user_id),
                )
        return user_id

    async def join_conversation(
        self, connection_id: str, conversation_id: int
    ) -> payloads.JoinedConversation | None:
        user_id = self.user_for(connection_id)
        if user_id is None:
            await self.send_error(
                connection_id, "joinConversation", "Register before joining"
            )
            return None

        members = self._rooms.setdefault(conversation_id, set())
        if connection_id in members:
            logger.info(
                "[%s] user %s already in conversation %s",
                self.name,
                user_id,
                conversation_id,
            )
            ack = payloads.JoinedConversation(
                conversation_id=conversation_id, note="already_joined"
            )
            await self._emit_to(connection_id, ack)
            return ack

        await self.transport.enter_room(
            connection_id, room_for_conversation(conversation_id)
        )
        members.add(connection_id)
        await self._emit_room(
            conversation_id,
            payloads.UserJoined(conversation_id=conversation_id, user_id=user_id),
            skip=connection_id,
        )
        ack = payloads.JoinedConversation(conversation_id=conversation_id)
        await self._emit_to(connection_id, ack)
        logger.info(
            "[%s] user %s joined conversation %s", self.name, user_id, conversation_id
        )
        return ack

    async def leave_conversation(self, connection_id: str, conversation_id: int) -> bool:
        members = self._rooms.get(conversation_id)
        if not members or connection_id not in members:
            return False
        members.discard(connection_id)
        if not members:
            del self._rooms[conversation_id]
        await self.transport.leave_room(
            connection_id, room_for_conversation(conversation_id)
        )
        user_id = self.user_for(connection_id)
        if user_id is not None:
            await self._emit_room(
                conversation_id,
                payloads.UserLeft(conversation_id=conversation_id, user_id=user_id),
            )
        return True

    async def typing(self, connection_id: str, conversation_id: int, typing: bool) -> None:
        user_id = self.user_for(connection_id)
        if user_id is None:
            await self.send_error(connection_id, "typing", "Register before typing")
            return
        await self._emit_room(
            conversation_id,
            payloads.UserTyping(
                conversation_id=conversation_id, user_id=user_id, typing=bool(typing)
            ),
            skip=connection_id,
        )
        await self._emit_to(
            connection_id, payloads.TypingAck(conversation_id=conversation_id)
        )

    async def message_seen(
        self,
        connection_id: str,
        conversation_id: int,
        message_ids: list[int],
    ) -> None:
        user_id = self.user_for(connection_id)
        if user_id is None:
            await self.send_error(connection_id, "messageSeen", "Register first")
            return
        logger.info(
            "[%s] user %s saw %d messages in conversation %s",
            self.name,
            user_id,
            len(message_ids),
            conversation_id,
        )
        await self._emit_room(
            conversation_id,
            payloads.MessageSeen(
                conversation_id=conversation_id,
                message_ids=list(message_ids),
                user_id=user_id,
            ),
        )

    async def publish_message(
        self,
        message: payloads.NewMessage,
        participant_ids: Iterable[int],
    ) -> int:
        """Send a new message to its room and notify every participant."""

        await self._emit_room(message.conversation_id, message)
        notification = payloads.NewMessageNotification(
            conversation_id=message.conversation_id,
            message=message.to_payload(),
        )
        return await self.dispatcher.send(notification, to=participant_ids)

    async def send_error(self, connection_id: str, event: str, message: str) -> None:
        await self._emit_to(
            connection_id, payloads.ErrorNotice(event=event, message=message)
        )

    async def _emit_to(
        self, connection_id: str, notification: payloads.Notification
    ) -> None:
        event_type, payload = notification.as_message()
        try:
            await self.transport.send(connection_id, event_type, payload)
        except Exception:
            logger.exception(
                "[%s] failed to push %s to %s", self.name, event_type, connection_id
            )

    async def _emit_room(
        self,
        conversation_id: int,
        notification: payloads.Notification,
        *,
        skip: str | None = None,
    ) -> None:
        event_type, payload = notification.as_message()
        try:
            await self.transport.send_to_room(
                room_for_conversation(conversation_id), event_type, payload, skip=skip
            )
        except Exception:
            logger.exception(
                "[%s] failed to push %s to conversation %s",
                self.name,
                event_type,
                conversation_id,
            )


class FriendsGateway(Gateway):
    """Friend request and blocking notifications for the users involved."""

    name = "friends"

    async def notify_request_sent(self, receiver_id: int, request: dict[str, Any]) -> int:
        return await self.dispatcher.send(
            payloads.FriendRequestSent(request=request), to=receiver_id
        )

    async def notify_request_accepted(
        self,
        user_ids: Iterable[int],
        request: dict[str, Any],
        conversation: dict[str, Any] | None = None,
    ) -> int:
        notification = payloads.FriendRequestAccepted(
            request=request, conversation=conversation
        )
        return await self.dispatcher.send(notification, to=list(user_ids))

    async def notify_request_rejected(self, sender_id: int, request: dict[str, Any]) -> int:
        return await self.dispatcher.send(
            payloads.FriendRequestRejected(request=request), to=sender_id
        )

    async def notify_request_deleted(
        self, user_ids: Iterable[int], request: dict[str, Any]
    ) -> int:
        return await self.dispatcher.send(
            payloads.FriendRequestDeleted(request=request), to=list(user_ids)
        )

    async def notify_user_blocked(self, blocker_id: int, blocked_id: int) -> int:
        delivered = await self.dispatcher.send(
            payloads.UserBlocked(blocker_id=blocker_id, blocked_id=blocked_id),
            to=blocked_id,
        )
        delivered += await self.dispatcher.send(
            payloads.UserBlockedConfirmation(blocker_id=blocker_id, blocked_id=blocked_id),
            to=blocker_id,
        )
        logger.info("[%s] user %s blocked user %s", self.name, blocker_id, blocked_id)
        return delivered
