"""Best-effort fan-out of notifications to registered connections."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any
from typing import Protocol

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Iterable

    from .payloads import Notification
    from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """What the dispatcher and gateways need from the socket layer."""

    async def send(self, connection_id: str, event: str, payload: Any) -> None: ...

    async def broadcast(self, event: str, payload: Any) -> None: ...

    async def send_to_room(
        self,
        room: str,
        event: str,
        payload: Any,
        *,
        skip: str | None = None,
    ) -> None: ...

    async def enter_room(self, connection_id: str, room: str) -> None: ...

    async def leave_room(self, connection_id: str, room: str) -> None: ...


class NotificationDispatcher:
    """Resolve the audience of a notification and push it to each connection.

    Delivery is at-most-once: offline users are skipped, and a write failure
    on one connection is logged without affecting the others.
    """

    def __init__(self, registry: ConnectionRegistry, transport: Transport) -> None:
        self.registry = registry
        self.transport = transport

    async def notify_user(self, user_id: int, event_type: str, payload: Any) -> int:
        connections = self.registry.connections_for(user_id)
        if not connections:
            logger.debug(
                "[%s] user %s offline, dropping %s",
                self.registry.name,
                user_id,
                event_type,
            )
            return 0

        delivered = 0
        for connection_id in connections:
            try:
                await self.transport.send(connection_id, event_type, payload)
            except Exception:
                logger.exception(
                    "[%s] failed to push %s to connection %s of user %s",
                    self.registry.name,
                    event_type,
                    connection_id,
                    user_id,
                )
            else:
                delivered += 1

        logger.info(
            "[%s] emitted %s to user %s (%d/%d connections)",
            self.registry.name,
            event_type,
            user_id,
            delivered,
            len(connections),
        )
        return delivered

    async def notify_users(
        self,
        user_ids: Iterable[int],
        event_type: str,
        payload: Any,
    ) -> int:
        delivered = 0
        for user_id in dict.fromkeys(user_ids):
            delivered += await self.notify_user(user_id, event_type, payload)
        return delivered

    async def broadcast(self, event_type: str, payload: Any) -> bool:
        try:
            await self.transport.broadcast(event_type, payload)
        except Exception:
            logger.exception(
                "[%s] failed to broadcast %s", self.registry.name, event_type
            )
            return False
        logger.info("[%s] broadcast %s", self.registry.name, event_type)
        return True

    async def send(
        self,
        notification: Notification,
        *,
        to: int | Iterable[int],
    ) -> int:
        event_type, payload = notification.as_message()
        if isinstance(to, int):
            return await self.notify_user(to, event_type, payload)
        return await self.notify_users(to, event_type, payload)

    async def broadcast_notification(self, notification: Notification) -> bool:
        return await self.broadcast(*notification.as_message())
