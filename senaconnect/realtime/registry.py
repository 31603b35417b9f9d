"""Process-local registry of live connections per user.

One registry is owned by each gateway. It is mutated only from the event loop
that runs the Socket.IO server, so it carries no locking.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Map user id -> set of open connection ids.

    A reverse index (connection id -> user id) keeps a connection under at
    most one user and makes ``unregister`` O(1).
    """

    def __init__(self, name: str = "realtime") -> None:
        self.name = name
        self._connections: dict[int, set[str]] = {}
        self._owners: dict[str, int] = {}

    def register(self, user_id: int, connection_id: str) -> None:
        owner = self._owners.get(connection_id)
        if owner == user_id:
            return
        if owner is not None:
            # Same connection re-registered as someone else: move it.
            self._discard(owner, connection_id)
        self._connections.setdefault(user_id, set()).add(connection_id)
        self._owners[connection_id] = user_id
        logger.debug(
            "[%s] user %s registered connection %s (%d open)",
            self.name,
            user_id,
            connection_id,
            len(self._connections[user_id]),
        )

    def unregister(self, connection_id: str) -> int | None:
        user_id = self._owners.pop(connection_id, None)
        if user_id is None:
            return None
        self._discard(user_id, connection_id)
        logger.debug(
            "[%s] user %s unregistered connection %s",
            self.name,
            user_id,
            connection_id,
        )
        return user_id

    def connections_for(self, user_id: int) -> frozenset[str]:
        return frozenset(self._connections.get(user_id, ()))

    def user_for(self, connection_id: str) -> int | None:
        return self._owners.get(connection_id)

    def is_connected(self, user_id: int) -> bool:
        return user_id in self._connections

    def users(self) -> frozenset[int]:
        return frozenset(self._connections)

    def clear(self) -> None:
        self._connections.clear()
        self._owners.clear()

    def _discard(self, user_id: int, connection_id: str) -> None:
        connections = self._connections.get(user_id)
        if connections is None:
            return
        connections.discard(connection_id)
        if not connections:
            del self._connections[user_id]

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._owners

    def __iter__(self) -> Iterator[int]:
        return iter(self.users())

    def __len__(self) -> int:
        return len(self._owners)

    def __repr__(self) -> str:
        return (
            f"ConnectionRegistry(name={self.name!r}, users={len(self._connections)}, "
            f"connections={len(self._owners)})"
        )
