from __future__ import annotations

from typing import Any


class TransportWriteError(Exception):
    """Synthetic write failure for a broken connection."""


class FakeTransport:
    """In-memory stand-in for the Socket.IO server.

    Records every write. Connections listed in ``broken`` raise on send, and
    ``fail_broadcast`` makes ``broadcast`` raise.
    """

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, Any]] = []
        self.broadcasts: list[tuple[str, Any]] = []
        self.room_sends: list[tuple[str, str, Any, str | None]] = []
        self.rooms: dict[str, set[str]] = {}
        self.broken: set[str] = set()
        self.fail_broadcast = False

    async def send(self, connection_id: str, event: str, payload: Any) -> None:
        if connection_id in self.broken:
            msg = f"connection {connection_id} is gone"
            raise TransportWriteError(msg)
        self.sent.append((connection_id, event, payload))

    async def broadcast(self, event: str, payload: Any) -> None:
        if self.fail_broadcast:
            msg = "broadcast failed"
            raise TransportWriteError(msg)
        self.broadcasts.append((event, payload))

    async def send_to_room(
        self,
        room: str,
        event: str,
        payload: Any,
        *,
        skip: str | None = None,
    ) -> None:
        self.room_sends.append((room, event, payload, skip))

    async def enter_room(self, connection_id: str, room: str) -> None:
        self.rooms.setdefault(room, set()).add(connection_id)

    async def leave_room(self, connection_id: str, room: str) -> None:
        self.rooms.get(room, set()).discard(connection_id)

    # Helpers ----------------------------------------------------------------

    def sent_to(self, connection_id: str) -> list[tuple[str, Any]]:
        return [(event, payload) for cid, event, payload in self.sent if cid == connection_id]

    def events(self) -> list[str]:
        return [event for _cid, event, _payload in self.sent]

    def room_events(self, room: str) -> list[str]:
        return [event for r, event, _payload, _skip in self.room_sends if r == room]
