"""Global Socket.IO server for the frontend.

One server and one namespace are shared by the events, chat and friends
gateways. Each gateway keeps its own registry of user -> connections; every
handler below forwards the transport hooks to the gateways that care about them.

Current frontend convention:
- URL base: ws://<host>:8000
- Socket.IO path: /socket.io (``REALTIME_SOCKETIO_PATH``)
- Namespace: /ws (``REALTIME_NAMESPACE``)
- Auth: `query.token` or `auth.token` (JWT access token)
- After connecting, the client emits `register` with `{ userId }`.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import parse_qs

import socketio
from channels.db import database_sync_to_async
from django.conf import settings
from rest_framework.exceptions import APIException
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

from .gateways import REGISTER
from .gateways import ChatGateway
from .gateways import EventsGateway
from .gateways import FriendsGateway

logger = logging.getLogger(__name__)

NAMESPACE = getattr(settings, "REALTIME_NAMESPACE", "/ws")


def _build_server() -> socketio.AsyncServer:
    options: dict[str, Any] = {
        "async_mode": "asgi",
        "cors_allowed_origins": getattr(settings, "REALTIME_CORS_ALLOWED_ORIGINS", "*"),
        "logger": False,
        "engineio_logger": False,
    }
    redis_url = getattr(settings, "REALTIME_REDIS_URL", "")
    if redis_url:
        # Lets broadcasts reach clients held by other worker processes.
        options["client_manager"] = socketio.AsyncRedisManager(redis_url)
    return socketio.AsyncServer(**options)


sio = _build_server()


class SocketIOTransport:
    """Adapt a python-socketio server to the gateway transport interface."""

    def __init__(self, server: socketio.AsyncServer, namespace: str) -> None:
        self.server = server
        self.namespace = namespace

    async def send(self, connection_id: str, event: str, payload: Any) -> None:
        await self.server.emit(event, payload, to=connection_id, namespace=self.namespace)

    async def broadcast(self, event: str, payload: Any) -> None:
        await self.server.emit(event, payload, namespace=self.namespace)

    async def send_to_room(
        self,
        room: str,
        event: str,
        payload: Any,
        *,
        skip: str | None = None,
    ) -> None:
        await self.server.emit(
            event, payload, room=room, skip_sid=skip, namespace=self.namespace
        )

    async def enter_room(self, connection_id: str, room: str) -> None:
        await self.server.enter_room(connection_id, room, namespace=self.namespace)

    async def leave_room(self, connection_id: str, room: str) -> None:
        await self.server.leave_room(connection_id, room, namespace=self.namespace)


transport = SocketIOTransport(sio, NAMESPACE)
events_gateway = EventsGateway(transport)
chat_gateway = ChatGateway(transport)
friends_gateway = FriendsGateway(transport)
GATEWAYS = (events_gateway, chat_gateway, friends_gateway)


@database_sync_to_async
def _get_user_id_from_access_token(token: str) -> int:
    # AccessToken raises TokenError itself, so expiry stays distinguishable.
    validated = AccessToken(token)
    user = JWTAuthentication().get_user(validated)
    return int(user.id)


def _extract_token(environ: dict[str, Any], auth: Any | None) -> str | None:
    """Extract JWT token from Socket.IO environ/auth.

    Handles python-socketio environ shapes across ASGI/WSGI servers.
    """

    scope: Any = environ
    if isinstance(environ, dict) and "asgi.scope" in environ:
        inner = environ.get("asgi.scope")
        if isinstance(inner, dict):
            scope = inner

    query_string: str | bytes = ""
    if isinstance(scope, dict) and "query_string" in scope:
        query_string = scope.get("query_string", b"")
    elif isinstance(scope, dict) and "QUERY_STRING" in scope:
        query_string = scope.get("QUERY_STRING", "")

    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")

    token = parse_qs(str(query_string)).get("token", [None])[0]
    if isinstance(token, str) and token:
        return token

    # Allow `auth: { token }` as fallback.
    if isinstance(auth, dict):
        auth_token = auth.get("token")
        if isinstance(auth_token, str) and auth_token:
            return auth_token

    return None


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


@sio.on("connect", namespace=NAMESPACE)
async def connect(sid: str, environ: dict[str, Any], auth: Any | None = None):
    token = _extract_token(environ, auth)
    user_id: int | None = None
    if token:
        try:
            user_id = await _get_user_id_from_access_token(token)
        except TokenError as exc:
            message = str(exc)
            # Frontend expects this exact string to trigger refresh.
            if "expired" in message.lower():
                msg = "jwt_expired"
                raise ConnectionRefusedError(msg) from exc
            msg = "unauthorized"
            raise ConnectionRefusedError(msg) from exc
        except AuthenticationFailed as exc:  # user not found / inactive, etc.
            msg = "unauthorized"
            raise ConnectionRefusedError(msg) from exc
        except Exception as exc:
            logger.exception("Socket.IO connect error")
            msg = "server_error"
            raise ConnectionRefusedError(msg) from exc
    elif not getattr(settings, "REALTIME_ALLOW_ANONYMOUS", True):
        msg = "unauthorized"
        raise ConnectionRefusedError(msg)

    await sio.save_session(sid, {"user_id": user_id}, namespace=NAMESPACE)
    for gateway in GATEWAYS:
        await gateway.on_connect(sid, user_id)


@sio.on("disconnect", namespace=NAMESPACE)
async def disconnect(sid: str, *args: Any):
    for gateway in GATEWAYS:
        await gateway.on_disconnect(sid)


@sio.on(REGISTER, namespace=NAMESPACE)
async def register(sid: str, data: Any):
    message = {**data, "type": REGISTER} if isinstance(data, dict) else data
    results = [await gateway.on_message(sid, message) for gateway in GATEWAYS]
    return {"ok": all(results)}


@sio.on("joinConversation", namespace=NAMESPACE)
async def join_conversation(sid: str, data: Any):
    from senaconnect.chat import services as chat_services  # noqa: PLC0415

    data = data if isinstance(data, dict) else {}
    conversation_id = _coerce_int(data.get("conversationId"))
    user_id = chat_gateway.user_for(sid)
    if conversation_id is None or user_id is None:
        await chat_gateway.send_error(
            sid, "joinConversation", "Could not join the conversation"
        )
        return {"ok": False}

    allowed = await database_sync_to_async(chat_services.is_participant)(
        conversation_id, user_id
    )
    if not allowed:
        logger.warning(
            "User %s is not a participant of conversation %s", user_id, conversation_id
        )
        await chat_gateway.send_error(
            sid, "joinConversation", "Could not join the conversation"
        )
        return {"ok": False}

    ack = await chat_gateway.join_conversation(sid, conversation_id)
    return ack.to_payload() if ack else {"ok": False}


@sio.on("leaveConversation", namespace=NAMESPACE)
async def leave_conversation(sid: str, data: Any):
    data = data if isinstance(data, dict) else {}
    conversation_id = _coerce_int(data.get("conversationId"))
    if conversation_id is None:
        return {"ok": False}
    return {"ok": await chat_gateway.leave_conversation(sid, conversation_id)}


@sio.on("sendMessage", namespace=NAMESPACE)
async def send_message(sid: str, data: Any):
    from senaconnect.chat import services as chat_services  # noqa: PLC0415

    data = data if isinstance(data, dict) else {}
    conversation_id = _coerce_int(data.get("conversationId"))
    sender_id = chat_gateway.user_for(sid)
    temp_id = data.get("tempId")
    if conversation_id is None or sender_id is None:
        error = "Register and provide a conversationId before sending"
        await chat_gateway.transport.send(sid, "messageError", {"message": error})
        return {"status": "error", "error": error}

    logger.info(
        "Message from user %s to conversation %s, tempId=%s",
        sender_id,
        conversation_id,
        temp_id or "none",
    )
    try:
        message, participant_ids = await database_sync_to_async(
            chat_services.send_message_as
        )(
            sender_id,
            conversation_id,
            text=str(data.get("text") or ""),
            image_url=str(data.get("imageUrl") or ""),
            temp_id=temp_id,
        )
    except APIException as exc:
        await chat_gateway.transport.send(
            sid, "messageError", {"message": "Error sending message", "error": str(exc)}
        )
        return {"status": "error", "error": str(exc)}
    except Exception as exc:
        logger.exception("Error sending message")
        await chat_gateway.transport.send(
            sid, "messageError", {"message": "Error sending message", "error": str(exc)}
        )
        return {"status": "error", "error": str(exc)}

    await chat_gateway.publish_message(message, participant_ids)
    return {"status": "ok", "message": message.to_payload()}


@sio.on("typing", namespace=NAMESPACE)
async def typing(sid: str, data: Any):
    data = data if isinstance(data, dict) else {}
    conversation_id = _coerce_int(data.get("conversationId"))
    if conversation_id is None:
        await chat_gateway.send_error(sid, "typing", "Could not notify typing")
        return
    await chat_gateway.typing(sid, conversation_id, bool(data.get("typing")))


@sio.on("messageSeen", namespace=NAMESPACE)
async def message_seen(sid: str, data: Any):
    from senaconnect.chat import services as chat_services  # noqa: PLC0415

    data = data if isinstance(data, dict) else {}
    conversation_id = _coerce_int(data.get("conversationId"))
    user_id = chat_gateway.user_for(sid)
    raw_ids = data.get("messageIds")
    if not isinstance(raw_ids, list):
        raw_ids = []
    message_ids = [mid for mid in (_coerce_int(v) for v in raw_ids) if mid is not None]
    if conversation_id is None or user_id is None:
        await chat_gateway.send_error(sid, "messageSeen", "Could not process seen")
        return
    await database_sync_to_async(chat_services.mark_seen)(
        user_id, conversation_id, message_ids
    )
    await chat_gateway.message_seen(sid, conversation_id, message_ids)
