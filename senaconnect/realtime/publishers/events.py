from __future__ import annotations

from typing import TYPE_CHECKING
from typing import Any

from asgiref.sync import async_to_sync

from senaconnect.events.api.serializers import EventRealtimeSerializer
from senaconnect.realtime.socketio import events_gateway
from senaconnect.users.api.serializers import UserSummarySerializer

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Iterable

    from senaconnect.events.models import Event
    from senaconnect.users.models import User


def build_event_payload(event: Event) -> dict[str, Any]:
    return dict(EventRealtimeSerializer(event).data)


def publish_event_created(event: Event) -> None:
    """A draft was saved: only its creator hears about it."""

    async_to_sync(events_gateway.notify_event_created)(
        event.user_id, build_event_payload(event)
    )


def publish_event_published(event: Event) -> None:
    async_to_sync(events_gateway.notify_event_published)(build_event_payload(event))


def publish_event_updated(
    event: Event, attendee_ids: Iterable[int], *, was_published: bool = False
) -> None:
    async_to_sync(events_gateway.notify_event_updated)(
        build_event_payload(event), list(attendee_ids), was_published=was_published
    )


def publish_event_deleted(event_id: int, attendee_ids: Iterable[int]) -> None:
    async_to_sync(events_gateway.notify_event_deleted)(event_id, list(attendee_ids))


def publish_event_registration(event: Event, attendee: User) -> None:
    async_to_sync(events_gateway.notify_event_registration)(
        event.user_id,
        build_event_payload(event),
        dict(UserSummarySerializer(attendee).data),
    )


def publish_event_unregistration(event_id: int, user_id: int) -> None:
    async_to_sync(events_gateway.notify_event_unregistration)(event_id, user_id)
