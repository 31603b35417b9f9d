"""Event lifecycle rules and their realtime notifications.

Every mutation schedules its notification with ``on_commit`` so clients are
never told about state that was rolled back.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from django.db import transaction
from django.db.models import BooleanField
from django.db.models import Count
from django.db.models import Exists
from django.db.models import OuterRef
from django.db.models import Q
from django.db.models import Value
from django.db.transaction import on_commit
from rest_framework.exceptions import ValidationError

from senaconnect.realtime.publishers.events import publish_event_created
from senaconnect.realtime.publishers.events import publish_event_deleted
from senaconnect.realtime.publishers.events import publish_event_published
from senaconnect.realtime.publishers.events import publish_event_registration
from senaconnect.realtime.publishers.events import publish_event_unregistration
from senaconnect.realtime.publishers.events import publish_event_updated
from senaconnect.uploads import delete_file_on_commit

from .models import Event

if TYPE_CHECKING:  # import for type checking only
    from django.db.models import QuerySet

    from senaconnect.users.models import User

logger = logging.getLogger(__name__)


def events_queryset(user: User | None = None) -> QuerySet[Event]:
    queryset = (
        Event.objects.select_related("user")
        .prefetch_related("categories")
        .annotate(attendees_count=Count("attendees", distinct=True))
        # Annotated querysets group by, which drops Meta.ordering.
        .order_by("start_date", "id")
    )
    if user is not None and getattr(user, "is_authenticated", False):
        registered = Event.attendees.through.objects.filter(
            event=OuterRef("pk"), user=user
        )
        return queryset.annotate(is_registered=Exists(registered))
    return queryset.annotate(is_registered=Value(False, output_field=BooleanField()))


def visible_events(user: User) -> QuerySet[Event]:
    """Published events plus the caller's own drafts."""

    return events_queryset(user).filter(Q(is_draft=False) | Q(user=user))


def _attendee_ids(event: Event) -> list[int]:
    return list(event.attendees.values_list("id", flat=True))


def create_event(user: User, data: dict[str, Any]) -> Event:
    categories = data.pop("categories", None)
    with transaction.atomic():
        event = Event.objects.create(user=user, **data)
        if categories:
            event.categories.set(categories)

    logger.info(
        "User %s created event %s (%s)",
        user.pk,
        event.pk,
        "draft" if event.is_draft else "published",
    )
    if event.is_draft:
        on_commit(lambda: publish_event_created(event))
    else:
        on_commit(lambda: publish_event_published(event))
    return event


def update_event(event: Event, data: dict[str, Any]) -> Event:
    was_draft = event.is_draft
    categories = data.pop("categories", None)
    new_image = data.get("image")
    with transaction.atomic():
        if new_image:
            delete_file_on_commit(event.image)
        for field, value in data.items():
            setattr(event, field, value)
        event.save()
        if categories is not None:
            event.categories.set(categories)

    just_published = was_draft and not event.is_draft
    attendee_ids = _attendee_ids(event)
    on_commit(
        lambda: publish_event_updated(event, attendee_ids, was_published=just_published)
    )
    return event


def publish_event(event: Event) -> Event:
    if not event.is_draft:
        msg = "Event is already published."
        raise ValidationError({"detail": msg})
    event.is_draft = False
    event.save(update_fields=["is_draft", "updated_at"])
    logger.info("Event %s published", event.pk)
    on_commit(lambda: publish_event_published(event))
    return event


def delete_event(event: Event) -> None:
    event_id = event.pk
    attendee_ids = _attendee_ids(event)
    delete_file_on_commit(event.image)
    event.delete()
    logger.info("Event %s deleted (%d attendees notified)", event_id, len(attendee_ids))
    on_commit(lambda: publish_event_deleted(event_id, attendee_ids))


def register_attendee(event: Event, user: User) -> Event:
    with transaction.atomic():
        # Lock the row so concurrent registrations cannot overfill the event.
        event = Event.objects.select_for_update().get(pk=event.pk)
        if event.is_draft:
            msg = "Cannot register for an unpublished event."
            raise ValidationError({"detail": msg})
        if event.attendees.filter(pk=user.pk).exists():
            msg = "You are already registered for this event."
            raise ValidationError({"detail": msg})
        if event.is_full:
            msg = "This event has reached its maximum number of attendees."
            raise ValidationError({"detail": msg})
        event.attendees.add(user)

    logger.info("User %s registered for event %s", user.pk, event.pk)
    on_commit(lambda: publish_event_registration(event, user))
    return event


def unregister_attendee(event: Event, user: User) -> Event:
    if not event.attendees.filter(pk=user.pk).exists():
        msg = "You are not registered for this event."
        raise ValidationError({"detail": msg})
    event.attendees.remove(user)
    logger.info("User %s unregistered from event %s", user.pk, event.pk)
    on_commit(lambda: publish_event_unregistration(event.pk, user.pk))
    return event
