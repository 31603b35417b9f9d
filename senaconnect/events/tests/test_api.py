from __future__ import annotations

from datetime import timedelta
from unittest import mock

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import transaction
from django.utils import timezone
from rest_framework import status

from senaconnect.events import services
from senaconnect.events.models import Event
from senaconnect.posts.models import Category
from tests.factories import create_event
from tests.factories import create_user
from tests.factories import png_upload

pytestmark = pytest.mark.django_db

EVENTS_URL = "/api/v1/events/"


def detail(event, suffix=""):
    return f"{EVENTS_URL}{event.pk}/{suffix}"


@pytest.fixture
def publishers():
    with (
        mock.patch("senaconnect.events.services.publish_event_created") as created,
        mock.patch("senaconnect.events.services.publish_event_published") as published,
        mock.patch("senaconnect.events.services.publish_event_updated") as updated,
        mock.patch("senaconnect.events.services.publish_event_deleted") as deleted,
        mock.patch("senaconnect.events.services.publish_event_registration") as registered,
        mock.patch(
            "senaconnect.events.services.publish_event_unregistration"
        ) as unregistered,
    ):
        yield mock.Mock(
            created=created,
            published=published,
            updated=updated,
            deleted=deleted,
            registered=registered,
            unregistered=unregistered,
        )


def event_body(**overrides):
    start = timezone.now() + timedelta(days=2)
    body = {
        "title": "Python meetup",
        "description": "Talks and pizza",
        "location": "Room 4",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(hours=3)).isoformat(),
        "event_type": "workshop",
    }
    body.update(overrides)
    return body


class TestCreate:
    def test_draft_notifies_creator(
        self, auth_client, user, publishers, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            resp = auth_client.post(EVENTS_URL, event_body(), format="json")

        assert resp.status_code == status.HTTP_201_CREATED, resp.data
        assert resp.data["is_draft"] is True
        assert resp.data["user"]["id"] == user.pk
        assert resp.data["attendees_count"] == 0
        publishers.created.assert_called_once()
        publishers.published.assert_not_called()

    def test_published_event_is_broadcast(
        self, auth_client, publishers, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            resp = auth_client.post(EVENTS_URL, event_body(is_draft=False), format="json")

        assert resp.status_code == status.HTTP_201_CREATED
        publishers.published.assert_called_once()
        publishers.created.assert_not_called()

    def test_start_in_past_rejected(self, auth_client, publishers):
        past = timezone.now() - timedelta(days=1)
        resp = auth_client.post(
            EVENTS_URL,
            event_body(
                start_date=past.isoformat(),
                end_date=(past + timedelta(hours=1)).isoformat(),
            ),
            format="json",
        )
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "start_date" in resp.data

    def test_end_before_start_rejected(self, auth_client, publishers):
        start = timezone.now() + timedelta(days=1)
        resp = auth_client.post(
            EVENTS_URL,
            event_body(
                start_date=start.isoformat(),
                end_date=(start - timedelta(hours=1)).isoformat(),
            ),
            format="json",
        )
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "end_date" in resp.data

    def test_multipart_with_image_and_categories(self, auth_client, publishers):
        category = Category.objects.create(name="Tech")
        body = event_body(category_ids=[category.pk], image=png_upload("cover.png"))

        resp = auth_client.post(EVENTS_URL, body, format="multipart")

        assert resp.status_code == status.HTTP_201_CREATED, resp.data
        assert resp.data["image"]
        assert [c["name"] for c in resp.data["categories"]] == ["Tech"]

    def test_non_image_upload_rejected(self, auth_client, publishers):
        bogus = SimpleUploadedFile("notes.txt", b"hello", content_type="text/plain")
        resp = auth_client.post(EVENTS_URL, event_body(image=bogus), format="multipart")
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "image" in resp.data


class TestList:
    def test_shows_published_and_own_drafts(self, auth_client, user, other_user):
        mine_draft = create_event(user, title="My draft", is_draft=True)
        theirs_draft = create_event(other_user, title="Their draft", is_draft=True)
        public = create_event(other_user, title="Public")

        resp = auth_client.get(EVENTS_URL)

        assert resp.status_code == status.HTTP_200_OK
        ids = {e["id"] for e in resp.data["results"]}
        assert ids == {mine_draft.pk, public.pk}
        assert theirs_draft.pk not in ids
        assert resp.data["count"] == 2
        assert resp.data["page"] == 1
        assert resp.data["totalPages"] == 1

    def test_paginates_with_limit(self, auth_client, other_user):
        for i in range(5):
            create_event(other_user, title=f"E{i}", starts_in=timedelta(days=i + 1))

        resp = auth_client.get(EVENTS_URL, {"limit": 2, "page": 2})

        assert resp.data["limit"] == 2
        assert resp.data["totalPages"] == 3
        assert [e["title"] for e in resp.data["results"]] == ["E2", "E3"]

    def test_pages_follow_start_date_not_creation_order(self, auth_client, user, other_user):
        for days in (5, 1, 4, 2, 3):
            create_event(other_user, title=f"In {days}", starts_in=timedelta(days=days))

        first = auth_client.get(EVENTS_URL, {"limit": 3, "page": 1})
        second = auth_client.get(EVENTS_URL, {"limit": 3, "page": 2})

        titles = [e["title"] for e in first.data["results"] + second.data["results"]]
        assert titles == ["In 1", "In 2", "In 3", "In 4", "In 5"]
        assert services.visible_events(user).ordered

    def test_filters(self, auth_client, other_user):
        category = Category.objects.create(name="Sports")
        run = create_event(other_user, title="Run", event_type="sports")
        run.categories.add(category)
        create_event(other_user, title="Talk", event_type="conference")

        by_type = auth_client.get(EVENTS_URL, {"eventType": "sports"})
        by_category = auth_client.get(EVENTS_URL, {"categoryId": category.pk})
        by_search = auth_client.get(EVENTS_URL, {"search": "tal"})

        assert [e["title"] for e in by_type.data["results"]] == ["Run"]
        assert [e["title"] for e in by_category.data["results"]] == ["Run"]
        assert [e["title"] for e in by_search.data["results"]] == ["Talk"]

    def test_date_range_filter(self, auth_client, other_user):
        create_event(other_user, title="Soon", starts_in=timedelta(days=1))
        create_event(other_user, title="Later", starts_in=timedelta(days=30))
        cutoff = (timezone.now() + timedelta(days=10)).isoformat()

        resp = auth_client.get(EVENTS_URL, {"startDateFrom": cutoff})

        assert [e["title"] for e in resp.data["results"]] == ["Later"]

    def test_mine_and_registered(self, auth_client, user, other_user):
        create_event(user, title="Mine", is_draft=True)
        joined = create_event(other_user, title="Joined")
        joined.attendees.add(user)
        create_event(other_user, title="Other")

        mine = auth_client.get(f"{EVENTS_URL}mine/")
        registered = auth_client.get(f"{EVENTS_URL}registered/")

        assert [e["title"] for e in mine.data["results"]] == ["Mine"]
        assert [e["title"] for e in registered.data["results"]] == ["Joined"]
        assert registered.data["results"][0]["is_registered"] is True

    def test_requires_authentication(self, api_client):
        assert api_client.get(EVENTS_URL).status_code == status.HTTP_401_UNAUTHORIZED


class TestOwnership:
    def test_only_creator_may_update(self, auth_client, other_user, publishers):
        event = create_event(other_user)
        resp = auth_client.patch(detail(event), {"title": "Hijacked"}, format="json")
        assert resp.status_code == status.HTTP_403_FORBIDDEN

    def test_update_notifies_attendees(
        self, auth_client, user, other_user, publishers, django_capture_on_commit_callbacks
    ):
        event = create_event(user)
        event.attendees.add(other_user)

        with django_capture_on_commit_callbacks(execute=True):
            resp = auth_client.patch(detail(event), {"title": "Renamed"}, format="json")

        assert resp.status_code == status.HTTP_200_OK, resp.data
        assert resp.data["title"] == "Renamed"
        _event, attendee_ids = publishers.updated.call_args.args
        assert attendee_ids == [other_user.pk]
        assert publishers.updated.call_args.kwargs == {"was_published": False}

    def test_update_draft_to_published(
        self, auth_client, user, publishers, django_capture_on_commit_callbacks
    ):
        event = create_event(user, is_draft=True)

        with django_capture_on_commit_callbacks(execute=True):
            auth_client.patch(detail(event), {"is_draft": False}, format="json")

        assert publishers.updated.call_args.kwargs == {"was_published": True}

    def test_publish_action(
        self, auth_client, user, publishers, django_capture_on_commit_callbacks
    ):
        event = create_event(user, is_draft=True)

        with django_capture_on_commit_callbacks(execute=True):
            resp = auth_client.post(detail(event, "publish/"))
        again = auth_client.post(detail(event, "publish/"))

        assert resp.status_code == status.HTTP_200_OK
        assert resp.data["is_draft"] is False
        publishers.published.assert_called_once()
        assert again.status_code == status.HTTP_400_BAD_REQUEST

    def test_delete_notifies_attendees(
        self, auth_client, user, other_user, publishers, django_capture_on_commit_callbacks
    ):
        event = create_event(user)
        event.attendees.add(other_user)
        event_id = event.pk

        with django_capture_on_commit_callbacks(execute=True):
            resp = auth_client.delete(detail(event))

        assert resp.status_code == status.HTTP_204_NO_CONTENT
        assert not Event.objects.filter(pk=event_id).exists()
        publishers.deleted.assert_called_once_with(event_id, [other_user.pk])

    def test_delete_removes_image_after_commit(
        self, auth_client, user, publishers, django_capture_on_commit_callbacks
    ):
        event = create_event(user, image=png_upload("cover.png"))
        storage, name = event.image.storage, event.image.name

        with django_capture_on_commit_callbacks(execute=True):
            auth_client.delete(detail(event))

        assert not storage.exists(name)

    def test_rolled_back_delete_keeps_row_and_image(self, user, publishers):
        event = create_event(user, image=png_upload("cover.png"))
        storage, name = event.image.storage, event.image.name

        with pytest.raises(RuntimeError), transaction.atomic():
            services.delete_event(event)
            msg = "rollback"
            raise RuntimeError(msg)

        assert Event.objects.filter(pk=event.pk).exists()
        assert storage.exists(name)


class TestRegistration:
    def test_register_and_unregister(
        self, auth_client, user, other_user, publishers, django_capture_on_commit_callbacks
    ):
        event = create_event(other_user)

        with django_capture_on_commit_callbacks(execute=True):
            resp = auth_client.post(detail(event, "register/"))
        assert resp.status_code == status.HTTP_200_OK, resp.data
        assert resp.data["attendees_count"] == 1
        assert resp.data["is_registered"] is True
        publishers.registered.assert_called_once()

        with django_capture_on_commit_callbacks(execute=True):
            resp = auth_client.delete(detail(event, "unregister/"))
        assert resp.status_code == status.HTTP_200_OK
        assert resp.data["attendees_count"] == 0
        publishers.unregistered.assert_called_once_with(event.pk, user.pk)

    def test_cannot_register_twice(self, auth_client, user, other_user, publishers):
        event = create_event(other_user)
        event.attendees.add(user)

        resp = auth_client.post(detail(event, "register/"))

        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "already registered" in str(resp.data["detail"])

    def test_capacity_is_respected(self, auth_client, other_user, publishers):
        event = create_event(other_user, max_attendees=1)
        event.attendees.add(create_user("carol"))

        resp = auth_client.post(detail(event, "register/"))

        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "maximum number of attendees" in str(resp.data["detail"])

    def test_cannot_register_for_own_draft(self, auth_client, user, publishers):
        event = create_event(user, is_draft=True)

        resp = auth_client.post(detail(event, "register/"))

        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "unpublished" in str(resp.data["detail"])

    def test_someone_elses_draft_is_invisible(self, auth_client, other_user, publishers):
        event = create_event(other_user, is_draft=True)
        assert auth_client.post(detail(event, "register/")).status_code == 404

    def test_unregister_when_not_registered(self, auth_client, other_user, publishers):
        event = create_event(other_user)
        resp = auth_client.delete(detail(event, "unregister/"))
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
