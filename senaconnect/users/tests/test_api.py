from __future__ import annotations

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework import status
from rest_framework.test import APIClient

from senaconnect.friends.models import FriendRequest
from senaconnect.posts.models import Post
from senaconnect.users.models import User
from tests.factories import create_friend_request
from tests.factories import create_post
from tests.factories import create_user
from tests.factories import png_upload

pytestmark = pytest.mark.django_db

USERS_URL = "/api/v1/users/"


class TestRegistration:
    def test_register_derives_username_from_email(self):
        client = APIClient()
        resp = client.post(
            USERS_URL,
            {"email": "New.Person@Example.com", "password": "S3cure-pass!", "name": "New"},
            format="json",
        )

        assert resp.status_code == status.HTTP_201_CREATED, resp.data
        assert resp.data["email"] == "new.person@example.com"
        assert resp.data["username"] == "newperson"
        assert "password" not in resp.data
        assert User.objects.get(pk=resp.data["id"]).check_password("S3cure-pass!")

    def test_username_collision_gets_suffix(self):
        create_user("newperson")
        resp = APIClient().post(
            USERS_URL,
            {"email": "newperson@other.org", "password": "S3cure-pass!"},
            format="json",
        )
        assert resp.data["username"] == "newperson2"

    def test_duplicate_email_rejected(self, user):
        resp = APIClient().post(
            USERS_URL,
            {"email": user.email.upper(), "password": "S3cure-pass!"},
            format="json",
        )
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "email" in resp.data

    def test_weak_password_rejected(self):
        resp = APIClient().post(
            USERS_URL, {"email": "weak@example.com", "password": "12345678"}, format="json"
        )
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "password" in resp.data


class TestProfile:
    def test_me_read_and_update(self, auth_client, user):
        resp = auth_client.get(f"{USERS_URL}me/")
        assert resp.data["email"] == user.email

        resp = auth_client.patch(
            f"{USERS_URL}me/",
            {"bio": "Hello there", "email": "changed@example.com"},
            format="json",
        )
        user.refresh_from_db()
        assert resp.status_code == status.HTTP_200_OK
        assert user.bio == "Hello there"
        assert user.email == "alice@example.com"

    def test_avatar_upload_replaces_previous(
        self, auth_client, user, django_capture_on_commit_callbacks
    ):
        url = f"{USERS_URL}me/avatar/"
        first = auth_client.put(url, {"avatar": png_upload("a.png")}, format="multipart")
        user.refresh_from_db()
        old_name = user.avatar.name
        with django_capture_on_commit_callbacks(execute=True):
            second = auth_client.put(
                url, {"avatar": png_upload("b.png")}, format="multipart"
            )
        user.refresh_from_db()

        assert first.status_code == status.HTTP_200_OK, first.data
        assert second.status_code == status.HTTP_200_OK
        assert user.avatar.name != old_name
        assert not user.avatar.storage.exists(old_name)

    def test_avatar_missing_file(self, auth_client):
        resp = auth_client.put(f"{USERS_URL}me/avatar/", {}, format="multipart")
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert resp.data["code"] == "MISSING_FILE"

    def test_avatar_bad_extension(self, auth_client):
        upload = SimpleUploadedFile("a.bmp", png_upload().read(), content_type="image/bmp")
        resp = auth_client.put(f"{USERS_URL}me/avatar/", {"avatar": upload}, format="multipart")
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert resp.data["avatar"][0].code == "invalid_extension"

    def test_list_and_retrieve_require_auth(self, api_client, user):
        assert api_client.get(USERS_URL).status_code == status.HTTP_401_UNAUTHORIZED
        api_client.force_authenticate(user=user)
        assert api_client.get(f"{USERS_URL}{user.pk}/").data["name"] == user.name

    def test_update_own_account_by_id(self, auth_client, user):
        resp = auth_client.put(
            f"{USERS_URL}{user.pk}/", {"name": "Alice L.", "bio": "Hi"}, format="json"
        )
        user.refresh_from_db()

        assert resp.status_code == status.HTTP_200_OK
        assert (user.name, user.bio) == ("Alice L.", "Hi")

    def test_cannot_update_someone_else(self, auth_client, other_user):
        resp = auth_client.put(
            f"{USERS_URL}{other_user.pk}/", {"name": "Hacked", "bio": ""}, format="json"
        )
        other_user.refresh_from_db()

        assert resp.status_code == status.HTTP_403_FORBIDDEN
        assert other_user.name == "Bob"

    def test_public_profile_counts(self, auth_client, user, other_user):
        create_post(other_user)
        create_friend_request(user, other_user, status="accepted")
        create_friend_request(create_user("carol"), other_user)

        resp = auth_client.get(f"{USERS_URL}{other_user.pk}/profile/")

        assert resp.status_code == status.HTTP_200_OK
        assert resp.data["username"] == "bob"
        assert resp.data["friends_count"] == 1
        assert resp.data["posts_count"] == 1
        assert "email" not in resp.data

    def test_delete_own_account(
        self, auth_client, user, other_user, django_capture_on_commit_callbacks
    ):
        user.avatar = png_upload("me.png")
        user.save()
        user_id = user.pk
        avatar_name = user.avatar.name
        storage = user.avatar.storage
        create_post(user)
        create_friend_request(user, other_user, status="accepted")

        with django_capture_on_commit_callbacks(execute=True):
            resp = auth_client.delete(f"{USERS_URL}me/")

        assert resp.status_code == status.HTTP_204_NO_CONTENT
        assert not User.objects.filter(pk=user_id).exists()
        assert not Post.objects.filter(user_id=user_id).exists()
        assert not FriendRequest.objects.exists()
        assert not storage.exists(avatar_name)


class TestJWT:
    def test_obtain_and_verify_with_email(self, user):
        client = APIClient()
        resp = client.post(
            "/api/v1/auth/jwt/create/",
            {"email": user.email, "password": "TestPass123!"},
            format="json",
        )
        assert resp.status_code == status.HTTP_200_OK, resp.content
        access = resp.data["access"]

        ok = client.post("/api/v1/auth/jwt/verify/", {"token": access}, format="json")
        bad = client.post(
            "/api/v1/auth/jwt/verify/", {"token": access[:-2] + "ab"}, format="json"
        )
        assert ok.status_code == status.HTTP_200_OK
        assert bad.status_code == status.HTTP_401_UNAUTHORIZED

    def test_bearer_token_authenticates(self, user):
        client = APIClient()
        access = client.post(
            "/api/v1/auth/jwt/create/",
            {"email": user.email, "password": "TestPass123!"},
            format="json",
        ).data["access"]

        client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
        assert client.get(f"{USERS_URL}me/").data["id"] == user.pk
