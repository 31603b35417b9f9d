import pytest
from rest_framework.test import APIClient

from tests.factories import create_user


@pytest.fixture(autouse=True)
def _media_storage(settings, tmp_path):
    # Uploads must land in a writable, throwaway location.
    settings.MEDIA_ROOT = str(tmp_path / "media")


@pytest.fixture
def user(db):
    return create_user("alice")


@pytest.fixture
def other_user(db):
    return create_user("bob")


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def auth_client(api_client, user):
    api_client.force_authenticate(user=user)
    return api_client
