import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import transaction
from rest_framework.exceptions import ValidationError

from senaconnect.uploads import delete_file_on_commit
from senaconnect.uploads import validate_image_upload
from tests.factories import png_upload


def test_accepts_png():
    upload = png_upload()
    assert validate_image_upload(upload) is upload


def test_rejects_large_files(settings):
    settings.UPLOAD_IMAGE_MAX_SIZE = 4
    with pytest.raises(ValidationError) as exc_info:
        validate_image_upload(png_upload())
    assert exc_info.value.detail[0].code == "file_too_large"


@pytest.mark.parametrize(
    ("name", "content_type", "code"),
    [
        ("doc.pdf", "application/pdf", "invalid_extension"),
        ("noext", "image/png", "invalid_extension"),
        ("pic.png", "text/html", "invalid_content_type"),
    ],
)
def test_rejects_non_images(name, content_type, code):
    upload = SimpleUploadedFile(name, b"data", content_type=content_type)
    with pytest.raises(ValidationError) as exc_info:
        validate_image_upload(upload)
    assert exc_info.value.detail[0].code == code


@pytest.fixture
def stored_avatar(user):
    user.avatar = png_upload("me.png")
    user.save()
    return user.avatar


@pytest.mark.django_db
def test_stored_file_removed_only_after_commit(stored_avatar, django_capture_on_commit_callbacks):
    storage, name = stored_avatar.storage, stored_avatar.name

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        delete_file_on_commit(stored_avatar)
        assert storage.exists(name)

    assert len(callbacks) == 1
    assert not storage.exists(name)


@pytest.mark.django_db
def test_rolled_back_delete_keeps_file(stored_avatar, django_capture_on_commit_callbacks):
    storage, name = stored_avatar.storage, stored_avatar.name

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        with pytest.raises(RuntimeError), transaction.atomic():
            delete_file_on_commit(stored_avatar)
            msg = "rollback"
            raise RuntimeError(msg)

    assert callbacks == []
    assert storage.exists(name)


@pytest.mark.django_db
def test_empty_field_schedules_nothing(user, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks() as callbacks:
        delete_file_on_commit(user.avatar)
    assert callbacks == []
