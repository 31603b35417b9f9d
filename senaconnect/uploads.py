"""Image upload rules and stored-file cleanup for avatars, posts, events and chat."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from django.conf import settings
from django.db.transaction import on_commit
from rest_framework import serializers

if TYPE_CHECKING:  # import for type checking only
    from django.core.files.uploadedfile import UploadedFile
    from django.db.models.fields.files import FieldFile

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 5 * 1024 * 1024
DEFAULT_CONTENT_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")
ALLOWED_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "webp")


def validate_image_upload(upload: UploadedFile) -> UploadedFile:
    max_size = getattr(settings, "UPLOAD_IMAGE_MAX_SIZE", DEFAULT_MAX_SIZE)
    content_types = getattr(settings, "UPLOAD_IMAGE_CONTENT_TYPES", DEFAULT_CONTENT_TYPES)

    if upload.size is not None and upload.size > max_size:
        msg = f"Image is too large (max {max_size // (1024 * 1024) or 1} MB)."
        raise serializers.ValidationError(msg, code="file_too_large")

    extension = Path(upload.name or "").suffix.lstrip(".").lower()
    if extension not in ALLOWED_EXTENSIONS:
        msg = "Only image files are allowed (jpg, jpeg, png, gif, webp)."
        raise serializers.ValidationError(msg, code="invalid_extension")

    content_type = getattr(upload, "content_type", None)
    if content_type and content_type not in content_types:
        msg = f"Unsupported content type: {content_type}."
        raise serializers.ValidationError(msg, code="invalid_content_type")
    return upload


def delete_file_on_commit(field_file: FieldFile) -> None:
    """Remove a stored file once the surrounding transaction commits.

    The row keeps pointing at the file until then, so a rollback never leaves
    it referencing a missing upload.
    """

    if not field_file:
        return
    storage, name = field_file.storage, field_file.name

    def _delete() -> None:
        storage.delete(name)
        logger.info("Deleted stored file %s", name)

    on_commit(_delete)
