from __future__ import annotations

from typing import Any

from django.utils import timezone
from rest_framework import serializers

from senaconnect.events.models import Event
from senaconnect.posts.api.serializers import CategorySerializer
from senaconnect.posts.models import Category
from senaconnect.uploads import validate_image_upload
from senaconnect.users.api.serializers import UserSummarySerializer


class EventSerializer(serializers.ModelSerializer):
    """Read/write serializer for events.

    Without a request in the context (realtime payloads), ``is_registered``
    falls back to ``False``.
    """

    user = UserSummarySerializer(read_only=True)
    categories = CategorySerializer(many=True, read_only=True)
    category_ids = serializers.PrimaryKeyRelatedField(
        many=True,
        queryset=Category.objects.all(),
        source="categories",
        write_only=True,
        required=False,
    )
    image = serializers.ImageField(required=False, validators=[validate_image_upload])
    max_attendees = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    attendees_count = serializers.SerializerMethodField()
    is_registered = serializers.SerializerMethodField()

    class Meta:
        model = Event
        fields = (
            "id",
            "title",
            "description",
            "image",
            "location",
            "start_date",
            "end_date",
            "max_attendees",
            "is_draft",
            "event_type",
            "user",
            "categories",
            "category_ids",
            "attendees_count",
            "is_registered",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("id", "user", "created_at", "updated_at")

    def get_attendees_count(self, obj: Event) -> int:
        annotated = getattr(obj, "attendees_count", None)
        return annotated if annotated is not None else obj.attendees.count()

    def get_is_registered(self, obj: Event) -> bool:
        annotated = getattr(obj, "is_registered", None)
        if annotated is not None:
            return bool(annotated)
        request = self.context.get("request")
        user = getattr(request, "user", None)
        if not (user and user.is_authenticated):
            return False
        return obj.attendees.filter(pk=user.pk).exists()

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        start = attrs.get("start_date", getattr(self.instance, "start_date", None))
        end = attrs.get("end_date", getattr(self.instance, "end_date", None))

        if self.instance is None and start is not None and start < timezone.now():
            raise serializers.ValidationError(
                {"start_date": "The start date cannot be in the past."}
            )
        if start is not None and end is not None and end <= start:
            raise serializers.ValidationError(
                {"end_date": "The end date must be after the start date."}
            )
        return attrs


class EventRealtimeSerializer(EventSerializer):
    """Event shape pushed over the realtime channel (no per-viewer fields)."""

    class Meta(EventSerializer.Meta):
        fields = tuple(
            f for f in EventSerializer.Meta.fields if f not in ("category_ids", "is_registered")
        )
