from __future__ import annotations

from rest_framework import serializers

from senaconnect.chat.models import Conversation
from senaconnect.chat.models import Message
from senaconnect.uploads import validate_image_upload
from senaconnect.users.api.serializers import UserSummarySerializer


class MessageSerializer(serializers.ModelSerializer):
    sender = UserSummarySerializer(read_only=True)
    seen_by = serializers.PrimaryKeyRelatedField(many=True, read_only=True)
    image_url = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = (
            "id",
            "conversation",
            "sender",
            "text",
            "image_url",
            "seen_by",
            "created_at",
        )
        read_only_fields = fields

    def get_image_url(self, obj: Message) -> str | None:
        url = obj.resolved_image_url
        request = self.context.get("request")
        if url and obj.image and request is not None:
            return request.build_absolute_uri(url)
        return url


class MessageCreateSerializer(serializers.Serializer):
    conversation = serializers.IntegerField(min_value=1)
    text = serializers.CharField(required=False, allow_blank=True, default="")
    image = serializers.ImageField(required=False, validators=[validate_image_upload])
    image_url = serializers.CharField(
        required=False, allow_blank=True, default="", max_length=500
    )
    tempId = serializers.CharField(required=False, allow_blank=True)  # noqa: N815


class MessageUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Message
        fields = ("text",)

    def validate_text(self, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "Text cannot be empty."
            raise serializers.ValidationError(msg)
        return value


class ConversationSerializer(serializers.ModelSerializer):
    participants = UserSummarySerializer(many=True, read_only=True)
    participant_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        write_only=True,
        allow_empty=False,
    )
    last_message = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = (
            "id",
            "participants",
            "participant_ids",
            "last_message",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("id", "created_at", "updated_at")

    def get_last_message(self, obj: Conversation) -> dict | None:
        message = obj.messages.select_related("sender").order_by("-created_at", "-id").first()
        if message is None:
            return None
        return MessageSerializer(message, context=self.context).data
