from __future__ import annotations

from rest_framework import serializers

from senaconnect.friends.models import FriendRequest
from senaconnect.users.api.serializers import UserSummarySerializer
from senaconnect.users.models import User


class FriendRequestSerializer(serializers.ModelSerializer):
    sender = UserSummarySerializer(read_only=True)
    receiver = UserSummarySerializer(read_only=True)

    class Meta:
        model = FriendRequest
        fields = ("id", "sender", "receiver", "status", "created_at")
        read_only_fields = fields


class FriendRequestCreateSerializer(serializers.Serializer):
    receiverId = serializers.IntegerField(min_value=1)  # noqa: N815


class FriendRequestRespondSerializer(serializers.Serializer):
    accept = serializers.BooleanField()


class BlockCreateSerializer(serializers.Serializer):
    userId = serializers.IntegerField(min_value=1)  # noqa: N815


class UserSearchResultSerializer(UserSummarySerializer):
    """A user found by search, with where they stand relative to the caller."""

    friendStatus = serializers.CharField(  # noqa: N815
        source="friend_status", read_only=True
    )

    class Meta(UserSummarySerializer.Meta):
        model = User
        fields = [*UserSummarySerializer.Meta.fields, "username", "friendStatus"]
        read_only_fields = fields
