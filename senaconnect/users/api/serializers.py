from __future__ import annotations

from typing import Any

from django.contrib.auth.password_validation import validate_password
from django.utils.text import slugify
from rest_framework import serializers

from senaconnect.uploads import validate_image_upload
from senaconnect.users.models import User


def _unique_username(email: str) -> str:
    base = slugify(email.split("@", 1)[0])[:140] or "user"
    candidate = base
    suffix = 1
    while User.objects.filter(username=candidate).exists():
        suffix += 1
        candidate = f"{base}{suffix}"
    return candidate


class UserSummarySerializer(serializers.ModelSerializer[User]):
    """Compact user shape embedded in posts, events, comments and messages."""

    class Meta:
        model = User
        fields = ["id", "name", "email", "avatar"]
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer[User]):
    id = serializers.IntegerField(read_only=True)
    # Email is the login identifier, so it cannot be changed through the API.
    email = serializers.EmailField(read_only=True)
    avatar = serializers.ImageField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "name",
            "email",
            "avatar",
            "bio",
            "created_at",
        ]
        read_only_fields = ["username", "created_at"]


class UserRegistrationSerializer(serializers.ModelSerializer[User]):
    username = serializers.CharField(required=False, allow_blank=True, max_length=150)
    password = serializers.CharField(write_only=True, min_length=8)

    class Meta:
        model = User
        fields = ["id", "email", "username", "name", "bio", "password"]
        read_only_fields = ["id"]

    def validate_email(self, value: str) -> str:
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            msg = "A user with that email already exists."
            raise serializers.ValidationError(msg)
        return value

    def validate_username(self, value: str) -> str:
        value = value.strip()
        if value and User.objects.filter(username=value).exists():
            msg = "A user with that username already exists."
            raise serializers.ValidationError(msg)
        return value

    def validate_password(self, value: str) -> str:
        validate_password(value)
        return value

    def create(self, validated_data: dict[str, Any]) -> User:
        password = validated_data.pop("password")
        if not validated_data.get("username"):
            validated_data["username"] = _unique_username(validated_data["email"])
        return User.objects.create_user(password=password, **validated_data)


class AvatarUploadSerializer(serializers.Serializer):
    avatar = serializers.ImageField(validators=[validate_image_upload])


class UserProfileSerializer(serializers.ModelSerializer[User]):
    """Public profile of any user, as shown on their profile page."""

    avatar = serializers.ImageField(read_only=True)
    friends_count = serializers.IntegerField(read_only=True)
    posts_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "name",
            "avatar",
            "bio",
            "friends_count",
            "posts_count",
            "created_at",
        ]
        read_only_fields = fields
