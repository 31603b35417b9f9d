from __future__ import annotations

from rest_framework import serializers

from senaconnect.posts.models import Category
from senaconnect.posts.models import Comment
from senaconnect.posts.models import Post
from senaconnect.uploads import delete_file_on_commit
from senaconnect.uploads import validate_image_upload
from senaconnect.users.api.serializers import UserSummarySerializer


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ("id", "name", "description", "cover_image")


class CommentSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = Comment
        fields = ("id", "post", "user", "content", "created_at")
        read_only_fields = ("id", "post", "user", "created_at")

    def validate_content(self, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "Comment cannot be empty."
            raise serializers.ValidationError(msg)
        return value


class PostSerializer(serializers.ModelSerializer):
    """Read/write serializer for posts.

    ``likes_count``, ``comments_count`` and ``liked_by_user`` come from
    :func:`senaconnect.posts.services.posts_queryset` annotations when present.
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
    image = serializers.ImageField(
        required=False,
        validators=[validate_image_upload],
    )
    likes_count = serializers.SerializerMethodField()
    comments_count = serializers.SerializerMethodField()
    liked_by_user = serializers.SerializerMethodField()

    class Meta:
        model = Post
        fields = (
            "id",
            "title",
            "content",
            "summary",
            "image",
            "image_url",
            "user",
            "categories",
            "category_ids",
            "likes_count",
            "comments_count",
            "liked_by_user",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("id", "user", "created_at", "updated_at")

    def get_likes_count(self, obj: Post) -> int:
        annotated = getattr(obj, "likes_count", None)
        return annotated if annotated is not None else obj.likes.count()

    def get_comments_count(self, obj: Post) -> int:
        annotated = getattr(obj, "comments_count", None)
        return annotated if annotated is not None else obj.comments.count()

    def get_liked_by_user(self, obj: Post) -> bool:
        annotated = getattr(obj, "liked_by_user", None)
        if annotated is not None:
            return bool(annotated)
        request = self.context.get("request")
        user = getattr(request, "user", None)
        if not (user and user.is_authenticated):
            return False
        return obj.likes.filter(user=user).exists()

    def validate_title(self, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "Title cannot be empty."
            raise serializers.ValidationError(msg)
        return value

    def update(self, instance: Post, validated_data):
        # A new upload replaces whatever image the post had.
        if validated_data.get("image"):
            delete_file_on_commit(instance.image)
        return super().update(instance, validated_data)


class LikeToggleSerializer(serializers.Serializer):
    liked = serializers.BooleanField()
    likesCount = serializers.IntegerField()  # noqa: N815
