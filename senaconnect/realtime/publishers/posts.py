from __future__ import annotations

from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync

from senaconnect.realtime.socketio import events_gateway
from senaconnect.users.api.serializers import UserSummarySerializer

if TYPE_CHECKING:  # import for type checking only
    from senaconnect.posts.models import Comment
    from senaconnect.posts.models import Post
    from senaconnect.users.models import User


def build_comment_payload(comment: Comment) -> dict:
    return {
        "id": comment.pk,
        "content": comment.content,
        "createdAt": comment.created_at.isoformat(),
        "user": dict(UserSummarySerializer(comment.user).data),
    }


def publish_post_liked(post: Post, user: User, likes_count: int) -> None:
    """Tell the post author that someone liked their post."""

    async_to_sync(events_gateway.notify_post_liked)(
        post.user_id,
        post.pk,
        dict(UserSummarySerializer(user).data),
        likes_count,
    )


def publish_post_commented(comment: Comment) -> None:
    async_to_sync(events_gateway.notify_post_commented)(
        comment.post.user_id,
        comment.post_id,
        build_comment_payload(comment),
    )
