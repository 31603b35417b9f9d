"""Post, comment and like operations.

Views call into these helpers so the realtime side effects (``postLiked``,
``postCommented``) are scheduled in one place, after the transaction commits.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import IntegrityError
from django.db import transaction
from django.db.models import BooleanField
from django.db.models import Count
from django.db.models import Exists
from django.db.models import OuterRef
from django.db.models import Value
from django.db.transaction import on_commit

from senaconnect.realtime.publishers.posts import publish_post_commented
from senaconnect.realtime.publishers.posts import publish_post_liked

from .models import Comment
from .models import Like
from .models import Post

if TYPE_CHECKING:  # import for type checking only
    from django.db.models import QuerySet

    from senaconnect.users.models import User

logger = logging.getLogger(__name__)


def posts_queryset(user: User | None = None) -> QuerySet[Post]:
    queryset = (
        Post.objects.select_related("user")
        .prefetch_related("categories")
        .annotate(
            likes_count=Count("likes", distinct=True),
            comments_count=Count("comments", distinct=True),
        )
        # Annotated querysets group by, which drops Meta.ordering.
        .order_by("-created_at", "-id")
    )
    if user is not None and getattr(user, "is_authenticated", False):
        liked = Like.objects.filter(post=OuterRef("pk"), user=user)
        return queryset.annotate(liked_by_user=Exists(liked))
    return queryset.annotate(liked_by_user=Value(False, output_field=BooleanField()))


def toggle_like(post: Post, user: User) -> tuple[bool, int]:
    """Like the post, or remove the like when it already exists.

    Returns ``(liked, likes_count)`` as seen after the toggle.
    """

    with transaction.atomic():
        deleted, _unused = Like.objects.filter(post=post, user=user).delete()
        liked = not deleted
        if liked:
            try:
                with transaction.atomic():
                    Like.objects.create(post=post, user=user)
            except IntegrityError:
                # A concurrent request liked it first; the post is liked either way.
                logger.info("Duplicate like ignored for post %s by user %s", post.pk, user.pk)
        likes_count = Like.objects.filter(post=post).count()

    logger.info(
        "User %s %s post %s (%d likes)",
        user.pk,
        "liked" if liked else "unliked",
        post.pk,
        likes_count,
    )
    if liked and post.user_id != user.pk:
        on_commit(lambda: publish_post_liked(post, user, likes_count))
    return liked, likes_count


def likes_count(post: Post) -> int:
    return Like.objects.filter(post=post).count()


def add_comment(post: Post, user: User, content: str) -> Comment:
    comment = Comment.objects.create(post=post, user=user, content=content)
    if post.user_id != user.pk:
        on_commit(lambda: publish_post_commented(comment))
    return comment
