from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiParameter
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.parsers import FormParser
from rest_framework.parsers import JSONParser
from rest_framework.parsers import MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import ModelViewSet

from senaconnect.posts import services
from senaconnect.posts.models import Category
from senaconnect.posts.models import Comment
from senaconnect.uploads import delete_file_on_commit
from senaconnect.users.api.permissions import IsOwnerOrReadOnly
from senaconnect.users.api.permissions import IsStaffOrReadOnly

from .serializers import CategorySerializer
from .serializers import CommentSerializer
from .serializers import LikeToggleSerializer
from .serializers import PostSerializer

logger = logging.getLogger(__name__)


@extend_schema_view(
    list=extend_schema(
        tags=["Posts"],
        parameters=[OpenApiParameter("category", int, description="Category id")],
    ),
    retrieve=extend_schema(tags=["Posts"]),
    create=extend_schema(tags=["Posts"]),
    update=extend_schema(tags=["Posts"]),
    partial_update=extend_schema(tags=["Posts"]),
    destroy=extend_schema(tags=["Posts"]),
)
class PostViewSet(ModelViewSet):
    """Posts feed, newest first.

    - like: toggles the caller's like and returns ``{liked, likesCount}``
    - comments: list or add comments on a post
    - comment: edit/delete one comment (comment author only)
    """

    serializer_class = PostSerializer
    permission_classes = [IsAuthenticated, IsOwnerOrReadOnly]
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def get_queryset(self):  # type: ignore[override]
        queryset = services.posts_queryset(self.request.user)
        category = self.request.query_params.get("category")
        if category and category.isdigit():
            queryset = queryset.filter(categories__id=int(category)).distinct()
        return queryset

    def perform_create(self, serializer):
        post = serializer.save(user=self.request.user)
        logger.info("User %s created post %s", self.request.user.pk, post.pk)

    def perform_destroy(self, instance):
        delete_file_on_commit(instance.image)
        instance.delete()

    @extend_schema(tags=["Posts"], request=None, responses={200: LikeToggleSerializer})
    @action(detail=True, methods=["post"], permission_classes=[IsAuthenticated])
    def like(self, request, pk=None):
        post = self.get_object()
        liked, likes_count = services.toggle_like(post, request.user)
        return Response({"liked": liked, "likesCount": likes_count})

    @extend_schema(tags=["Posts"], responses={200: LikeToggleSerializer})
    @action(detail=True, methods=["get"], permission_classes=[IsAuthenticated])
    def likes(self, request, pk=None):
        post = self.get_object()
        return Response({"likesCount": services.likes_count(post)})

    @extend_schema(
        tags=["Posts"],
        request=CommentSerializer,
        responses={200: CommentSerializer(many=True), 201: CommentSerializer},
    )
    @action(
        detail=True,
        methods=["get", "post"],
        permission_classes=[IsAuthenticated],
        parser_classes=[JSONParser, FormParser],
    )
    def comments(self, request, pk=None):
        post = self.get_object()
        if request.method == "POST":
            serializer = CommentSerializer(data=request.data, context={"request": request})
            serializer.is_valid(raise_exception=True)
            comment = services.add_comment(
                post, request.user, serializer.validated_data["content"]
            )
            return Response(
                CommentSerializer(comment, context={"request": request}).data,
                status=status.HTTP_201_CREATED,
            )
        queryset = post.comments.select_related("user")
        return Response(
            CommentSerializer(queryset, many=True, context={"request": request}).data
        )

    @extend_schema(tags=["Posts"], request=CommentSerializer, responses={200: CommentSerializer})
    @action(
        detail=True,
        methods=["put", "patch", "delete"],
        url_path=r"comments/(?P<comment_id>\d+)",
        permission_classes=[IsAuthenticated],
        parser_classes=[JSONParser, FormParser],
    )
    def comment(self, request, pk=None, comment_id=None):
        post = self.get_object()
        comment = Comment.objects.select_related("user").filter(pk=comment_id).first()
        if comment is None:
            return Response(
                {"detail": "Comment not found."}, status=status.HTTP_404_NOT_FOUND
            )
        if comment.post_id != post.pk:
            return Response(
                {"detail": "Comment does not belong to this post."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        if comment.user_id != request.user.pk:
            return Response(
                {"detail": "Only the author can modify this comment."},
                status=status.HTTP_403_FORBIDDEN,
            )

        if request.method == "DELETE":
            comment.delete()
            return Response(status=status.HTTP_204_NO_CONTENT)

        serializer = CommentSerializer(
            comment,
            data=request.data,
            partial=request.method == "PATCH",
            context={"request": request},
        )
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)


@extend_schema_view(
    list=extend_schema(tags=["Categories"]),
    retrieve=extend_schema(tags=["Categories"]),
    create=extend_schema(tags=["Categories"]),
    update=extend_schema(tags=["Categories"]),
    partial_update=extend_schema(tags=["Categories"]),
    destroy=extend_schema(tags=["Categories"]),
)
class CategoryViewSet(ModelViewSet):
    serializer_class = CategorySerializer
    queryset = Category.objects.all()
    permission_classes = [IsStaffOrReadOnly]
    parser_classes = [JSONParser, MultiPartParser, FormParser]
    pagination_class = None
