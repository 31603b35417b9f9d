import logging

from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.mixins import CreateModelMixin
from rest_framework.mixins import ListModelMixin
from rest_framework.mixins import RetrieveModelMixin
from rest_framework.mixins import UpdateModelMixin
from rest_framework.parsers import FormParser
from rest_framework.parsers import MultiPartParser
from rest_framework.permissions import AllowAny
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from senaconnect.friends import services as friend_services
from senaconnect.posts import services as post_services
from senaconnect.posts.api.serializers import PostSerializer
from senaconnect.uploads import delete_file_on_commit
from senaconnect.users.api.permissions import IsSelfOrReadOnly
from senaconnect.users.models import User

from .serializers import AvatarUploadSerializer
from .serializers import UserProfileSerializer
from .serializers import UserRegistrationSerializer
from .serializers import UserSerializer

logger = logging.getLogger(__name__)


@extend_schema_view(
    list=extend_schema(tags=["Users"]),
    retrieve=extend_schema(tags=["Users"]),
    update=extend_schema(tags=["Users"]),
    partial_update=extend_schema(tags=["Users"]),
    create=extend_schema(
        tags=["Users"],
        request=UserRegistrationSerializer,
        responses={201: UserSerializer},
    ),
)
class UserViewSet(
    CreateModelMixin,
    RetrieveModelMixin,
    UpdateModelMixin,
    ListModelMixin,
    GenericViewSet,
):
    serializer_class = UserSerializer
    queryset = User.objects.filter(is_active=True).order_by("id")

    def get_permissions(self):
        if self.action == "create":
            return [AllowAny()]
        if self.action in ("update", "partial_update"):
            return [IsAuthenticated(), IsSelfOrReadOnly()]
        return [IsAuthenticated()]

    def get_serializer_class(self):
        if self.action == "create":
            return UserRegistrationSerializer
        return super().get_serializer_class()

    def create(self, request, *args, **kwargs):
        serializer = UserRegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info("Registered user %s (%s)", user.pk, user.email)
        data = UserSerializer(user, context={"request": request}).data
        return Response(data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Users"], request=UserSerializer, responses={200: UserSerializer})
    @action(detail=False, methods=["get", "patch", "delete"])
    def me(self, request):
        if request.method == "DELETE":
            # Posts, events, messages and friendships cascade with the account.
            user = request.user
            user_id = user.pk
            delete_file_on_commit(user.avatar)
            user.delete()
            logger.info("User %s deleted their account", user_id)
            return Response(status=status.HTTP_204_NO_CONTENT)
        if request.method == "PATCH":
            serializer = UserSerializer(
                request.user,
                data=request.data,
                partial=True,
                context={"request": request},
            )
            serializer.is_valid(raise_exception=True)
            serializer.save()
            return Response(serializer.data)
        serializer = UserSerializer(request.user, context={"request": request})
        return Response(status=status.HTTP_200_OK, data=serializer.data)

    @extend_schema(
        tags=["Users"],
        request=AvatarUploadSerializer,
        responses={200: UserSerializer},
    )
    @action(
        detail=False,
        methods=["put"],
        url_path="me/avatar",
        parser_classes=[MultiPartParser, FormParser],
    )
    def avatar(self, request):
        """Replace the authenticated user's avatar."""
        if not request.FILES.get("avatar"):
            return Response(
                {"detail": "Missing uploaded file.", "code": "MISSING_FILE"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        serializer = AvatarUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = request.user
        delete_file_on_commit(user.avatar)
        user.avatar = serializer.validated_data["avatar"]
        user.save(update_fields=["avatar", "updated_at"])
        return Response(UserSerializer(user, context={"request": request}).data)

    @extend_schema(tags=["Users"], responses={200: UserProfileSerializer})
    @action(detail=True, methods=["get"])
    def profile(self, request, pk=None):
        user = self.get_object()
        user.friends_count = len(friend_services.friend_ids(user.pk))
        user.posts_count = user.posts.count()
        return Response(UserProfileSerializer(user, context={"request": request}).data)

    @extend_schema(tags=["Users"], responses={200: PostSerializer(many=True)})
    @action(detail=True, methods=["get"])
    def posts(self, request, pk=None):
        user = self.get_object()
        queryset = post_services.posts_queryset(request.user).filter(user=user)
        serializer = PostSerializer(queryset, many=True, context={"request": request})
        return Response(serializer.data)
