from __future__ import annotations

import logging

from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import mixins
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.parsers import FormParser
from rest_framework.parsers import JSONParser
from rest_framework.parsers import MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet
from rest_framework.viewsets import ModelViewSet

from senaconnect.chat import services
from senaconnect.chat.models import Message
from senaconnect.uploads import delete_file_on_commit
from senaconnect.users.api.permissions import IsOwnerOrReadOnly

from .serializers import ConversationSerializer
from .serializers import MessageCreateSerializer
from .serializers import MessageSerializer
from .serializers import MessageUpdateSerializer

logger = logging.getLogger(__name__)


@extend_schema_view(
    list=extend_schema(tags=["Chat"]),
    retrieve=extend_schema(tags=["Chat"]),
    create=extend_schema(tags=["Chat"]),
    update=extend_schema(tags=["Chat"]),
    partial_update=extend_schema(tags=["Chat"]),
    destroy=extend_schema(tags=["Chat"]),
)
class ConversationViewSet(ModelViewSet):
    """Conversations of the authenticated user.

    Creating a conversation with a participant set that already has one
    returns the existing conversation with ``200``.
    """

    serializer_class = ConversationSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None

    def get_queryset(self):  # type: ignore[override]
        return services.conversations_for(self.request.user)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        conversation, created = services.get_or_create_conversation(
            request.user, serializer.validated_data["participant_ids"]
        )
        return Response(
            self.get_serializer(conversation).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    def update(self, request, *args, **kwargs):
        conversation = self.get_object()
        serializer = self.get_serializer(
            conversation, data=request.data, partial=kwargs.pop("partial", False)
        )
        serializer.is_valid(raise_exception=True)
        ids = serializer.validated_data.get("participant_ids")
        if ids is not None:
            services.set_participants(conversation, request.user, ids)
        return Response(self.get_serializer(conversation).data)


@extend_schema_view(
    partial_update=extend_schema(tags=["Chat"]),
    update=extend_schema(tags=["Chat"]),
    destroy=extend_schema(tags=["Chat"]),
)
class MessageViewSet(
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    GenericViewSet,
):
    """Messages in conversations the caller takes part in.

    Only the sender may edit or delete a message.
    """

    serializer_class = MessageSerializer
    permission_classes = [IsAuthenticated, IsOwnerOrReadOnly]
    parser_classes = (JSONParser, MultiPartParser, FormParser)

    def get_queryset(self):  # type: ignore[override]
        return (
            Message.objects.filter(conversation__participants=self.request.user)
            .select_related("sender")
            .prefetch_related("seen_by")
            .distinct()
        )

    def get_serializer_class(self):
        if self.action in ("update", "partial_update"):
            return MessageUpdateSerializer
        return super().get_serializer_class()

    def update(self, request, *args, **kwargs):
        super().update(request, *args, **kwargs)
        message = self.get_queryset().get(pk=kwargs["pk"])
        return Response(MessageSerializer(message, context={"request": request}).data)

    def perform_destroy(self, instance):
        delete_file_on_commit(instance.image)
        instance.delete()

    @extend_schema(
        tags=["Chat"],
        request=MessageCreateSerializer,
        responses={201: MessageSerializer},
    )
    def create(self, request, *args, **kwargs):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        conversation = services.get_conversation_for(request.user, data["conversation"])
        message = services.post_message(
            conversation,
            request.user,
            text=data.get("text", ""),
            image=data.get("image"),
            image_url=data.get("image_url", ""),
            temp_id=data.get("tempId") or None,
        )
        logger.info(
            "User %s posted message %s to conversation %s",
            request.user.pk,
            message.pk,
            conversation.pk,
        )
        return Response(
            MessageSerializer(message, context={"request": request}).data,
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(tags=["Chat"], responses={200: MessageSerializer(many=True)})
    @action(
        detail=False,
        methods=["get"],
        url_path=r"conversation/(?P<conversation_id>\d+)",
    )
    def conversation(self, request, conversation_id=None):
        conversation = services.get_conversation_for(request.user, int(conversation_id))
        queryset = conversation.messages.select_related("sender").prefetch_related("seen_by")
        return Response(
            MessageSerializer(queryset, many=True, context={"request": request}).data
        )
