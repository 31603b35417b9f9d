from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from senaconnect.chat.api.serializers import ConversationSerializer
from senaconnect.friends import services
from senaconnect.users.api.serializers import UserSummarySerializer

from .serializers import BlockCreateSerializer
from .serializers import FriendRequestCreateSerializer
from .serializers import FriendRequestRespondSerializer
from .serializers import FriendRequestSerializer
from .serializers import UserSearchResultSerializer


@extend_schema_view(
    list=extend_schema(tags=["Friends"], responses={200: UserSummarySerializer(many=True)}),
    destroy=extend_schema(tags=["Friends"], responses={204: None}),
)
class FriendViewSet(GenericViewSet):
    """Friends, friend requests and blocks of the authenticated user.

    The detail ``pk`` is the friend's user id.
    """

    serializer_class = UserSummarySerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None
    lookup_value_regex = r"\d+"

    def get_queryset(self):  # type: ignore[override]
        return services.friends_of(self.request.user)

    def list(self, request, *args, **kwargs):
        return Response(self.get_serializer(self.get_queryset(), many=True).data)

    def destroy(self, request, pk=None, *args, **kwargs):
        services.remove_friend(request.user, int(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        tags=["Friends"],
        parameters=[OpenApiParameter("q", str, description="Email, name or username")],
        responses={200: UserSearchResultSerializer(many=True)},
    )
    @action(detail=False, methods=["get"])
    def search(self, request):
        found = services.search_users(request.user, request.query_params.get("q", ""))
        return Response(UserSearchResultSerializer(found, many=True).data)

    @extend_schema(
        tags=["Friends"],
        request=FriendRequestCreateSerializer,
        responses={201: FriendRequestSerializer},
    )
    @action(detail=False, methods=["post"], url_path="requests")
    def send_request(self, request):
        serializer = FriendRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        friend_request = services.send_request(
            request.user, serializer.validated_data["receiverId"]
        )
        return Response(
            FriendRequestSerializer(friend_request).data, status=status.HTTP_201_CREATED
        )

    @extend_schema(tags=["Friends"], responses={200: FriendRequestSerializer(many=True)})
    @action(detail=False, methods=["get"], url_path="requests/incoming")
    def incoming(self, request):
        queryset = services.incoming_requests(request.user)
        return Response(FriendRequestSerializer(queryset, many=True).data)

    @extend_schema(tags=["Friends"], responses={200: FriendRequestSerializer(many=True)})
    @action(detail=False, methods=["get"], url_path="requests/outgoing")
    def outgoing(self, request):
        queryset = services.outgoing_requests(request.user)
        return Response(FriendRequestSerializer(queryset, many=True).data)

    @extend_schema(
        tags=["Friends"],
        request=FriendRequestRespondSerializer,
        responses={200: FriendRequestSerializer},
    )
    @action(
        detail=False,
        methods=["put"],
        url_path=r"requests/(?P<request_id>\d+)/respond",
    )
    def respond(self, request, request_id=None):
        serializer = FriendRequestRespondSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        friend_request, conversation = services.respond_to_request(
            int(request_id), request.user, accept=serializer.validated_data["accept"]
        )
        data = {"request": FriendRequestSerializer(friend_request).data}
        if conversation is not None:
            data["conversation"] = ConversationSerializer(
                conversation, context={"request": request}
            ).data
        return Response(data)

    @extend_schema(tags=["Friends"], responses={204: None})
    @action(
        detail=False,
        methods=["delete"],
        url_path=r"requests/(?P<request_id>\d+)",
    )
    def cancel_request(self, request, request_id=None):
        services.cancel_request(int(request_id), request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Friends"], request=BlockCreateSerializer, responses={201: None})
    @action(detail=False, methods=["post"])
    def block(self, request):
        serializer = BlockCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.block_user(request.user, serializer.validated_data["userId"])
        return Response(status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Friends"], responses={204: None})
    @action(detail=False, methods=["delete"], url_path=r"block/(?P<user_id>\d+)")
    def unblock(self, request, user_id=None):
        services.unblock_user(request.user, int(user_id))
        return Response(status=status.HTTP_204_NO_CONTENT)
