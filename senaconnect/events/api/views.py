from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import SearchFilter
from rest_framework.parsers import FormParser
from rest_framework.parsers import JSONParser
from rest_framework.parsers import MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import ModelViewSet

from senaconnect.events import services
from senaconnect.users.api.permissions import IsOwnerOrReadOnly

from .filters import EventFilter
from .pagination import EventPagination
from .serializers import EventSerializer


@extend_schema_view(
    list=extend_schema(tags=["Events"]),
    retrieve=extend_schema(tags=["Events"]),
    create=extend_schema(tags=["Events"]),
    update=extend_schema(tags=["Events"]),
    partial_update=extend_schema(tags=["Events"]),
    destroy=extend_schema(tags=["Events"]),
)
class EventViewSet(ModelViewSet):
    """Events visible to the caller: every published event plus own drafts.

    Only the creator may update, delete or publish an event. Any
    authenticated user may register for a published event.
    """

    serializer_class = EventSerializer
    permission_classes = [IsAuthenticated, IsOwnerOrReadOnly]
    parser_classes = (JSONParser, MultiPartParser, FormParser)
    pagination_class = EventPagination
    filter_backends = [DjangoFilterBackend, SearchFilter]
    filterset_class = EventFilter
    search_fields = ["title", "description", "location"]

    def get_queryset(self):  # type: ignore[override]
        return services.visible_events(self.request.user)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = services.create_event(request.user, dict(serializer.validated_data))
        data = self.get_serializer(event).data
        return Response(data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        event = self.get_object()
        serializer = self.get_serializer(event, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        event = services.update_event(event, dict(serializer.validated_data))
        return Response(self.get_serializer(event).data)

    def perform_destroy(self, instance):
        services.delete_event(instance)

    def _paginated(self, queryset):
        queryset = self.filter_queryset(queryset)
        page = self.paginate_queryset(queryset)
        if page is not None:
            serializer = self.get_serializer(page, many=True)
            return self.get_paginated_response(serializer.data)
        return Response(self.get_serializer(queryset, many=True).data)

    @extend_schema(tags=["Events"], responses={200: EventSerializer(many=True)})
    @action(detail=False, methods=["get"])
    def mine(self, request):
        """Events created by the caller, drafts included."""
        return self._paginated(services.events_queryset(request.user).filter(user=request.user))

    @extend_schema(tags=["Events"], responses={200: EventSerializer(many=True)})
    @action(detail=False, methods=["get"])
    def registered(self, request):
        """Events the caller is registered for."""
        queryset = services.events_queryset(request.user).filter(attendees=request.user)
        return self._paginated(queryset)

    @extend_schema(tags=["Events"], request=None, responses={200: EventSerializer})
    @action(detail=True, methods=["post"])
    def publish(self, request, pk=None):
        event = self.get_object()
        event = services.publish_event(event)
        return Response(self.get_serializer(event).data)

    @extend_schema(tags=["Events"], request=None, responses={200: EventSerializer})
    @action(detail=True, methods=["post"], permission_classes=[IsAuthenticated])
    def register(self, request, pk=None):
        event = self.get_object()
        services.register_attendee(event, request.user)
        event = self.get_queryset().get(pk=event.pk)
        return Response(self.get_serializer(event).data)

    @extend_schema(tags=["Events"], request=None, responses={200: EventSerializer})
    @action(detail=True, methods=["delete"], permission_classes=[IsAuthenticated])
    def unregister(self, request, pk=None):
        event = self.get_object()
        services.unregister_attendee(event, request.user)
        event = self.get_queryset().get(pk=event.pk)
        return Response(self.get_serializer(event).data)
