from django.conf import settings
from django.urls import include
from django.urls import path
from rest_framework.routers import DefaultRouter
from rest_framework.routers import SimpleRouter

from senaconnect.chat.api.views import ConversationViewSet
from senaconnect.chat.api.views import MessageViewSet
from senaconnect.events.api.views import EventViewSet
from senaconnect.friends.api.views import FriendViewSet
from senaconnect.posts.api.views import CategoryViewSet
from senaconnect.posts.api.views import PostViewSet
from senaconnect.users.api.views import UserViewSet

router = DefaultRouter() if settings.DEBUG else SimpleRouter()

router.register("users", UserViewSet)
router.register("posts", PostViewSet, basename="posts")
router.register("categories", CategoryViewSet)
router.register("events", EventViewSet, basename="events")
router.register("friends", FriendViewSet, basename="friends")

# Chat endpoints live under their own prefix: /api/v1/chat/...
chat_router = DefaultRouter() if settings.DEBUG else SimpleRouter()
chat_router.register("conversations", ConversationViewSet, basename="conversations")
chat_router.register("messages", MessageViewSet, basename="messages")


app_name = "api"
urlpatterns = [
    path("chat/", include(chat_router.urls)),
    *router.urls,
]
