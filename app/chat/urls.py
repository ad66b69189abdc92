"""
URL configuration for chat API.

URL Structure:
    Rooms:
        /rooms/                              GET, POST
        /rooms/{id}/                         GET
        /rooms/{id}/join/                    POST
        /rooms/{id}/leave/                   POST
        /rooms/{id}/messages/                GET
        /rooms/{id}/search/                  GET

    Messages:
        /messages/{id}/history/              GET

    Direct:
        /direct/conversations/               GET
        /direct/search/                      GET
        /direct/{partner_id}/messages/       GET

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from chat.views import (
    DirectConversationListView,
    DirectMessageListView,
    DirectMessageSearchView,
    MessageHistoryView,
    RoomViewSet,
)

router = DefaultRouter()
router.register(r"rooms", RoomViewSet, basename="room")

app_name = "chat"

urlpatterns = [
    path("", include(router.urls)),
    path(
        "messages/<uuid:message_id>/history/",
        MessageHistoryView.as_view(),
        name="message-history",
    ),
    path(
        "direct/conversations/",
        DirectConversationListView.as_view(),
        name="direct-conversations",
    ),
    path(
        "direct/search/",
        DirectMessageSearchView.as_view(),
        name="direct-search",
    ),
    path(
        "direct/<uuid:partner_id>/messages/",
        DirectMessageListView.as_view(),
        name="direct-messages",
    ),
]
