"""
Chat routes, mounted under /api/v1/chat/.

The conversation router supplies list/create/retrieve/partial_update and
the read and leave actions. Participants and messages hang off a
conversation id; participants are addressed by user id.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from chat.views import (
    ConversationViewSet,
    MessageViewSet,
    ParticipantViewSet,
    ScheduledMessageListView,
    TranslateView,
)

app_name = "chat"

router = DefaultRouter()
router.register("conversations", ConversationViewSet, basename="conversation")

conversation_routes = [
    path(
        "participants/",
        ParticipantViewSet.as_view({"get": "list", "post": "create"}),
        name="conversation-participant-list",
    ),
    path(
        "participants/<int:user_id>/",
        ParticipantViewSet.as_view({"delete": "destroy"}),
        name="conversation-participant-detail",
    ),
    path(
        "messages/",
        MessageViewSet.as_view({"get": "list", "post": "create"}),
        name="conversation-message-list",
    ),
]

urlpatterns = [
    path("", include(router.urls)),
    path("conversations/<int:conversation_pk>/", include(conversation_routes)),
    path("messages/scheduled/", ScheduledMessageListView.as_view(), name="message-scheduled"),
    path("messages/translate/", TranslateView.as_view(), name="message-translate"),
]
