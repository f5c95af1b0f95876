"""
Cursor pagination for chat lists.

Every ordering ends on id so rows sharing a timestamp still page
deterministically. Conversations sort on updated_at, which each delivery
bumps, rather than the nullable last_message_at.
"""

from rest_framework.pagination import CursorPagination


class ChatCursorPagination(CursorPagination):
    page_size_query_param = "page_size"
    cursor_query_param = "cursor"


class MessageCursorPagination(ChatCursorPagination):
    """History reads oldest first."""

    page_size = 50
    max_page_size = 100
    ordering = ("created_at", "id")


class ScheduledMessageCursorPagination(MessageCursorPagination):
    ordering = ("scheduled_for", "id")


class ConversationCursorPagination(ChatCursorPagination):
    """Most recently active first."""

    page_size = 20
    max_page_size = 50
    ordering = ("-updated_at", "-id")
