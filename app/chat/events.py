"""
Push event protocol for the chat WebSocket.

Every frame on the socket is a JSON object with a ``type`` key taken from a
closed set of event kinds. Server frames are built here so that the
consumer, the fan-out service and the tests agree on one shape.

Server → client:
    session_ready       {}
    message_delivered   {message}
    typing_started      {conversation_id, user_id}
    typing_stopped      {conversation_id, user_id}
    error               {message, code}

Client → server:
    join_conversation   {conversation_id}
    leave_conversation  {conversation_id}
    typing_started      {conversation_id}
    typing_stopped      {conversation_id}

Channel layer addressing:
    user_<user_id>          every connection of one user
    chat_<conversation_id>  every connection joined to one conversation

Usage:
    from chat.events import conversation_group, typing_event

    await channel_layer.group_send(
        conversation_group(conversation_id),
        {"type": "chat.push", "event": typing_event(...)},
    )
"""

from __future__ import annotations

from typing import Any

from django.db import models
from rest_framework import serializers

from chat.constants import PUSH_CONFIG


class PushEventType(models.TextChoices):
    """Events the server sends to a connection."""

    SESSION_READY = "session_ready", "Session ready"
    MESSAGE_DELIVERED = "message_delivered", "Message delivered"
    TYPING_STARTED = "typing_started", "Typing started"
    TYPING_STOPPED = "typing_stopped", "Typing stopped"
    ERROR = "error", "Error"


class ClientEventType(models.TextChoices):
    """Events a connection may send to the server."""

    JOIN_CONVERSATION = "join_conversation", "Join conversation"
    LEAVE_CONVERSATION = "leave_conversation", "Leave conversation"
    TYPING_STARTED = "typing_started", "Typing started"
    TYPING_STOPPED = "typing_stopped", "Typing stopped"


PRESENCE_EVENT_TYPES = frozenset(
    {PushEventType.TYPING_STARTED, PushEventType.TYPING_STOPPED}
)


def user_group(user_id) -> str:
    """Channel layer group holding every connection of a user."""
    return f"{PUSH_CONFIG.USER_GROUP_PREFIX}_{user_id}"


def conversation_group(conversation_id) -> str:
    """Channel layer group holding connections joined to a conversation."""
    return f"{PUSH_CONFIG.CONVERSATION_GROUP_PREFIX}_{conversation_id}"


# =============================================================================
# Server event builders
# =============================================================================


def session_ready_event() -> dict[str, Any]:
    return {"type": PushEventType.SESSION_READY.value}


def message_delivered_event(message_payload: dict[str, Any]) -> dict[str, Any]:
    """
    Build a message_delivered event.

    Args:
        message_payload: MessageSerializer output for the delivered message
    """
    return {
        "type": PushEventType.MESSAGE_DELIVERED.value,
        "message": message_payload,
    }


def typing_event(kind: str, conversation_id: int, user_id: int) -> dict[str, Any]:
    """
    Build a typing_started or typing_stopped event.

    Raises:
        ValueError: If kind is not a presence event
    """
    if kind not in PRESENCE_EVENT_TYPES:
        raise ValueError(f"Not a presence event: {kind}")
    return {
        "type": PushEventType(kind).value,
        "conversation_id": conversation_id,
        "user_id": user_id,
    }


def error_event(message: str, code: str) -> dict[str, Any]:
    return {
        "type": PushEventType.ERROR.value,
        "message": message,
        "code": code,
    }


# =============================================================================
# Client event validation
# =============================================================================


class ClientEventSerializer(serializers.Serializer):
    """
    Validates a frame received from a client connection.

    All client events address a conversation, so conversation_id is
    required for every type.
    """

    type = serializers.ChoiceField(choices=ClientEventType.choices)
    conversation_id = serializers.IntegerField(min_value=1)
