"""
WebSocket consumers for the chat application.

This module implements the WebSocket side of the push protocol. One
connection serves every conversation of a user; the client joins the
conversations it is showing to receive typing indicators there.

Consumers:
    ChatConsumer: Handles the ws/chat/ connection

Authentication:
    Users are authenticated via JWT (see chat.middleware). Anonymous
    connections are closed with code 4001.

Channel Groups:
    user_<user_id>          joined on connect; message_delivered pushes
    chat_<conversation_id>  joined on request; typing indicators

Message Types (from client):
    - join_conversation / leave_conversation
    - typing_started / typing_stopped

Message Types (to client):
    - session_ready: sent once after connect
    - message_delivered: a message from someone else was delivered
    - typing_started / typing_stopped: another connection is typing
    - error: the last client frame was rejected

Messages are submitted over REST, not over the socket.
"""

from __future__ import annotations

import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from chat.apps import get_fanout
from chat.constants import PUSH_CONFIG
from chat.events import (
    ClientEventSerializer,
    ClientEventType,
    error_event,
    session_ready_event,
)
from chat.models import Participant

logger = logging.getLogger(__name__)


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for real-time chat functionality.

    Handles:
        - Connection authentication and session registration
        - Joining/leaving conversation channel groups
        - Typing indicators
        - Relaying pushes from the channel layer to the client

    Attributes:
        user: Authenticated user (after connect)
        groups_joined: Every channel group this connection was added to
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = None
        self.groups_joined: set[str] = set()
        self.fanout = get_fanout()

    async def connect(self):
        """
        Handle WebSocket connection.

        Rejects unauthenticated users, then binds the connection to the
        user's address and reports session_ready.
        """
        user = self.scope.get("user")

        if not user or not user.is_authenticated:
            logger.warning("Rejected unauthenticated WebSocket connection")
            await self.close(code=PUSH_CONFIG.CLOSE_UNAUTHENTICATED)
            return

        self.user = user
        subprotocol = "jwt" if "jwt" in self.scope.get("subprotocols", []) else None
        await self.accept(subprotocol=subprotocol)

        group = await self.fanout.register_session(self.channel_name, user.id)
        self.groups_joined.add(group)
        await self.send_json(session_ready_event())
        logger.info(f"User {user.id} connected ({self.channel_name})")

    async def disconnect(self, close_code):
        """Drop every binding of this connection."""
        if self.groups_joined:
            await self.fanout.unregister(self.channel_name, self.groups_joined)
            self.groups_joined.clear()
        if self.user is not None:
            logger.info(f"User {self.user.id} disconnected (code={close_code})")

    async def receive_json(self, content, **kwargs):
        """
        Handle incoming WebSocket frames.

        Expected formats:
            {"type": "join_conversation", "conversation_id": 12}
            {"type": "typing_started", "conversation_id": 12}
        """
        serializer = ClientEventSerializer(
            data=content if isinstance(content, dict) else {}
        )
        if not serializer.is_valid():
            await self.send_json(
                error_event(f"Invalid event: {serializer.errors}", "INVALID_EVENT")
            )
            return

        event_type = serializer.validated_data["type"]
        conversation_id = serializer.validated_data["conversation_id"]

        if event_type == ClientEventType.LEAVE_CONVERSATION:
            group = await self.fanout.leave_conversation(self.channel_name, conversation_id)
            self.groups_joined.discard(group)
            return

        if not await self._is_participant(conversation_id):
            await self.send_json(
                error_event(
                    "You are not a participant in this conversation",
                    "NOT_PARTICIPANT",
                )
            )
            return

        if event_type == ClientEventType.JOIN_CONVERSATION:
            group = await self.fanout.join_conversation(self.channel_name, conversation_id)
            self.groups_joined.add(group)
        else:
            await self.fanout.publish_presence(
                conversation_id,
                event_type,
                self.user.id,
                origin_channel=self.channel_name,
            )

    async def chat_push(self, event):
        """
        Handle chat.push events from channel layer.

        Forwards the event to the client unless this connection originated it.
        """
        if event.get("exclude_channel") == self.channel_name:
            return
        await self.send_json(event["event"])

    @database_sync_to_async
    def _is_participant(self, conversation_id: int) -> bool:
        """Check if user is an active participant in a live conversation."""
        return Participant.objects.filter(
            conversation_id=conversation_id,
            conversation__is_deleted=False,
            user=self.user,
            left_at__isnull=True,
        ).exists()
