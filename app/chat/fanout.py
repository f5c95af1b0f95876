"""
Real-time fan-out over the Channels layer.

FanoutService owns the push side of the chat protocol. The connection
registry is the channel layer's group membership: each WebSocket
connection is added to its user group on connect and to conversation
groups when it joins them. Redis backs this in production, and both the
Redis and in-memory layers are safe for concurrent readers and writers.

Delivery is best effort. Users with no live connection receive nothing
and nothing is queued for them. A failed send is logged and dropped so
that a push problem can never fail the operation that triggered it.

Usage:
    from chat.apps import get_fanout

    # Sync code (services, reconciler), after the message is committed
    get_fanout().publish_message(message)

    # Async code (consumer)
    await fanout.register_session(self.channel_name, user.id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from chat.constants import PUSH_CONFIG
from chat.events import (
    conversation_group,
    message_delivered_event,
    typing_event,
    user_group,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from chat.models import Message

logger = logging.getLogger(__name__)


class FanoutService:
    """
    Addresses pushes to user and conversation groups.

    Args:
        channel_layer: Layer to use. When omitted the configured default
            layer is looked up on every call, which keeps the service
            usable after settings overrides in tests.
    """

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer

    @property
    def channel_layer(self):
        return self._channel_layer or get_channel_layer()

    # -------------------------------------------------------------------------
    # Session bindings (async, called from the consumer)
    # -------------------------------------------------------------------------

    async def register_session(self, channel_name: str, user_id: int) -> str:
        """
        Bind a connection to its user's identity address.

        A user may hold several connections; each is added to the same
        group and every one of them receives the user's pushes.

        Returns:
            Name of the group joined
        """
        group = user_group(user_id)
        await self.channel_layer.group_add(group, channel_name)
        logger.debug(f"Registered connection {channel_name} for user {user_id}")
        return group

    async def join_conversation(self, channel_name: str, conversation_id: int) -> str:
        """Bind a connection to a conversation's presence address."""
        group = conversation_group(conversation_id)
        await self.channel_layer.group_add(group, channel_name)
        return group

    async def leave_conversation(self, channel_name: str, conversation_id: int) -> str:
        group = conversation_group(conversation_id)
        await self.channel_layer.group_discard(group, channel_name)
        return group

    async def unregister(self, channel_name: str, groups: Iterable[str]) -> None:
        """
        Remove every binding held by one connection.

        Other connections of the same user keep their bindings.
        """
        for group in list(groups):
            await self.channel_layer.group_discard(group, channel_name)
        logger.debug(f"Unregistered connection {channel_name}")

    async def publish_presence(
        self,
        conversation_id: int,
        kind: str,
        user_id: int,
        origin_channel: str | None = None,
    ) -> None:
        """
        Broadcast a typing indicator to a conversation.

        Every connection joined to the conversation receives it except
        origin_channel, which is dropped on the receiving side by
        ChatConsumer.chat_push.

        Raises:
            ValueError: If kind is not a presence event
        """
        event = typing_event(kind, conversation_id, user_id)
        await self.channel_layer.group_send(
            conversation_group(conversation_id),
            {
                "type": PUSH_CONFIG.CHANNEL_MESSAGE_TYPE,
                "event": event,
                "exclude_channel": origin_channel,
            },
        )

    # -------------------------------------------------------------------------
    # Message delivery (sync, called after commit)
    # -------------------------------------------------------------------------

    def publish_message(self, message: Message) -> int:
        """
        Push a delivered message to every other active participant.

        The sender is never notified of their own message. Each recipient
        is addressed through their user group, so all of their open
        connections receive it.

        Args:
            message: A delivered message

        Returns:
            Number of recipients the push was handed to
        """
        # Imported here to keep chat.apps importable before models load
        from chat.models import Participant
        from chat.serializers import MessageSerializer

        recipient_ids = list(
            Participant.objects.filter(
                conversation_id=message.conversation_id,
                left_at__isnull=True,
            )
            .exclude(user_id=message.sender_id)
            .values_list("user_id", flat=True)
        )
        if not recipient_ids:
            return 0

        event = message_delivered_event(dict(MessageSerializer(message).data))

        sent = 0
        for user_id in recipient_ids:
            try:
                async_to_sync(self.channel_layer.group_send)(
                    user_group(user_id),
                    {"type": PUSH_CONFIG.CHANNEL_MESSAGE_TYPE, "event": event},
                )
                sent += 1
            except Exception as exc:
                logger.warning(
                    f"Push of message {message.id} to user {user_id} failed: {exc}",
                    extra={
                        "message_id": message.id,
                        "user_id": user_id,
                        "error": str(exc),
                    },
                )

        logger.debug(
            f"Fanned out message {message.id} to {sent}/{len(recipient_ids)} users"
        )
        return sent
