"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Message operations (content limits)
- Scheduled delivery (reconciler cadence and retry bound defaults)
- Push channel addressing and WebSocket close codes

Reconciler values are defaults; config.settings reads the CHAT_DELIVERY_*
environment variables and falls back to these.

Import example:
    from chat.constants import MESSAGE_CONFIG, DELIVERY_CONFIG
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    # Content limits
    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters
    MIN_CONTENT_LENGTH: Final[int] = 1

    # Stored error text on failed delivery attempts is truncated to this
    MAX_DELIVERY_ERROR_LENGTH: Final[int] = 1000


# =============================================================================
# Delivery Configuration
# =============================================================================


class DELIVERY_CONFIG:
    """Defaults for the scheduled message reconciler."""

    INTERVAL_SECONDS: Final[int] = 10
    WARMUP_SECONDS: Final[int] = 5

    # 0 = retry a failing message on every tick forever
    MAX_ATTEMPTS: Final[int] = 0

    PERIODIC_TASK_NAME: Final[str] = "Chat: Deliver Scheduled Messages"
    TASK_PATH: Final[str] = "chat.tasks.deliver_scheduled_messages"


# =============================================================================
# Push Configuration
# =============================================================================


class PUSH_CONFIG:
    """Channel layer addressing and WebSocket close codes."""

    USER_GROUP_PREFIX: Final[str] = "user"
    CONVERSATION_GROUP_PREFIX: Final[str] = "chat"

    # Channel layer message type, dispatched to ChatConsumer.chat_push
    CHANNEL_MESSAGE_TYPE: Final[str] = "chat.push"

    CLOSE_UNAUTHENTICATED: Final[int] = 4001
