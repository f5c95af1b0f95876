"""
Persistence for conversations, memberships and messages.

A conversation is either direct (one fixed pair of users, no roles, no
title) or a group (titled, with owner/admin/member roles). Membership is
tracked per stint: leaving closes a Participant row and rejoining opens a
new one, so the table doubles as membership history.

Messages carry their own delivery state. scheduled_for is NULL once a
message is delivered and holds the requested time while it is pending.
Delivery clears it with one conditional UPDATE, so a message is delivered
at most once and never goes back to pending. Conversation.latest_message
only ever points at a delivered message.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django.utils.text import Truncator

from core.model_mixins import SoftDeleteMixin
from core.models import BaseModel

if TYPE_CHECKING:
    from datetime import datetime

    from authentication.models import User


class ConversationType(models.TextChoices):
    DIRECT = "direct", "Direct Message"
    GROUP = "group", "Group"


class ParticipantRole(models.TextChoices):
    """Group roles, strongest first. Direct participants have no role (NULL)."""

    OWNER = "owner", "Owner"
    ADMIN = "admin", "Admin"
    MEMBER = "member", "Member"


# Roles a participant may add or remove, keyed by their own role.
# Nobody manages an owner; ownership only moves when the owner leaves.
MANAGED_ROLES = {
    ParticipantRole.OWNER: frozenset({ParticipantRole.ADMIN, ParticipantRole.MEMBER}),
    ParticipantRole.ADMIN: frozenset({ParticipantRole.MEMBER}),
}


class Conversation(SoftDeleteMixin, BaseModel):
    """
    A direct pair or a group.

    participant_count caches the number of open Participant rows and is
    kept in step by chat.services. A soft-deleted conversation counts as
    gone: it takes no new messages and its pending messages never deliver.
    latest_message and last_message_at are only written on delivery.
    """

    conversation_type = models.CharField(
        max_length=10,
        choices=ConversationType.choices,
        default=ConversationType.GROUP,
        db_index=True,
        help_text="Type of conversation (direct or group)",
    )

    title = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Title for group conversations (empty for direct)",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_conversations",
        help_text="User who created this conversation (null for direct)",
    )

    participant_count = models.PositiveIntegerField(
        default=0,
        help_text="Current number of active participants (cached for performance)",
    )

    latest_message = models.ForeignKey(
        "Message",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Most recently delivered message (never a pending one)",
    )

    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="When the latest message was delivered (for sorting conversation lists)",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-last_message_at", "-created_at"]
        indexes = [
            models.Index(
                fields=["conversation_type", "is_deleted"],
                name="chat_conv_type_deleted_idx",
            ),
        ]

    def __str__(self) -> str:
        if self.is_direct:
            return f"Direct({self.pk})"
        return f"Group: {self.title}" if self.title else f"Group({self.pk})"

    @property
    def is_direct(self) -> bool:
        return self.conversation_type == ConversationType.DIRECT

    @property
    def is_group(self) -> bool:
        return self.conversation_type == ConversationType.GROUP

    def get_active_participants(self):
        """Participant rows that have not been closed by leaving or removal."""
        return self.participants.filter(left_at__isnull=True)

    def get_active_participant_for_user(self, user: User) -> Participant | None:
        return self.get_active_participants().filter(user=user).first()


class DirectConversationPair(models.Model):
    """
    One row per direct conversation, keyed by the user pair in id order.

    The unique constraint on (user_lower, user_higher) is what makes a
    second direct conversation between the same two users impossible.
    """

    conversation = models.OneToOneField(
        Conversation,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="direct_pair",
        help_text="The direct conversation this pair represents",
    )

    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with lower ID in this conversation pair",
    )

    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with higher ID in this conversation pair",
    )

    class Meta:
        db_table = "chat_direct_conversation_pair"
        constraints = [
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                name="unique_direct_conversation_pair",
            ),
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="user_lower_less_than_higher",
            ),
        ]

    def __str__(self) -> str:
        return f"DirectPair({self.user_lower_id}, {self.user_higher_id})"


class Participant(BaseModel):
    """
    One stint of a user in a conversation.

    The row is open while left_at is NULL; at most one open row exists per
    user and conversation. Closing records whether the user left or who
    removed them. Rejoining opens a fresh row.
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="participants",
        help_text="Conversation this participation belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversation_participations",
        help_text="User participating in the conversation",
    )

    role = models.CharField(
        max_length=10,
        choices=ParticipantRole.choices,
        null=True,
        blank=True,
        db_index=True,
        help_text="Role in group conversation (null for direct conversations)",
    )

    joined_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user joined this conversation",
    )

    left_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="When the user left (null if still active)",
    )

    left_voluntarily = models.BooleanField(
        null=True,
        blank=True,
        help_text="True if user left voluntarily, False if removed by someone",
    )

    removed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="removed_participants",
        help_text="User who removed this participant (if removed by someone)",
    )

    last_read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last time user marked conversation as read",
    )

    class Meta:
        db_table = "chat_participant"
        ordering = ["joined_at"]
        indexes = [
            models.Index(
                fields=["conversation", "left_at"],
                name="chat_part_conv_active_idx",
            ),
            models.Index(
                fields=["user", "left_at"],
                name="chat_part_user_active_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                condition=Q(left_at__isnull=True),
                name="unique_active_participation",
            ),
        ]

    def __str__(self) -> str:
        state = "open" if self.is_active else "closed"
        return f"Participant(user={self.user_id}, conversation={self.conversation_id}, role={self.role}, {state})"

    @property
    def is_active(self) -> bool:
        return self.left_at is None

    @property
    def is_owner(self) -> bool:
        return self.role == ParticipantRole.OWNER

    @property
    def is_admin(self) -> bool:
        return self.role == ParticipantRole.ADMIN

    @property
    def is_member(self) -> bool:
        return self.role == ParticipantRole.MEMBER

    @property
    def is_admin_or_owner(self) -> bool:
        return self.is_owner or self.is_admin

    def can_grant(self, role: str) -> bool:
        """Whether this participant may add someone with the given role."""
        return self.is_active and role in MANAGED_ROLES.get(self.role, ())

    def can_remove(self, other: Participant) -> bool:
        """Whether this participant may remove another one."""
        if other.pk == self.pk:
            return False
        return self.is_active and other.role in MANAGED_ROLES.get(self.role, ())


class MessageQuerySet(models.QuerySet):
    """
    Delivery-state filters for messages.

    Every method takes an optional ``now`` so callers that already hold a
    reference time (the reconciler tick, tests) get a consistent cut.
    """

    def delivered(self):
        """Messages whose delivery has completed."""
        return self.filter(scheduled_for__isnull=True)

    def visible(self, now: datetime | None = None):
        """Delivered messages plus scheduled ones whose time has come."""
        now = now or timezone.now()
        return self.filter(Q(scheduled_for__isnull=True) | Q(scheduled_for__lte=now))

    def pending(self, now: datetime | None = None):
        """Messages scheduled strictly in the future."""
        now = now or timezone.now()
        return self.filter(scheduled_for__gt=now)

    def due(self, now: datetime | None = None):
        """Scheduled messages whose time has come but are not yet delivered."""
        now = now or timezone.now()
        return self.filter(scheduled_for__isnull=False, scheduled_for__lte=now)


class Message(BaseModel):
    """
    Text a user posted to a conversation.

    Delivered once scheduled_for is NULL; until then it is pending and
    stays out of history while its time lies ahead. created_at records
    submission and never moves. delivery_attempts and last_delivery_error
    track reconciler failures for this row only.
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sent_messages",
        help_text="User who sent this message",
    )

    content = models.TextField(
        help_text="Message text",
    )

    scheduled_for = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Requested delivery time; NULL once the message is delivered",
    )

    read_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="read_messages",
        help_text="Users who have read this message",
    )

    delivery_attempts = models.PositiveIntegerField(
        default=0,
        help_text="Number of failed scheduled delivery attempts",
    )

    last_delivery_error = models.TextField(
        blank=True,
        default="",
        help_text="Error from the most recent failed delivery attempt",
    )

    objects = MessageQuerySet.as_manager()

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            # Messages in a conversation (cursor pagination)
            models.Index(
                fields=["conversation", "created_at", "id"],
                name="chat_msg_conv_cursor_idx",
            ),
            models.Index(
                fields=["sender", "-created_at"],
                name="chat_msg_sender_idx",
            ),
            # Reconciler scan; delivered rows are left out of the index
            models.Index(
                fields=["scheduled_for", "id"],
                name="chat_msg_scheduled_idx",
                condition=Q(scheduled_for__isnull=False),
            ),
        ]

    def __str__(self) -> str:
        text = f"{self.sender_id}: {Truncator(self.content).chars(50)}"
        return f"{text} [scheduled]" if self.is_pending else text

    @property
    def is_pending(self) -> bool:
        """True until the message has been delivered."""
        return self.scheduled_for is not None

    @property
    def is_delivered(self) -> bool:
        return self.scheduled_for is None
