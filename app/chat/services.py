"""
Business rules for conversations, membership and messages.

    ConversationService   direct/group creation, renaming, delivery bookkeeping
    ParticipantService    add, remove, leave
    MessageService        submit (deliver now or schedule), history, read receipts

Rule violations come back as ServiceResult.failure with an error code;
infrastructure errors raise. Pushes for delivered messages are queued with
transaction.on_commit so clients never hear about a row that rolled back.

    result = MessageService.submit_message(
        sender=user,
        conversation_id=conversation.id,
        content="Standup in 5",
        scheduled_for=timezone.now() + timedelta(hours=1),
        fanout=get_fanout(),
    )
    if result and result.data.is_pending:
        ...  # the reconciler will deliver and push it later
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from core.exceptions import NotFoundError
from core.services import BaseService, ServiceResult

from chat.models import (
    Conversation,
    ConversationType,
    DirectConversationPair,
    Message,
    Participant,
    ParticipantRole,
)

if TYPE_CHECKING:
    from datetime import datetime

    from authentication.models import User
    from chat.fanout import FanoutService


# Other members a group needs besides its creator
MIN_GROUP_MEMBERS = 2
NOT_PARTICIPANT_MESSAGE = "You are not a participant in this conversation"


class ConversationService(BaseService):
    """Creating conversations and keeping their summary fields current."""

    @classmethod
    def create_direct(
        cls,
        user1: User,
        user2: User,
    ) -> ServiceResult[Conversation]:
        """
        The direct conversation between two users, created on first use.

        The pair is looked up in id order through DirectConversationPair.
        If it exists, whichever of the two has left is rejoined and a
        soft-deleted conversation is restored, so a pair always gets the
        same conversation and history back.

        Error codes:
            SAME_USER
        """
        if user1.id == user2.id:
            return ServiceResult.failure(
                "A direct conversation needs two different users",
                error_code="SAME_USER",
            )

        low, high = sorted((user1, user2), key=lambda user: user.id)

        pair = (
            DirectConversationPair.objects.select_related("conversation")
            .filter(user_lower=low, user_higher=high)
            .first()
        )
        if pair is not None:
            return ServiceResult.success(cls._reopen_direct(pair.conversation, (low, high)))

        with cls.atomic():
            conversation = Conversation.objects.create(
                conversation_type=ConversationType.DIRECT,
                title="",
                created_by=None,
                participant_count=2,
            )
            DirectConversationPair.objects.create(
                conversation=conversation, user_lower=low, user_higher=high
            )
            Participant.objects.bulk_create(
                [Participant(conversation=conversation, user=user, role=None) for user in (low, high)]
            )

        cls.get_logger().info(
            f"Direct conversation {conversation.id} opened for users {low.id} and {high.id}"
        )
        return ServiceResult.success(conversation)

    @classmethod
    def _reopen_direct(cls, conversation: Conversation, users: tuple[User, User]) -> Conversation:
        with cls.atomic():
            for user in users:
                if conversation.get_active_participant_for_user(user) is None:
                    Participant.objects.create(conversation=conversation, user=user, role=None)

            conversation.restore()
            active = conversation.get_active_participants().count()
            if conversation.participant_count != active:
                conversation.participant_count = active
                conversation.save(update_fields=["participant_count", "updated_at"])

        cls.get_logger().debug(f"Direct conversation {conversation.id} reused")
        return conversation

    @classmethod
    def create_group(
        cls,
        creator: User,
        title: str,
        initial_members: list[User] | None = None,
    ) -> ServiceResult[Conversation]:
        """
        A new titled group owned by creator.

        initial_members join as plain members. The creator and repeats are
        dropped from the list; at least MIN_GROUP_MEMBERS distinct others
        must remain.

        Error codes:
            TITLE_REQUIRED, NOT_ENOUGH_MEMBERS
        """
        title = (title or "").strip()
        if not title:
            return ServiceResult.failure("A group needs a title", error_code="TITLE_REQUIRED")

        members = list(
            {user.id: user for user in initial_members or [] if user.id != creator.id}.values()
        )
        if len(members) < MIN_GROUP_MEMBERS:
            return ServiceResult.failure(
                "More than 2 users are required to form a group chat",
                error_code="NOT_ENOUGH_MEMBERS",
            )

        with cls.atomic():
            conversation = Conversation.objects.create(
                conversation_type=ConversationType.GROUP,
                title=title,
                created_by=creator,
                participant_count=len(members) + 1,
            )
            Participant.objects.bulk_create(
                [Participant(conversation=conversation, user=creator, role=ParticipantRole.OWNER)]
                + [
                    Participant(conversation=conversation, user=user, role=ParticipantRole.MEMBER)
                    for user in members
                ]
            )

        cls.get_logger().info(
            f"Group conversation {conversation.id} created by user {creator.id} "
            f"with {len(members)} members"
        )
        return ServiceResult.success(conversation)

    @classmethod
    def update_title(
        cls,
        conversation: Conversation,
        user: User,
        new_title: str,
    ) -> ServiceResult[Conversation]:
        """
        Rename a group. Owners and admins only.

        Error codes:
            NOT_GROUP, TITLE_REQUIRED, NOT_PARTICIPANT, PERMISSION_DENIED
        """
        if not conversation.is_group:
            return ServiceResult.failure(
                "Direct conversations are untitled", error_code="NOT_GROUP"
            )

        new_title = (new_title or "").strip()
        if not new_title:
            return ServiceResult.failure("A group needs a title", error_code="TITLE_REQUIRED")

        participant = conversation.get_active_participant_for_user(user)
        if participant is None:
            return ServiceResult.failure(NOT_PARTICIPANT_MESSAGE, error_code="NOT_PARTICIPANT")
        if not participant.is_admin_or_owner:
            return ServiceResult.failure(
                "Only admins and owners can change the group title",
                error_code="PERMISSION_DENIED",
            )

        conversation.title = new_title
        conversation.save(update_fields=["title", "updated_at"])

        cls.get_logger().info(f"Conversation {conversation.id} renamed by user {user.id}")
        return ServiceResult.success(conversation)

    @classmethod
    def record_delivery(cls, message: Message, delivered_at: datetime) -> None:
        """
        Make a delivered message the conversation's latest message.

        Shared by the live send path and the delivery reconciler so both
        leave the conversation in the same state. Must run inside the
        transaction that delivered the message.

        Args:
            message: The message that was just delivered
            delivered_at: Delivery time, stored as last_message_at

        Raises:
            NotFoundError: The conversation is missing or soft-deleted.
                Raising rolls back the surrounding transaction.
        """
        updated = Conversation.objects.filter(
            pk=message.conversation_id,
            is_deleted=False,
        ).update(
            latest_message=message,
            last_message_at=delivered_at,
            updated_at=delivered_at,
        )
        if not updated:
            raise NotFoundError(
                f"Conversation {message.conversation_id} not found",
                error_code="CONVERSATION_NOT_FOUND",
                details={"conversation_id": message.conversation_id},
            )


class ParticipantService(BaseService):
    """
    Membership changes for group conversations, plus leaving any conversation.

    Who may add or remove whom is decided by Participant.can_grant and
    Participant.can_remove, the same rules the API permissions use.
    Every membership change keeps Conversation.participant_count in step
    inside one transaction.
    """

    @classmethod
    def _actor(cls, conversation: Conversation, user: User) -> Participant | ServiceResult:
        """Active participation of the acting user, or a NOT_PARTICIPANT failure."""
        participant = conversation.get_active_participant_for_user(user)
        if participant is None:
            return ServiceResult.failure(NOT_PARTICIPANT_MESSAGE, error_code="NOT_PARTICIPANT")
        return participant

    @staticmethod
    def _bump_count(conversation: Conversation, delta: int) -> None:
        conversation.participant_count = F("participant_count") + delta
        conversation.save(update_fields=["participant_count", "updated_at"])
        conversation.refresh_from_db()

    @classmethod
    def add_participant(
        cls,
        conversation: Conversation,
        user_to_add: User,
        added_by: User,
        role: str = ParticipantRole.MEMBER,
    ) -> ServiceResult[Participant]:
        """
        Add a user to a group conversation with the given role.

        Owners may add admins and members, admins only members.

        Error codes:
            NOT_GROUP, CANNOT_ADD_OWNER, NOT_PARTICIPANT,
            PERMISSION_DENIED, ALREADY_PARTICIPANT
        """
        if not conversation.is_group:
            return ServiceResult.failure(
                "Direct conversations have a fixed pair of participants",
                error_code="NOT_GROUP",
            )
        if role == ParticipantRole.OWNER:
            return ServiceResult.failure(
                "A group has exactly one owner", error_code="CANNOT_ADD_OWNER"
            )

        actor = cls._actor(conversation, added_by)
        if isinstance(actor, ServiceResult):
            return actor
        if not actor.can_grant(role):
            return ServiceResult.failure(
                f"A {actor.role} cannot add a {role}", error_code="PERMISSION_DENIED"
            )

        if conversation.get_active_participant_for_user(user_to_add):
            return ServiceResult.failure(
                f"User {user_to_add.id} is already in this conversation",
                error_code="ALREADY_PARTICIPANT",
            )

        with cls.atomic():
            participant = Participant.objects.create(
                conversation=conversation, user=user_to_add, role=role
            )
            cls._bump_count(conversation, +1)

        cls.get_logger().info(
            f"Conversation {conversation.id}: user {added_by.id} added "
            f"user {user_to_add.id} as {role}"
        )
        return ServiceResult.success(participant)

    @classmethod
    def remove_participant(
        cls,
        conversation: Conversation,
        user_to_remove: User,
        removed_by: User,
    ) -> ServiceResult[None]:
        """
        Remove someone else from a group conversation.

        Error codes:
            NOT_GROUP, CANNOT_REMOVE_SELF (use leave), NOT_PARTICIPANT,
            PARTICIPANT_NOT_FOUND, CANNOT_REMOVE_OWNER, PERMISSION_DENIED
        """
        if not conversation.is_group:
            return ServiceResult.failure(
                "Direct conversations have a fixed pair of participants",
                error_code="NOT_GROUP",
            )
        if user_to_remove.id == removed_by.id:
            return ServiceResult.failure(
                "Leave the conversation instead of removing yourself",
                error_code="CANNOT_REMOVE_SELF",
            )

        actor = cls._actor(conversation, removed_by)
        if isinstance(actor, ServiceResult):
            return actor

        target = conversation.get_active_participant_for_user(user_to_remove)
        if target is None:
            return ServiceResult.failure(
                f"User {user_to_remove.id} is not in this conversation",
                error_code="PARTICIPANT_NOT_FOUND",
            )
        if target.is_owner:
            return ServiceResult.failure(
                "The owner can only leave, not be removed",
                error_code="CANNOT_REMOVE_OWNER",
            )
        if not actor.can_remove(target):
            return ServiceResult.failure(
                f"A {actor.role} cannot remove a {target.role}",
                error_code="PERMISSION_DENIED",
            )

        with cls.atomic():
            cls._end_participation(target, removed_by=removed_by)
            cls._bump_count(conversation, -1)

        cls.get_logger().info(
            f"Conversation {conversation.id}: user {removed_by.id} removed "
            f"user {user_to_remove.id}"
        )
        return ServiceResult.success(None)

    @classmethod
    def leave(
        cls,
        conversation: Conversation,
        user: User,
    ) -> ServiceResult[None]:
        """
        Leave a conversation.

        A departing group owner hands ownership to the longest-standing
        admin, or failing that the longest-standing member. Once nobody is
        left the conversation is soft-deleted; for a direct conversation
        that means both users have left.

        Error codes:
            NOT_PARTICIPANT
        """
        participant = cls._actor(conversation, user)
        if isinstance(participant, ServiceResult):
            return participant

        with cls.atomic():
            if conversation.is_group and participant.is_owner:
                cls._hand_over_ownership(conversation, departing=user)
            cls._end_participation(participant, removed_by=None)
            cls._bump_count(conversation, -1)

            emptied = not conversation.get_active_participants().exists()
            if emptied:
                conversation.soft_delete()

        cls.get_logger().info(
            f"Conversation {conversation.id}: user {user.id} left"
            + (", conversation soft-deleted" if emptied else "")
        )
        return ServiceResult.success(None)

    @staticmethod
    def _end_participation(participant: Participant, removed_by: User | None) -> None:
        participant.left_at = timezone.now()
        participant.left_voluntarily = removed_by is None
        participant.removed_by = removed_by
        participant.save(
            update_fields=["left_at", "left_voluntarily", "removed_by", "updated_at"]
        )

    @classmethod
    def _hand_over_ownership(cls, conversation: Conversation, departing: User) -> User | None:
        """Promote the next owner. Runs inside the caller's transaction."""
        remaining = (
            conversation.get_active_participants()
            .exclude(user=departing)
            .order_by("joined_at", "id")
        )
        successor = (
            remaining.filter(role=ParticipantRole.ADMIN).first()
            or remaining.filter(role=ParticipantRole.MEMBER).first()
        )
        if successor is None:
            return None

        successor.role = ParticipantRole.OWNER
        successor.save(update_fields=["role", "updated_at"])
        cls.get_logger().info(
            f"Conversation {conversation.id}: ownership passed from user "
            f"{departing.id} to user {successor.user_id}"
        )
        return successor.user


class MessageService(BaseService):
    """
    Service for message operations.

    Methods:
        classify_and_persist: Store a message as delivered or pending
        submit_message: classify_and_persist plus fan-out after commit
        list_messages: Conversation history visible at a point in time
        list_scheduled: Messages still waiting for their delivery time
        mark_as_read: Read receipts and last_read_at for a user
    """

    @classmethod
    def classify_and_persist(
        cls,
        sender: User,
        conversation_id: int,
        content: str,
        scheduled_for: datetime | None = None,
        now: datetime | None = None,
    ) -> ServiceResult[Message]:
        """
        Store a message, delivering it now or leaving it pending.

        Classification:
            - scheduled_for absent, or not later than now: the message is
              stored delivered (scheduled_for NULL) and becomes the
              conversation's latest message in the same transaction
            - scheduled_for in the future: the message is stored pending
              and the conversation is left untouched

        Exactly one Message row is written per successful call.

        Args:
            sender: User submitting the message
            conversation_id: Target conversation
            content: Message text, trimmed before storing
            scheduled_for: Requested delivery time. Naive values are read
                in the default timezone.
            now: Reference time (defaults to timezone.now())

        Returns:
            ServiceResult with the stored Message; check message.is_delivered

        Error codes:
            EMPTY_CONTENT: Content is empty after trimming
            CONVERSATION_NOT_FOUND: Conversation missing or deleted
            NOT_PARTICIPANT: Sender is not active in the conversation
        """
        now = now or timezone.now()

        content = content.strip() if content else ""
        if not content:
            return ServiceResult.failure(
                "Message content cannot be empty",
                error_code="EMPTY_CONTENT",
            )

        conversation = Conversation.objects.filter(
            pk=conversation_id, is_deleted=False
        ).first()
        if conversation is None:
            return ServiceResult.failure(
                "Conversation not found",
                error_code="CONVERSATION_NOT_FOUND",
            )

        if not conversation.get_active_participant_for_user(sender):
            return ServiceResult.failure(
                NOT_PARTICIPANT_MESSAGE,
                error_code="NOT_PARTICIPANT",
            )

        if scheduled_for is not None and timezone.is_naive(scheduled_for):
            scheduled_for = timezone.make_aware(scheduled_for)

        if scheduled_for is not None and scheduled_for > now:
            message = Message.objects.create(
                conversation=conversation,
                sender=sender,
                content=content,
                scheduled_for=scheduled_for,
            )
            cls.get_logger().info(
                f"User {sender.id} scheduled message {message.id} "
                f"in conversation {conversation.id} for {scheduled_for.isoformat()}",
                extra={
                    "message_id": message.id,
                    "conversation_id": conversation.id,
                    "scheduled_for": scheduled_for.isoformat(),
                },
            )
            return ServiceResult.success(message)

        try:
            with cls.atomic():
                message = Message.objects.create(
                    conversation=conversation,
                    sender=sender,
                    content=content,
                    scheduled_for=None,
                )
                ConversationService.record_delivery(message, message.created_at)
        except NotFoundError as e:
            # Deleted between the lookup above and the write; nothing was stored
            return cls.handle_exception(e, f"Send to conversation {conversation.id}", logging.WARNING)

        cls.get_logger().debug(
            f"User {sender.id} sent message {message.id} "
            f"to conversation {conversation.id}"
        )

        return ServiceResult.success(message)

    @classmethod
    def submit_message(
        cls,
        sender: User,
        conversation_id: int,
        content: str,
        scheduled_for: datetime | None = None,
        fanout: FanoutService | None = None,
        now: datetime | None = None,
    ) -> ServiceResult[Message]:
        """
        Submit a message and push it to other participants when delivered.

        The push is registered with transaction.on_commit, so it only
        happens once the message row is durable. Push failures are handled
        inside FanoutService and never fail the submission.

        Args:
            fanout: Push service (omit to skip pushing)

        Returns:
            Same as classify_and_persist
        """
        result = cls.classify_and_persist(
            sender=sender,
            conversation_id=conversation_id,
            content=content,
            scheduled_for=scheduled_for,
            now=now,
        )

        if result.success and result.data.is_delivered and fanout is not None:
            message = result.data
            transaction.on_commit(lambda: fanout.publish_message(message), robust=True)

        return result

    @classmethod
    def list_messages(cls, conversation: Conversation, now: datetime | None = None):
        """
        Messages of a conversation as of now.

        Pending messages whose time has not come are hidden. Messages that
        are due but not reconciled yet are included.

        Returns:
            QuerySet ordered oldest first
        """
        return (
            conversation.messages.visible(now)
            .select_related("sender__profile")
            .prefetch_related("read_by")
            .order_by("created_at", "id")
        )

    @classmethod
    def list_scheduled(cls, user: User, now: datetime | None = None):
        """
        Messages scheduled strictly in the future.

        Staff see the whole queue, other users only what they scheduled.

        Returns:
            QuerySet ordered by delivery time
        """
        queryset = Message.objects.pending(now)
        if not user.is_staff:
            queryset = queryset.filter(sender=user)
        return (
            queryset.select_related("sender__profile")
            .prefetch_related("read_by")
            .order_by("scheduled_for", "id")
        )

    @classmethod
    def mark_as_read(
        cls,
        conversation: Conversation,
        user: User,
    ) -> ServiceResult[int]:
        """
        Mark conversation as read for a user.

        Updates the participant's last_read_at and adds the user to
        read_by on every visible message from other senders.

        Returns:
            ServiceResult with the number of messages newly marked read

        Error codes:
            NOT_PARTICIPANT: User is not in this conversation
        """
        participant = conversation.get_active_participant_for_user(user)
        if not participant:
            return ServiceResult.failure(
                NOT_PARTICIPANT_MESSAGE,
                error_code="NOT_PARTICIPANT",
            )

        now = timezone.now()
        unread_ids = list(
            conversation.messages.visible(now)
            .exclude(Q(sender=user) | Q(read_by=user))
            .values_list("id", flat=True)
        )

        with cls.atomic():
            through = Message.read_by.through
            through.objects.bulk_create(
                [through(message_id=mid, user_id=user.id) for mid in unread_ids],
                ignore_conflicts=True,
            )
            participant.last_read_at = now
            participant.save(update_fields=["last_read_at", "updated_at"])

        cls.get_logger().debug(
            f"User {user.id} marked conversation {conversation.id} as read "
            f"({len(unread_ids)} messages)"
        )

        return ServiceResult.success(len(unread_ids))
