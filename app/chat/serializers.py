"""
DRF serializers for the chat API.

Read serializers render conversations, participants and messages; write
serializers only shape and check request bodies and leave the rules to
chat.services. MessageSerializer is also the payload of message_delivered
push events, so REST and WebSocket clients see one message shape.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework import serializers

from authentication.serializers import UserSerializer
from chat.constants import MESSAGE_CONFIG
from chat.models import (
    Conversation,
    ConversationType,
    Message,
    Participant,
    ParticipantRole,
)

User = get_user_model()


# =============================================================================
# Message Serializers
# =============================================================================


class MessagePreviewSerializer(serializers.ModelSerializer):
    """Latest delivered message as shown in the conversation list."""

    sender_name = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = ["id", "sender_name", "content", "created_at"]
        read_only_fields = fields

    def get_sender_name(self, obj: Message) -> str | None:
        # Sender rows may be gone; the message outlives them
        return obj.sender.get_full_name() if obj.sender is not None else None


class MessageSerializer(serializers.ModelSerializer):
    """
    Full message serializer for message lists and push payloads.

    scheduled_for is null for delivered messages. is_delivered mirrors
    that so clients do not need to interpret the null.
    """

    sender = UserSerializer(read_only=True, allow_null=True)
    is_delivered = serializers.BooleanField(read_only=True)
    read_by = serializers.PrimaryKeyRelatedField(many=True, read_only=True)

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sender",
            "content",
            "scheduled_for",
            "is_delivered",
            "read_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class MessageCreateSerializer(serializers.Serializer):
    """
    Serializer for submitting messages.

    Blank content passes this layer so that MessageService reports
    EMPTY_CONTENT with its own error code. A naive scheduled_for is read
    in the server timezone (UTC).
    """

    content = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
        required=False,
        allow_blank=True,
        default="",
        help_text="Message content (max 10,000 characters)",
    )
    scheduled_for = serializers.DateTimeField(
        required=False,
        allow_null=True,
        default=None,
        help_text="Deliver at this time instead of now (optional)",
    )


class TranslateSerializer(serializers.Serializer):
    """Request body for message translation."""

    content = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
        help_text="Text to translate",
    )
    target_language = serializers.CharField(
        max_length=50,
        help_text="Target language name, e.g. 'Spanish'",
    )


class TranslationResultSerializer(serializers.Serializer):
    translated_text = serializers.CharField(read_only=True)


# =============================================================================
# Participant Serializers
# =============================================================================


class ParticipantSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)
    is_active = serializers.BooleanField(read_only=True)

    class Meta:
        model = Participant
        fields = ["id", "user", "role", "joined_at", "last_read_at", "is_active"]
        read_only_fields = fields


class ParticipantCreateSerializer(serializers.Serializer):
    """Add someone to a group. Owners are never added, only promoted on departure."""

    user_id = serializers.IntegerField()
    role = serializers.ChoiceField(
        choices=[ParticipantRole.ADMIN, ParticipantRole.MEMBER],
        default=ParticipantRole.MEMBER,
    )

    def validate_user_id(self, value: int) -> int:
        if not User.objects.filter(id=value, is_active=True).exists():
            raise serializers.ValidationError("Unknown or inactive user")
        return value


# =============================================================================
# Conversation Serializers
# =============================================================================


class ViewerContextMixin:
    """Access to the authenticated user the response is rendered for."""

    def viewer(self):
        request = self.context.get("request")
        if request is None or not request.user.is_authenticated:
            return None
        return request.user

    def viewer_participant(self, conversation: Conversation) -> Participant | None:
        user = self.viewer()
        if user is None:
            return None
        return conversation.get_active_participant_for_user(user)


class ConversationListSerializer(ViewerContextMixin, serializers.ModelSerializer):
    """
    One row of the viewer's inbox.

    unread_count counts delivered messages from other senders newer than
    the viewer's last_read_at. Pending messages never count.
    """

    is_group = serializers.BooleanField(read_only=True)
    unread_count = serializers.SerializerMethodField()
    latest_message = MessagePreviewSerializer(read_only=True, allow_null=True)
    display_name = serializers.SerializerMethodField()
    other_participants = serializers.SerializerMethodField()

    # Cap on participant cards embedded per row
    PREVIEW_PARTICIPANTS = 5

    class Meta:
        model = Conversation
        fields = [
            "id",
            "conversation_type",
            "is_group",
            "title",
            "display_name",
            "participant_count",
            "other_participants",
            "unread_count",
            "latest_message",
            "last_message_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_unread_count(self, obj: Conversation) -> int:
        participant = self.viewer_participant(obj)
        if participant is None:
            return 0
        unread = obj.messages.visible().exclude(sender_id=participant.user_id)
        if participant.last_read_at is not None:
            unread = unread.filter(created_at__gt=participant.last_read_at)
        return unread.count()

    def get_display_name(self, obj: Conversation) -> str:
        """Group title, or the other person's name in a direct conversation."""
        if obj.title:
            return obj.title
        viewer = self.viewer()
        if obj.is_direct and viewer is not None:
            counterpart = (
                obj.participants.exclude(user=viewer).select_related("user__profile").first()
            )
            if counterpart is not None:
                return counterpart.user.get_full_name()
        return f"Group ({obj.participant_count} members)"

    def get_other_participants(self, obj: Conversation) -> list[dict]:
        viewer = self.viewer()
        if viewer is None:
            return []
        others = (
            obj.get_active_participants()
            .exclude(user=viewer)
            .select_related("user__profile")[: self.PREVIEW_PARTICIPANTS]
        )
        return UserSerializer([p.user for p in others], many=True).data


class ConversationDetailSerializer(ConversationListSerializer):
    """Inbox row plus the full member list and the viewer's own role."""

    participants = serializers.SerializerMethodField()
    current_user_role = serializers.SerializerMethodField()

    class Meta(ConversationListSerializer.Meta):
        fields = ConversationListSerializer.Meta.fields + [
            "participants",
            "current_user_role",
        ]

    def get_participants(self, obj: Conversation) -> list[dict]:
        members = obj.get_active_participants().select_related("user__profile").order_by("joined_at")
        return ParticipantSerializer(members, many=True).data

    def get_current_user_role(self, obj: Conversation) -> str | None:
        participant = self.viewer_participant(obj)
        return participant.role if participant is not None else None


class ConversationCreateSerializer(serializers.Serializer):
    """
    Body of POST /conversations/.

    direct: participant_ids holds exactly the one other user and no title
        is given. An existing conversation for the pair is reused.
    group: a title plus the other members. The service enforces the
        minimum group size.
    """

    conversation_type = serializers.ChoiceField(choices=ConversationType.choices)
    participant_ids = serializers.ListField(
        child=serializers.IntegerField(),
        min_length=1,
        help_text="Users to include, not counting yourself",
    )
    title = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")

    def validate_participant_ids(self, value: list[int]) -> list[int]:
        unique_ids = list(dict.fromkeys(value))

        request = self.context.get("request")
        if request is not None and request.user.id in unique_ids:
            raise serializers.ValidationError("Leave yourself out of participant_ids")

        active_ids = set(
            User.objects.filter(id__in=unique_ids, is_active=True).values_list("id", flat=True)
        )
        unknown = [uid for uid in unique_ids if uid not in active_ids]
        if unknown:
            raise serializers.ValidationError(f"Unknown or inactive users: {unknown}")
        return unique_ids

    def validate(self, attrs: dict) -> dict:
        attrs["title"] = attrs.get("title", "").strip()
        errors = {}

        if attrs["conversation_type"] == ConversationType.DIRECT:
            if len(attrs["participant_ids"]) != 1:
                errors["participant_ids"] = "A direct conversation has exactly one other user"
            if attrs["title"]:
                errors["title"] = "Direct conversations are untitled"
        elif not attrs["title"]:
            errors["title"] = "A group needs a title"

        if errors:
            raise serializers.ValidationError(errors)
        return attrs


class ConversationUpdateSerializer(serializers.Serializer):
    """Rename a group. The title is trimmed and may not end up empty."""

    title = serializers.CharField(max_length=100, trim_whitespace=True)
