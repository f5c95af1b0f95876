"""
Permission classes for chat API.

All classes are object permissions: the view resolves the conversation (or
a participant inside it) and DRF asks each class in turn.

    IsConversationParticipant   active participant of the conversation
    IsConversationAdminOrOwner  active participant with role admin/owner
    CanManageParticipants       role hierarchy for add/remove
    IsGroupConversation         conversation is a group

Role hierarchy:
    OWNER > ADMIN > MEMBER

    An owner adds admins or members and removes anyone but themselves.
    An admin adds members and removes members. Members manage nobody.
    Nobody removes themselves here; that is the leave action.

The services repeat these rules and answer with error codes, so a request
that slips past a permission still fails with NOT_PARTICIPANT or
PERMISSION_DENIED.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

from chat.models import Conversation, Participant, ParticipantRole

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView

ConversationObject = Conversation | Participant


def _conversation_of(obj: ConversationObject) -> Conversation:
    if isinstance(obj, Participant):
        return obj.conversation
    return obj


def _acting_participant(request: Request, obj: ConversationObject) -> Participant | None:
    """The requesting user's active participation, if any."""
    if not request.user.is_authenticated:
        return None
    return Participant.objects.filter(
        conversation=_conversation_of(obj),
        user=request.user,
        left_at__isnull=True,
    ).first()


class IsConversationParticipant(permissions.BasePermission):
    """Base permission for every conversation-scoped endpoint."""

    message = "You are not a participant in this conversation."

    def has_object_permission(self, request: Request, view: APIView, obj: ConversationObject) -> bool:
        return _acting_participant(request, obj) is not None


class IsConversationAdminOrOwner(permissions.BasePermission):
    """Used for renaming a group."""

    message = "Only admins or the owner can perform this action."

    def has_object_permission(self, request: Request, view: APIView, obj: ConversationObject) -> bool:
        actor = _acting_participant(request, obj)
        return actor is not None and actor.is_admin_or_owner


class CanManageParticipants(permissions.BasePermission):
    """
    Role hierarchy check for adding (POST) and removing (DELETE).

    For POST the object is the conversation and the requested role comes
    from the body. For DELETE the object is the target participant.
    """

    message = "You don't have permission to manage this participant."

    def has_object_permission(self, request: Request, view: APIView, obj: ConversationObject) -> bool:
        actor = _acting_participant(request, obj)
        if actor is None:
            return False

        if request.method == "POST":
            return actor.can_grant(request.data.get("role", ParticipantRole.MEMBER))

        if request.method == "DELETE" and isinstance(obj, Participant):
            if obj.user_id == request.user.id:
                self.message = "Use the leave endpoint to remove yourself."
                return False
            return actor.can_remove(obj)

        return True


class IsGroupConversation(permissions.BasePermission):
    """Title and membership changes only exist for groups."""

    message = "This action is only available for group conversations."

    def has_object_permission(self, request: Request, view: APIView, obj: ConversationObject) -> bool:
        return _conversation_of(obj).is_group
