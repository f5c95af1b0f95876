"""
ViewSets for chat API.

This module provides REST API endpoints for the chat system:
- ConversationViewSet: Conversation CRUD and actions
- ParticipantViewSet: Participant management (nested under conversation)
- MessageViewSet: Message history and submission (nested under conversation)
- ScheduledMessageListView: Messages waiting for delivery
- TranslateView: Message translation

URL Structure:
    /api/v1/chat/conversations/                                GET, POST
    /api/v1/chat/conversations/{id}/                           GET, PATCH
    /api/v1/chat/conversations/{id}/read/                      POST
    /api/v1/chat/conversations/{id}/leave/                     POST
    /api/v1/chat/conversations/{id}/participants/              GET, POST
    /api/v1/chat/conversations/{id}/participants/{user_id}/    DELETE
    /api/v1/chat/conversations/{id}/messages/                  GET, POST
    /api/v1/chat/messages/scheduled/                           GET
    /api/v1/chat/messages/translate/                           POST

Views stay thin: bodies are validated by serializers, rules live in
chat.services, and a failed ServiceResult becomes a 400 or 403 through
error_response. Object permissions repeat the participant checks so that
outsiders never see a conversation's contents.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from drf_spectacular.utils import (
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import generics, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.services import ServiceResult

from chat.apps import get_fanout
from chat.models import Conversation, ConversationType, Participant
from chat.pagination import (
    ConversationCursorPagination,
    MessageCursorPagination,
    ScheduledMessageCursorPagination,
)
from chat.permissions import (
    CanManageParticipants,
    IsConversationAdminOrOwner,
    IsConversationParticipant,
    IsGroupConversation,
)
from chat.serializers import (
    ConversationCreateSerializer,
    ConversationDetailSerializer,
    ConversationListSerializer,
    ConversationUpdateSerializer,
    MessageCreateSerializer,
    MessageSerializer,
    ParticipantCreateSerializer,
    ParticipantSerializer,
    TranslateSerializer,
    TranslationResultSerializer,
)
from chat.services import (
    NOT_PARTICIPANT_MESSAGE,
    ConversationService,
    MessageService,
    ParticipantService,
)
from chat.translation import TranslationService

User = get_user_model()

# Service error codes answered with 403 instead of 400
FORBIDDEN_ERROR_CODES = frozenset({"NOT_PARTICIPANT", "PERMISSION_DENIED"})


def error_response(result) -> Response:
    """Build the error body for a failed ServiceResult."""
    code = (
        status.HTTP_403_FORBIDDEN
        if result.error_code in FORBIDDEN_ERROR_CODES
        else status.HTTP_400_BAD_REQUEST
    )
    return Response(result.to_response(), status=code)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        tags=["Chat - Conversations"],
    ),
    create=extend_schema(
        operation_id="create_conversation",
        summary="Access a direct conversation or create a group",
        tags=["Chat - Conversations"],
        request=ConversationCreateSerializer,
        responses={201: ConversationDetailSerializer},
    ),
    retrieve=extend_schema(
        operation_id="get_conversation",
        summary="Get conversation",
        tags=["Chat - Conversations"],
    ),
    partial_update=extend_schema(
        operation_id="update_conversation",
        summary="Rename group",
        tags=["Chat - Conversations"],
        request=ConversationUpdateSerializer,
        responses={200: ConversationDetailSerializer},
    ),
)
class ConversationViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    The requesting user's conversations.

    Only conversations the user actively participates in are reachable;
    anything else answers 404. The inbox is ordered by latest activity.
    """

    pagination_class = ConversationCursorPagination

    serializer_classes = {
        "list": ConversationListSerializer,
        "create": ConversationCreateSerializer,
        "partial_update": ConversationUpdateSerializer,
    }
    action_permissions = {
        "partial_update": [
            IsAuthenticated,
            IsConversationParticipant,
            IsConversationAdminOrOwner,
            IsGroupConversation,
        ],
        "retrieve": [IsAuthenticated, IsConversationParticipant],
        "read": [IsAuthenticated, IsConversationParticipant],
        "leave": [IsAuthenticated, IsConversationParticipant],
    }

    def get_queryset(self):
        user = self.request.user
        if not user.is_authenticated:
            return Conversation.objects.none()
        return (
            Conversation.objects.filter(
                is_deleted=False,
                participants__user=user,
                participants__left_at__isnull=True,
            )
            .select_related("created_by", "latest_message__sender__profile")
            .distinct()
            .order_by("-updated_at", "-id")
        )

    def get_serializer_class(self):
        return self.serializer_classes.get(self.action, ConversationDetailSerializer)

    def get_permissions(self):
        classes = self.action_permissions.get(self.action, [IsAuthenticated])
        return [permission() for permission in classes]

    def _detail(self, conversation, **kwargs) -> Response:
        body = ConversationDetailSerializer(conversation, context=self.get_serializer_context()).data
        return Response(body, **kwargs)

    def create(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data["conversation_type"] == ConversationType.DIRECT:
            counterpart = get_object_or_404(User, id=data["participant_ids"][0])
            result = ConversationService.create_direct(request.user, counterpart)
        else:
            result = ConversationService.create_group(
                creator=request.user,
                title=data["title"],
                initial_members=list(
                    User.objects.filter(id__in=data["participant_ids"]).order_by("id")
                ),
            )

        if not result:
            return error_response(result)
        return self._detail(result.data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        conversation = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationService.update_title(
            conversation, request.user, serializer.validated_data["title"]
        )
        if not result:
            return error_response(result)
        return self._detail(result.data)

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark delivered messages as read",
        tags=["Chat - Conversations"],
        request=None,
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        result = MessageService.mark_as_read(self.get_object(), request.user)
        if not result:
            return error_response(result)
        return Response({"status": "read", "marked": result.data})

    @extend_schema(
        operation_id="leave_conversation",
        summary="Leave conversation",
        tags=["Chat - Conversations"],
        request=None,
    )
    @action(detail=True, methods=["post"])
    def leave(self, request, pk=None):
        """A departing group owner hands ownership on."""
        result = ParticipantService.leave(self.get_object(), request.user)
        if not result:
            return error_response(result)
        return Response({"status": "left"})


@extend_schema_view(
    list=extend_schema(
        operation_id="list_participants",
        summary="List participants",
        tags=["Chat - Participants"],
    ),
    create=extend_schema(
        operation_id="add_participant",
        summary="Add participant",
        tags=["Chat - Participants"],
        request=ParticipantCreateSerializer,
        responses={201: ParticipantSerializer},
    ),
    destroy=extend_schema(
        operation_id="remove_participant",
        summary="Remove participant",
        tags=["Chat - Participants"],
    ),
)
class ParticipantViewSet(
    mixins.ListModelMixin,
    viewsets.GenericViewSet,
):
    """
    Members of one conversation, addressed by user id.

    Listing is open to any active participant. Adding and removing are
    group-only and follow the owner > admin > member hierarchy.
    """

    serializer_class = ParticipantSerializer
    pagination_class = None

    def get_permissions(self):
        classes = [IsAuthenticated, IsConversationParticipant]
        if self.action in ("create", "destroy"):
            classes += [IsGroupConversation, CanManageParticipants]
        return [permission() for permission in classes]

    def get_conversation(self) -> Conversation:
        conversation = get_object_or_404(
            Conversation.objects.filter(is_deleted=False), pk=self.kwargs["conversation_pk"]
        )
        self.check_object_permissions(self.request, conversation)
        return conversation

    def get_queryset(self):
        return (
            Participant.objects.filter(
                conversation_id=self.kwargs["conversation_pk"],
                conversation__is_deleted=False,
                left_at__isnull=True,
            )
            .select_related("user__profile", "conversation")
            .order_by("joined_at")
        )

    def list(self, request, conversation_pk=None):
        self.get_conversation()
        return super().list(request)

    def create(self, request, conversation_pk=None):
        conversation = self.get_conversation()
        serializer = ParticipantCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ParticipantService.add_participant(
            conversation=conversation,
            user_to_add=get_object_or_404(User, id=serializer.validated_data["user_id"]),
            added_by=request.user,
            role=serializer.validated_data["role"],
        )
        if not result:
            return error_response(result)
        return Response(ParticipantSerializer(result.data).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, conversation_pk=None, user_id=None):
        target = get_object_or_404(self.get_queryset(), user_id=user_id)
        self.check_object_permissions(request, target)

        result = ParticipantService.remove_participant(
            conversation=target.conversation,
            user_to_remove=target.user,
            removed_by=request.user,
        )
        if not result:
            return error_response(result)
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_messages",
        summary="List messages",
        tags=["Chat - Messages"],
    ),
    create=extend_schema(
        operation_id="submit_message",
        summary="Send or schedule a message",
        tags=["Chat - Messages"],
        request=MessageCreateSerializer,
        responses={
            201: MessageSerializer,
            400: OpenApiResponse(description="Validation error"),
            403: OpenApiResponse(description="Not a participant"),
            503: OpenApiResponse(description="Message store unavailable"),
        },
    ),
)
class MessageViewSet(
    mixins.ListModelMixin,
    viewsets.GenericViewSet,
):
    """
    History and submission for one conversation.

    History is what the reader could have received by now: delivered
    messages plus any that are due but not reconciled yet, oldest first.
    A submitted message whose time is not in the future is delivered at
    once and pushed to the other participants after commit.
    """

    permission_classes = [IsAuthenticated]
    pagination_class = MessageCursorPagination
    serializer_class = MessageSerializer

    def list(self, request, conversation_pk=None):
        conversation = get_object_or_404(
            Conversation.objects.filter(is_deleted=False), pk=conversation_pk
        )
        if conversation.get_active_participant_for_user(request.user) is None:
            return error_response(
                ServiceResult.failure(NOT_PARTICIPANT_MESSAGE, error_code="NOT_PARTICIPANT")
            )

        page = self.paginate_queryset(MessageService.list_messages(conversation))
        return self.get_paginated_response(self.get_serializer(page, many=True).data)

    def create(self, request, conversation_pk=None):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = MessageService.submit_message(
            sender=request.user,
            conversation_id=conversation_pk,
            fanout=get_fanout(),
            **serializer.validated_data,
        )
        if not result:
            return error_response(result)
        return Response(self.get_serializer(result.data).data, status=status.HTTP_201_CREATED)


@extend_schema(
    operation_id="list_scheduled_messages",
    summary="List scheduled messages",
    tags=["Chat - Messages"],
)
class ScheduledMessageListView(generics.ListAPIView):
    """Pending messages, soonest first. Staff see everyone's."""

    permission_classes = [IsAuthenticated]
    serializer_class = MessageSerializer
    pagination_class = ScheduledMessageCursorPagination

    def get_queryset(self):
        return MessageService.list_scheduled(self.request.user)


class TranslateView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="translate_message",
        summary="Translate message text",
        tags=["Chat - Messages"],
        request=TranslateSerializer,
        responses={200: TranslationResultSerializer},
    )
    def post(self, request):
        serializer = TranslateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = TranslationService.translate(**serializer.validated_data)
        if not result:
            return error_response(result)
        return Response(TranslationResultSerializer({"translated_text": result.data}).data)
