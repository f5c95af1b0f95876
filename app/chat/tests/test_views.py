"""
Tests for chat API views.

Covers:
- Conversation list/create/retrieve/rename and the read/leave actions
- Participant list/add/remove
- Message history, submission and scheduling
- The scheduled message queue
- Translation

Views are thin wrappers around the services, so these tests focus on
status codes, response shapes and which user may do what.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone
from freezegun import freeze_time
from rest_framework import status

from authentication.tests.factories import UserFactory
from chat.models import Conversation, Message, Participant, ParticipantRole
from chat.tests.factories import MessageFactory, ScheduledMessageFactory

BASE_URL = "/api/v1/chat"


def conversation_url(conversation_id, suffix=""):
    return f"{BASE_URL}/conversations/{conversation_id}/{suffix}"


def messages_url(conversation_id):
    return conversation_url(conversation_id, "messages/")


def participants_url(conversation_id, user_id=None):
    if user_id is None:
        return conversation_url(conversation_id, "participants/")
    return conversation_url(conversation_id, f"participants/{user_id}/")


# =============================================================================
# Conversations
# =============================================================================


class TestConversationList:
    """GET /conversations/"""

    def test_requires_authentication(self, api_client):
        response = api_client.get(f"{BASE_URL}/conversations/")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_lists_only_active_participations(
        self,
        member_client,
        group_conversation,
        deleted_conversation,
        direct_conversation,
    ):
        response = member_client.get(f"{BASE_URL}/conversations/")

        assert response.status_code == status.HTTP_200_OK
        ids = [item["id"] for item in response.data["results"]]
        assert ids == [group_conversation.id]

    def test_unread_count_ignores_own_and_pending_messages(
        self, member_client, group_conversation, owner_user, member_user
    ):
        MessageFactory(conversation=group_conversation, sender=owner_user)
        MessageFactory(conversation=group_conversation, sender=owner_user)
        MessageFactory(conversation=group_conversation, sender=member_user)
        ScheduledMessageFactory(conversation=group_conversation, sender=owner_user)

        response = member_client.get(f"{BASE_URL}/conversations/")

        assert response.data["results"][0]["unread_count"] == 2

    def test_most_recently_active_first(
        self, owner_client, owner_user, other_user, group_conversation
    ):
        from chat.services import ConversationService

        with freeze_time(timezone.now() + timedelta(minutes=5)):
            direct = ConversationService.create_direct(owner_user, other_user).data

        response = owner_client.get(f"{BASE_URL}/conversations/")

        ids = [item["id"] for item in response.data["results"]]
        assert ids == [direct.id, group_conversation.id]


class TestConversationCreate:
    """POST /conversations/"""

    def test_create_direct(self, owner_client, owner_user, other_user):
        response = owner_client.post(
            f"{BASE_URL}/conversations/",
            {"conversation_type": "direct", "participant_ids": [other_user.id]},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["conversation_type"] == "direct"
        user_ids = {p["user"]["id"] for p in response.data["participants"]}
        assert user_ids == {owner_user.id, other_user.id}

    def test_create_direct_twice_returns_same_conversation(
        self, owner_client, other_user, direct_conversation
    ):
        response = owner_client.post(
            f"{BASE_URL}/conversations/",
            {"conversation_type": "direct", "participant_ids": [other_user.id]},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["id"] == direct_conversation.id

    def test_create_group(self, owner_client, member_user, other_user):
        response = owner_client.post(
            f"{BASE_URL}/conversations/",
            {
                "conversation_type": "group",
                "title": "Weekend plans",
                "participant_ids": [member_user.id, other_user.id],
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["title"] == "Weekend plans"
        assert response.data["participant_count"] == 3
        assert response.data["current_user_role"] == ParticipantRole.OWNER

    def test_group_without_title_rejected(self, owner_client, member_user):
        response = owner_client.post(
            f"{BASE_URL}/conversations/",
            {"conversation_type": "group", "participant_ids": [member_user.id]},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "title" in response.data

    def test_cannot_include_self(self, owner_client, owner_user):
        response = owner_client.post(
            f"{BASE_URL}/conversations/",
            {"conversation_type": "direct", "participant_ids": [owner_user.id]},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "participant_ids" in response.data

    def test_unknown_user_rejected(self, owner_client):
        response = owner_client.post(
            f"{BASE_URL}/conversations/",
            {"conversation_type": "direct", "participant_ids": [999999]},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestConversationRetrieve:
    """GET /conversations/{id}/"""

    def test_participant_sees_details(self, admin_client, group_conversation):
        response = admin_client.get(conversation_url(group_conversation.id))

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data["participants"]) == 3
        assert response.data["current_user_role"] == ParticipantRole.ADMIN

    def test_non_participant_gets_404(self, non_participant_client, group_conversation):
        response = non_participant_client.get(conversation_url(group_conversation.id))

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestConversationRename:
    """PATCH /conversations/{id}/"""

    def test_admin_can_rename(self, admin_client, group_conversation):
        response = admin_client.patch(
            conversation_url(group_conversation.id), {"title": "Renamed"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["title"] == "Renamed"

    def test_member_cannot_rename(self, member_client, group_conversation):
        response = member_client.patch(
            conversation_url(group_conversation.id), {"title": "Renamed"}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        group_conversation.refresh_from_db()
        assert group_conversation.title == "Test Group"

    def test_direct_cannot_be_renamed(self, owner_client, direct_conversation):
        response = owner_client.patch(
            conversation_url(direct_conversation.id), {"title": "Nope"}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_blank_title_rejected(self, owner_client, group_conversation):
        response = owner_client.patch(
            conversation_url(group_conversation.id), {"title": "   "}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestConversationActions:
    """POST /conversations/{id}/read/ and /leave/"""

    def test_read_reports_marked_count(
        self, member_client, group_conversation, owner_user
    ):
        MessageFactory(conversation=group_conversation, sender=owner_user)
        MessageFactory(conversation=group_conversation, sender=owner_user)

        response = member_client.post(conversation_url(group_conversation.id, "read/"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"status": "read", "marked": 2}

    def test_leave(self, member_client, group_conversation, member_user):
        response = member_client.post(conversation_url(group_conversation.id, "leave/"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"status": "left"}
        assert group_conversation.get_active_participant_for_user(member_user) is None

    def test_owner_leaving_hands_over_to_admin(
        self, owner_client, group_conversation, admin_user
    ):
        owner_client.post(conversation_url(group_conversation.id, "leave/"))

        admin = group_conversation.get_active_participant_for_user(admin_user)
        assert admin.role == ParticipantRole.OWNER

    def test_non_participant_cannot_leave(self, non_participant_client, group_conversation):
        response = non_participant_client.post(
            conversation_url(group_conversation.id, "leave/")
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# Participants
# =============================================================================


class TestParticipants:
    """/conversations/{id}/participants/"""

    def test_list_is_unpaginated(self, member_client, group_conversation):
        response = member_client.get(participants_url(group_conversation.id))

        assert response.status_code == status.HTTP_200_OK
        assert isinstance(response.data, list)
        assert len(response.data) == 3

    def test_non_participant_cannot_list(self, non_participant_client, group_conversation):
        response = non_participant_client.get(participants_url(group_conversation.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_adds_member(self, admin_client, group_conversation, other_user):
        response = admin_client.post(
            participants_url(group_conversation.id),
            {"user_id": other_user.id},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["user"]["id"] == other_user.id
        assert response.data["role"] == ParticipantRole.MEMBER

    def test_admin_cannot_add_admin(self, admin_client, group_conversation, other_user):
        response = admin_client.post(
            participants_url(group_conversation.id),
            {"user_id": other_user.id, "role": "admin"},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_member_cannot_add(self, member_client, group_conversation, other_user):
        response = member_client.post(
            participants_url(group_conversation.id),
            {"user_id": other_user.id},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_adding_existing_participant_rejected(
        self, owner_client, group_conversation, member_user
    ):
        response = owner_client.post(
            participants_url(group_conversation.id),
            {"user_id": member_user.id},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "ALREADY_PARTICIPANT"

    def test_owner_removes_admin(self, owner_client, group_conversation, admin_user):
        response = owner_client.delete(participants_url(group_conversation.id, admin_user.id))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        removed = Participant.objects.get(conversation=group_conversation, user=admin_user)
        assert removed.left_at is not None
        assert not removed.left_voluntarily

    def test_admin_cannot_remove_admin_peer(
        self, owner_client, admin_client, group_conversation, other_user
    ):
        owner_client.post(
            participants_url(group_conversation.id),
            {"user_id": other_user.id, "role": "admin"},
            format="json",
        )

        response = admin_client.delete(participants_url(group_conversation.id, other_user.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_cannot_remove_self(self, owner_client, group_conversation, owner_user):
        response = owner_client.delete(participants_url(group_conversation.id, owner_user.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_remove_unknown_participant_404(self, owner_client, group_conversation, other_user):
        response = owner_client.delete(participants_url(group_conversation.id, other_user.id))

        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# Messages
# =============================================================================


class TestMessageList:
    """GET /conversations/{id}/messages/"""

    def test_oldest_first_without_future_messages(
        self, member_client, group_conversation, owner_user
    ):
        first = MessageFactory(conversation=group_conversation, sender=owner_user)
        second = MessageFactory(conversation=group_conversation, sender=owner_user)
        ScheduledMessageFactory(conversation=group_conversation, sender=owner_user)

        response = member_client.get(messages_url(group_conversation.id))

        assert response.status_code == status.HTTP_200_OK
        assert [m["id"] for m in response.data["results"]] == [first.id, second.id]
        assert set(response.data) == {"next", "previous", "results"}

    def test_due_but_unreconciled_message_is_visible(
        self, member_client, group_conversation, owner_user
    ):
        """
        A message whose time has passed shows up before the reconciler runs.

        Why it matters: History reads are "as of now"; clients should not
        depend on the reconciler's tick to see a message that is due.
        """
        due = ScheduledMessageFactory(
            conversation=group_conversation,
            sender=owner_user,
            scheduled_for=timezone.now() - timedelta(seconds=1),
        )

        response = member_client.get(messages_url(group_conversation.id))

        assert [m["id"] for m in response.data["results"]] == [due.id]

    def test_message_shape(self, member_client, group_conversation, owner_user):
        MessageFactory(conversation=group_conversation, sender=owner_user, content="Hi")

        response = member_client.get(messages_url(group_conversation.id))

        message = response.data["results"][0]
        assert message["content"] == "Hi"
        assert message["sender"]["id"] == owner_user.id
        assert message["scheduled_for"] is None
        assert message["is_delivered"] is True
        assert message["conversation_id"] == group_conversation.id

    def test_non_participant_forbidden(self, non_participant_client, group_conversation):
        response = non_participant_client.get(messages_url(group_conversation.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "NOT_PARTICIPANT"
        assert response.data["success"] is False

    def test_deleted_conversation_404(self, owner_client, deleted_conversation):
        response = owner_client.get(messages_url(deleted_conversation.id))

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestMessageCreate:
    """POST /conversations/{id}/messages/"""

    def test_send_now(self, member_client, group_conversation, member_user):
        response = member_client.post(
            messages_url(group_conversation.id), {"content": "Hello"}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["content"] == "Hello"
        assert response.data["is_delivered"] is True
        assert response.data["sender"]["id"] == member_user.id
        group_conversation.refresh_from_db()
        assert group_conversation.latest_message_id == response.data["id"]

    def test_schedule_for_later(self, member_client, group_conversation):
        when = timezone.now() + timedelta(hours=2)

        response = member_client.post(
            messages_url(group_conversation.id),
            {"content": "Later", "scheduled_for": when.isoformat()},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["is_delivered"] is False
        assert response.data["scheduled_for"] is not None
        group_conversation.refresh_from_db()
        assert group_conversation.latest_message_id is None

    def test_past_schedule_delivers_immediately(self, member_client, group_conversation):
        when = timezone.now() - timedelta(minutes=5)

        response = member_client.post(
            messages_url(group_conversation.id),
            {"content": "Late", "scheduled_for": when.isoformat()},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["is_delivered"] is True

    def test_push_queued_on_commit_for_immediate_send(
        self, member_client, group_conversation, django_capture_on_commit_callbacks
    ):
        with patch("chat.fanout.FanoutService.publish_message") as publish:
            with django_capture_on_commit_callbacks(execute=True):
                response = member_client.post(
                    messages_url(group_conversation.id), {"content": "Hi"}, format="json"
                )

        assert response.status_code == status.HTTP_201_CREATED
        publish.assert_called_once()
        assert publish.call_args.args[0].id == response.data["id"]

    @pytest.mark.parametrize("content", ["", "   "])
    def test_empty_content_rejected(self, member_client, group_conversation, content):
        response = member_client.post(
            messages_url(group_conversation.id), {"content": content}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "EMPTY_CONTENT"
        assert not Message.objects.exists()

    def test_unknown_conversation(self, member_client):
        response = member_client.post(messages_url(999999), {"content": "Hi"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "CONVERSATION_NOT_FOUND"

    def test_non_participant_forbidden(self, non_participant_client, group_conversation):
        response = non_participant_client.post(
            messages_url(group_conversation.id), {"content": "Hi"}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "NOT_PARTICIPANT"

    def test_invalid_schedule_value(self, member_client, group_conversation):
        response = member_client.post(
            messages_url(group_conversation.id),
            {"content": "Hi", "scheduled_for": "next tuesday"},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "scheduled_for" in response.data


class TestScheduledMessages:
    """GET /messages/scheduled/"""

    def test_user_sees_own_pending_messages_soonest_first(
        self, member_client, group_conversation, member_user, owner_user
    ):
        later = ScheduledMessageFactory(
            conversation=group_conversation,
            sender=member_user,
            scheduled_for=timezone.now() + timedelta(hours=3),
        )
        sooner = ScheduledMessageFactory(
            conversation=group_conversation,
            sender=member_user,
            scheduled_for=timezone.now() + timedelta(hours=1),
        )
        ScheduledMessageFactory(conversation=group_conversation, sender=owner_user)
        MessageFactory(conversation=group_conversation, sender=member_user)

        response = member_client.get(f"{BASE_URL}/messages/scheduled/")

        assert response.status_code == status.HTTP_200_OK
        assert [m["id"] for m in response.data["results"]] == [sooner.id, later.id]

    def test_staff_sees_whole_queue(
        self, authenticated_client_factory, group_conversation, member_user, owner_user
    ):
        staff_client = authenticated_client_factory(UserFactory(is_staff=True))
        ScheduledMessageFactory(conversation=group_conversation, sender=member_user)
        ScheduledMessageFactory(conversation=group_conversation, sender=owner_user)

        response = staff_client.get(f"{BASE_URL}/messages/scheduled/")

        assert len(response.data["results"]) == 2


class TestTranslate:
    """POST /messages/translate/"""

    def test_fallback_translation(self, member_client, settings):
        settings.CHAT_TRANSLATION_PROVIDER = ""

        response = member_client.post(
            f"{BASE_URL}/messages/translate/",
            {"content": "Hello", "target_language": "Spanish"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"translated_text": "hola"}

    def test_missing_language_rejected(self, member_client):
        response = member_client.post(
            f"{BASE_URL}/messages/translate/", {"content": "Hello"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "target_language" in response.data

    def test_requires_authentication(self, api_client):
        response = api_client.post(
            f"{BASE_URL}/messages/translate/",
            {"content": "Hello", "target_language": "Spanish"},
            format="json",
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_conversation_model_untouched_by_reads(member_client, group_conversation):
    before = Conversation.objects.get(pk=group_conversation.pk).updated_at

    member_client.get(conversation_url(group_conversation.id))

    assert Conversation.objects.get(pk=group_conversation.pk).updated_at == before
