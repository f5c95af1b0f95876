"""
Shared fixtures for the chat tests.

The standard cast is one group (owner_user, admin_user, member_user), one
direct conversation (owner_user and other_user), a soft-deleted group, and
an authenticated API client per user.
"""

from datetime import timedelta

import pytest
from channels.layers import channel_layers, get_channel_layer
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from authentication.tests.factories import UserFactory
from chat.models import Participant, ParticipantRole
from chat.tests.factories import (
    DirectConversationFactory,
    GroupConversationFactory,
    MessageFactory,
    ParticipantFactory,
    ScheduledMessageFactory,
)


class RecordingFanout:
    """
    Stand-in for FanoutService that remembers what it was asked to push.

    Set ``fail_with`` to an exception to make publish_message raise it.
    """

    def __init__(self):
        self.published = []
        self.fail_with = None

    def publish_message(self, message):
        if self.fail_with is not None:
            raise self.fail_with
        self.published.append(message)
        return 1

    @property
    def published_ids(self):
        return [message.id for message in self.published]


# =============================================================================
# Users
# =============================================================================
# group_conversation gives owner_user, admin_user and member_user their
# roles; other_user shares the direct conversation with owner_user.


@pytest.fixture
def owner_user(db):
    return UserFactory()


@pytest.fixture
def admin_user(db):
    return UserFactory()


@pytest.fixture
def member_user(db):
    return UserFactory()


@pytest.fixture
def other_user(db):
    return UserFactory()


@pytest.fixture
def non_participant_user(db):
    return UserFactory()


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def group_conversation(db, owner_user, admin_user, member_user):
    """
    Group titled "Test Group": owner_user owns it, admin_user is admin,
    member_user is a plain member.
    """
    conversation = GroupConversationFactory(
        created_by=owner_user,
        title="Test Group",
        members=[admin_user, member_user],
    )
    Participant.objects.filter(conversation=conversation, user=admin_user).update(
        role=ParticipantRole.ADMIN
    )
    return conversation


@pytest.fixture
def direct_conversation(db, owner_user, other_user):
    return DirectConversationFactory(user1=owner_user, user2=other_user)


@pytest.fixture
def deleted_conversation(db, owner_user, member_user):
    """Soft-deleted group whose participants never left."""
    conversation = GroupConversationFactory(
        created_by=owner_user,
        title="Deleted Group",
        members=[member_user],
    )
    conversation.soft_delete()
    return conversation


@pytest.fixture
def left_participant(db, group_conversation):
    """A fourth user who has already left the group."""
    return ParticipantFactory(
        conversation=group_conversation,
        user=UserFactory(),
        role=ParticipantRole.MEMBER,
        left_at=timezone.now(),
        left_voluntarily=True,
    )


# =============================================================================
# Message Fixtures
# =============================================================================


@pytest.fixture
def delivered_message(db, group_conversation, owner_user):
    return MessageFactory(
        conversation=group_conversation,
        sender=owner_user,
        content="Hello, this is a test message.",
    )


@pytest.fixture
def pending_message(db, group_conversation, member_user):
    """Create a message scheduled an hour from now."""
    return ScheduledMessageFactory(
        conversation=group_conversation,
        sender=member_user,
        content="Reminder: standup",
        scheduled_for=timezone.now() + timedelta(hours=1),
    )


# =============================================================================
# Push Fixtures
# =============================================================================


@pytest.fixture
def recording_fanout():
    """Fan-out double that records published messages."""
    return RecordingFanout()


@pytest.fixture
def channel_layer(settings):
    """
    Fresh in-memory channel layer for the test.

    The cached default layer is dropped before and after so groups never
    leak between tests.
    """
    settings.CHANNEL_LAYERS = {
        "default": {"BACKEND": "channels.layers.InMemoryChannelLayer"},
    }
    channel_layers.backends.clear()
    layer = get_channel_layer()
    yield layer
    channel_layers.backends.clear()


# =============================================================================
# API clients
# =============================================================================


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def authenticated_client_factory(db):
    """Returns make(user) -> APIClient carrying a Bearer access token for user."""

    def make(user):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {AccessToken.for_user(user)}")
        return client

    return make


@pytest.fixture
def owner_client(authenticated_client_factory, owner_user):
    return authenticated_client_factory(owner_user)


@pytest.fixture
def admin_client(authenticated_client_factory, admin_user):
    return authenticated_client_factory(admin_user)


@pytest.fixture
def member_client(authenticated_client_factory, member_user):
    return authenticated_client_factory(member_user)


@pytest.fixture
def other_client(authenticated_client_factory, other_user):
    return authenticated_client_factory(other_user)


@pytest.fixture
def non_participant_client(authenticated_client_factory, non_participant_user):
    return authenticated_client_factory(non_participant_user)
