"""
Tests for the chat WebSocket consumer and its JWT middleware.

Covers:
- Authentication: query string and subprotocol tokens, 4001 rejection
- session_ready on connect
- message_delivered pushes from the REST send path and the delivery reconciler
- Conversation join/leave and typing indicators with origin exclusion
- Rejected client frames

Connections go through JWTAuthMiddleware and the real URL router, backed by
a fresh in-memory channel layer.
"""

import asyncio
from datetime import timedelta

import pytest
from asgiref.sync import sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.utils import timezone
from rest_framework_simplejwt.tokens import AccessToken

from authentication.tests.factories import UserFactory
from chat.apps import get_fanout
from chat.constants import PUSH_CONFIG
from chat.delivery import DeliveryReconciler
from chat.middleware import JWTAuthMiddleware
from chat.routing import websocket_urlpatterns
from chat.services import MessageService

pytestmark = [pytest.mark.asyncio, pytest.mark.django_db(transaction=True)]


@pytest.fixture
def application(channel_layer):
    return JWTAuthMiddleware(URLRouter(websocket_urlpatterns))


@pytest.fixture
def tokens(owner_user, admin_user, member_user, non_participant_user):
    """Access tokens by role, issued before the event loop starts."""
    return {
        "owner": str(AccessToken.for_user(owner_user)),
        "admin": str(AccessToken.for_user(admin_user)),
        "member": str(AccessToken.for_user(member_user)),
        "outsider": str(AccessToken.for_user(non_participant_user)),
    }


@pytest.fixture
def deactivated_chat_user_token(db):
    user = UserFactory(is_active=False)
    return str(AccessToken.for_user(user))


@pytest.fixture
def anonymous_token():
    """Validly signed access token that names no user."""
    return str(AccessToken())

async def connect(application, token):
    communicator = WebsocketCommunicator(application, f"/ws/chat/?token={token}")
    connected, _ = await communicator.connect()
    assert connected
    ready = await communicator.receive_json_from()
    assert ready == {"type": "session_ready"}
    return communicator


class TestAuthentication:
    """Connection authentication via JWTAuthMiddleware."""

    async def test_missing_token_closed_with_4001(self, application):
        communicator = WebsocketCommunicator(application, "/ws/chat/")

        connected, code = await communicator.connect()

        assert not connected
        assert code == PUSH_CONFIG.CLOSE_UNAUTHENTICATED

    async def test_invalid_token_closed_with_4001(self, application):
        communicator = WebsocketCommunicator(application, "/ws/chat/?token=not-a-jwt")

        connected, code = await communicator.connect()

        assert not connected
        assert code == PUSH_CONFIG.CLOSE_UNAUTHENTICATED

    async def test_token_without_user_claim_closed_with_4001(self, application, anonymous_token):
        communicator = WebsocketCommunicator(application, f"/ws/chat/?token={anonymous_token}")

        connected, code = await communicator.connect()

        assert not connected
        assert code == PUSH_CONFIG.CLOSE_UNAUTHENTICATED

    async def test_inactive_user_rejected(self, application, deactivated_chat_user_token):
        communicator = WebsocketCommunicator(
            application, f"/ws/chat/?token={deactivated_chat_user_token}"
        )

        connected, code = await communicator.connect()

        assert not connected
        assert code == PUSH_CONFIG.CLOSE_UNAUTHENTICATED

    async def test_query_token_gets_session_ready(self, application, tokens):
        communicator = await connect(application, tokens["member"])

        await communicator.disconnect()

    async def test_subprotocol_token_accepted_with_jwt_protocol(self, application, tokens):
        communicator = WebsocketCommunicator(
            application, "/ws/chat/", subprotocols=["jwt", tokens["member"]]
        )

        connected, subprotocol = await communicator.connect()

        assert connected
        assert subprotocol == "jwt"
        assert await communicator.receive_json_from() == {"type": "session_ready"}
        await communicator.disconnect()


class TestMessagePush:
    """message_delivered events reach other participants."""

    async def test_sent_message_pushed_to_recipients_not_sender(
        self, application, tokens, group_conversation, owner_user
    ):
        """
        A delivered message reaches every other participant's connection.

        Why it matters: This is the live path; the sender already has the
        message from the REST response and must not get a duplicate.
        """
        sender = await connect(application, tokens["owner"])
        recipient = await connect(application, tokens["member"])

        result = await sync_to_async(MessageService.submit_message)(
            sender=owner_user,
            conversation_id=group_conversation.id,
            content="Hello over the wire",
            fanout=get_fanout(),
        )

        event = await recipient.receive_json_from(timeout=1)
        assert event["type"] == "message_delivered"
        assert event["message"]["id"] == result.data.id
        assert event["message"]["content"] == "Hello over the wire"
        assert await sender.receive_nothing()

        await sender.disconnect()
        await recipient.disconnect()

    async def test_scheduled_message_not_pushed_on_submit(
        self, application, tokens, group_conversation, owner_user
    ):
        recipient = await connect(application, tokens["member"])

        await sync_to_async(MessageService.submit_message)(
            sender=owner_user,
            conversation_id=group_conversation.id,
            content="Later",
            scheduled_for=timezone.now() + timedelta(hours=1),
            fanout=get_fanout(),
        )

        assert await recipient.receive_nothing()
        await recipient.disconnect()

    async def test_every_connection_of_recipient_receives(
        self, application, tokens, group_conversation, owner_user
    ):
        phone = await connect(application, tokens["member"])
        laptop = await connect(application, tokens["member"])

        await sync_to_async(MessageService.submit_message)(
            sender=owner_user,
            conversation_id=group_conversation.id,
            content="Both devices",
            fanout=get_fanout(),
        )

        for communicator in (phone, laptop):
            event = await communicator.receive_json_from(timeout=1)
            assert event["message"]["content"] == "Both devices"
            await communicator.disconnect()


class TestScheduledDelivery:
    """Scheduled messages reaching a live connection through the reconciler."""

    async def test_due_message_pushed_once_across_overlapping_ticks(
        self, application, tokens, group_conversation, owner_user
    ):
        """
        The reconciler pushes a due message exactly once over the socket.

        Why it matters: Two ticks that both saw the message as due must not
        deliver it twice. The second one finds the row already promoted and
        skips it.
        """
        recipient = await connect(application, tokens["member"])
        now = timezone.now()
        submitted = await sync_to_async(MessageService.submit_message)(
            sender=owner_user,
            conversation_id=group_conversation.id,
            content="See you in a minute",
            scheduled_for=now + timedelta(seconds=60),
            fanout=get_fanout(),
        )
        assert await recipient.receive_nothing()

        reconciler = DeliveryReconciler(fanout=get_fanout())
        later = now + timedelta(seconds=70)
        stale_ids = await sync_to_async(reconciler.due_ids)(later)

        first = await sync_to_async(reconciler.run_tick)(later)
        second = await sync_to_async(reconciler.run_tick)(later)
        late_promotion = await sync_to_async(reconciler.promote)(stale_ids[0], later)

        assert stale_ids == [submitted.data.id]
        assert (first.due, first.delivered) == (1, 1)
        assert second.due == 0
        assert late_promotion is None
        event = await recipient.receive_json_from(timeout=1)
        assert event["type"] == "message_delivered"
        assert event["message"]["id"] == submitted.data.id
        assert await recipient.receive_nothing()
        await recipient.disconnect()


class TestPresence:
    """Join/leave and typing indicators."""

    async def test_typing_reaches_other_connections_only(
        self, application, tokens, group_conversation, member_user
    ):
        typist = await connect(application, tokens["member"])
        watcher = await connect(application, tokens["admin"])
        for communicator in (typist, watcher):
            await communicator.send_json_to(
                {"type": "join_conversation", "conversation_id": group_conversation.id}
            )
        # Let both joins land before broadcasting
        await asyncio.sleep(0.05)

        await typist.send_json_to(
            {"type": "typing_started", "conversation_id": group_conversation.id}
        )

        event = await watcher.receive_json_from(timeout=1)
        assert event == {
            "type": "typing_started",
            "conversation_id": group_conversation.id,
            "user_id": member_user.id,
        }
        assert await typist.receive_nothing()

        await typist.disconnect()
        await watcher.disconnect()

    async def test_left_conversation_stops_typing_events(
        self, application, tokens, group_conversation
    ):
        typist = await connect(application, tokens["member"])
        watcher = await connect(application, tokens["admin"])
        for communicator in (typist, watcher):
            await communicator.send_json_to(
                {"type": "join_conversation", "conversation_id": group_conversation.id}
            )
        await watcher.send_json_to(
            {"type": "leave_conversation", "conversation_id": group_conversation.id}
        )
        await asyncio.sleep(0.05)

        await typist.send_json_to(
            {"type": "typing_stopped", "conversation_id": group_conversation.id}
        )

        assert await watcher.receive_nothing()
        await typist.disconnect()
        await watcher.disconnect()

    async def test_non_participant_cannot_join(self, application, tokens, group_conversation):
        outsider = await connect(application, tokens["outsider"])

        await outsider.send_json_to(
            {"type": "join_conversation", "conversation_id": group_conversation.id}
        )

        event = await outsider.receive_json_from(timeout=1)
        assert event["type"] == "error"
        assert event["code"] == "NOT_PARTICIPANT"
        await outsider.disconnect()

    async def test_deleted_conversation_cannot_be_joined(
        self, application, tokens, deleted_conversation
    ):
        owner = await connect(application, tokens["owner"])

        await owner.send_json_to(
            {"type": "join_conversation", "conversation_id": deleted_conversation.id}
        )

        event = await owner.receive_json_from(timeout=1)
        assert event["code"] == "NOT_PARTICIPANT"
        await owner.disconnect()


class TestInvalidFrames:
    """Frames the server rejects."""

    @pytest.mark.parametrize(
        "frame",
        [
            {"type": "send_message", "conversation_id": 1},
            {"type": "typing_started"},
            {"type": "join_conversation", "conversation_id": "abc"},
            ["not", "an", "object"],
        ],
    )
    async def test_invalid_frame_answered_with_error(self, application, tokens, frame):
        communicator = await connect(application, tokens["member"])

        await communicator.send_json_to(frame)

        event = await communicator.receive_json_from(timeout=1)
        assert event["type"] == "error"
        assert event["code"] == "INVALID_EVENT"
        await communicator.disconnect()
