"""
Tests for SoftDeleteMixin in core/model_mixins.py.

This module tests:
- soft_delete() method sets is_deleted and deleted_at
- restore() method clears is_deleted and deleted_at
- Idempotency of soft_delete and restore

Conversation is the soft-deletable model used as the subject.
"""

import pytest
from django.utils import timezone

from chat.models import Conversation, Message
from chat.tests.factories import ConversationFactory, MessageFactory


@pytest.fixture
def conversation(db):
    return ConversationFactory(title="Soft delete subject")


# =============================================================================
# soft_delete() Tests
# =============================================================================


@pytest.mark.django_db
class TestSoftDelete:
    """Tests for soft_delete() method."""

    def test_soft_delete_sets_flag_and_timestamp(self, conversation):
        """
        soft_delete should set is_deleted and deleted_at.

        Why it matters: Deleted conversations are hidden from every chat
        query by the is_deleted filter.
        """
        before = timezone.now()
        conversation.soft_delete()
        after = timezone.now()

        assert conversation.is_deleted is True
        assert before <= conversation.deleted_at <= after

    def test_soft_delete_persists_to_database(self, conversation):
        conversation.soft_delete()

        conversation.refresh_from_db()

        assert conversation.is_deleted is True
        assert conversation.deleted_at is not None

    def test_soft_delete_is_idempotent(self, conversation):
        """
        Calling soft_delete twice keeps the original deleted_at.

        Why it matters: The last participant leaving and a later cleanup
        must not rewrite when the conversation actually went away.
        """
        conversation.soft_delete()
        first_deleted_at = conversation.deleted_at

        conversation.soft_delete()

        assert conversation.deleted_at == first_deleted_at

    def test_soft_delete_keeps_messages(self, conversation):
        message = MessageFactory(conversation=conversation)

        conversation.soft_delete()

        assert Message.objects.filter(pk=message.pk).exists()


# =============================================================================
# restore() Tests
# =============================================================================


@pytest.mark.django_db
class TestRestore:
    """Tests for restore() method."""

    def test_restore_clears_flag_and_timestamp(self, conversation):
        conversation.soft_delete()

        conversation.restore()
        conversation.refresh_from_db()

        assert conversation.is_deleted is False
        assert conversation.deleted_at is None

    def test_restore_on_live_record_is_noop(self, conversation):
        updated_at = conversation.updated_at

        conversation.restore()

        conversation.refresh_from_db()
        assert conversation.updated_at == updated_at
