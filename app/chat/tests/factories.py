"""
factory_boy factories for chat models.

    GroupConversationFactory(created_by=owner, members=[a, b])
    DirectConversationFactory(user1=alice, user2=bob)
    ScheduledMessageFactory(conversation=conv, sender=alice)

Factories write rows only. They do not maintain latest_message or run any
service rules; go through chat.services when a test depends on those.
"""

from datetime import timedelta

import factory
from django.utils import timezone

from authentication.tests.factories import UserFactory
from chat.models import (
    Conversation,
    ConversationType,
    DirectConversationPair,
    Message,
    Participant,
    ParticipantRole,
)


class ConversationFactory(factory.django.DjangoModelFactory):
    """A group row with nobody in it."""

    class Meta:
        model = Conversation

    conversation_type = ConversationType.GROUP
    title = factory.Sequence(lambda n: f"Group Chat {n}")
    created_by = factory.SubFactory(UserFactory)
    participant_count = 0


class ParticipantFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Participant

    conversation = factory.SubFactory(ConversationFactory)
    user = factory.SubFactory(UserFactory)
    role = ParticipantRole.MEMBER


class GroupConversationFactory(ConversationFactory):
    """created_by joins as owner; every user in members joins as a member."""

    class Meta:
        model = Conversation
        skip_postgeneration_save = True

    @factory.post_generation
    def members(self, create, extracted, **kwargs):
        if not create:
            return
        members = list(extracted or [])
        ParticipantFactory(conversation=self, user=self.created_by, role=ParticipantRole.OWNER)
        for user in members:
            ParticipantFactory(conversation=self, user=user, role=ParticipantRole.MEMBER)
        self.participant_count = 1 + len(members)
        self.save(update_fields=["participant_count"])


class DirectConversationFactory(factory.django.DjangoModelFactory):
    """Direct conversation with its pair row and two role-less participants."""

    class Meta:
        model = Conversation

    conversation_type = ConversationType.DIRECT
    title = ""
    created_by = None
    participant_count = 2

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        users = sorted(
            (kwargs.pop("user1", None) or UserFactory(), kwargs.pop("user2", None) or UserFactory()),
            key=lambda user: user.id,
        )
        conversation = super()._create(model_class, *args, **kwargs)
        DirectConversationPair.objects.create(
            conversation=conversation, user_lower=users[0], user_higher=users[1]
        )
        for user in users:
            ParticipantFactory(conversation=conversation, user=user, role=None)
        return conversation


class MessageFactory(factory.django.DjangoModelFactory):
    """Delivered message."""

    class Meta:
        model = Message

    conversation = factory.SubFactory(GroupConversationFactory)
    sender = factory.SubFactory(UserFactory)
    content = factory.Faker("sentence", nb_words=6)
    scheduled_for = None


class ScheduledMessageFactory(MessageFactory):
    """Pending message, due an hour from now unless scheduled_for is given."""

    scheduled_for = factory.LazyFunction(lambda: timezone.now() + timedelta(hours=1))
