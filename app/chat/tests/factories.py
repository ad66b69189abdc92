"""
Factory Boy factories for chat models.

Provides test data generation for:
- Room: Public and private rooms
- Membership: User x Room
- Message: Room messages
- DirectMessage: Messages between two users

Usage:
    from chat.tests.factories import RoomFactory, MembershipFactory, MessageFactory

    room = RoomFactory(created_by=user)
    MembershipFactory(room=room, user=other)
    message = MessageFactory(room=room, author=other)
"""

import factory

from authentication.tests.factories import UserFactory
from chat.models import DirectMessage, Membership, Message, Room


class RoomFactory(factory.django.DjangoModelFactory):
    """
    Factory for Room model.

    The creator's membership is NOT created here; use RoomService or
    MembershipFactory when the test needs it.

    Examples:
        room = RoomFactory()
        private = RoomFactory(is_private=True)
    """

    class Meta:
        model = Room

    name = factory.Sequence(lambda n: f"room-{n}")
    description = factory.Faker("sentence", nb_words=6)
    is_private = False
    created_by = factory.SubFactory(UserFactory)


class MembershipFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Membership

    user = factory.SubFactory(UserFactory)
    room = factory.SubFactory(RoomFactory)


class MessageFactory(factory.django.DjangoModelFactory):
    """
    Factory for room messages.

    Does not create the author's membership.
    """

    class Meta:
        model = Message

    room = factory.SubFactory(RoomFactory)
    author = factory.SubFactory(UserFactory)
    content = factory.Sequence(lambda n: f"Message number {n}")


class DirectMessageFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = DirectMessage

    sender = factory.SubFactory(UserFactory)
    receiver = factory.SubFactory(UserFactory)
    content = factory.Sequence(lambda n: f"Direct message {n}")
