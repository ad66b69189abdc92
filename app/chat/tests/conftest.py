"""
Test configuration and fixtures for chat tests.

This module provides:
- Users, a room with both users as members, API clients
- A PresenceStore over fakeredis
- RecordingBroadcaster: captures what the router sends, per recipient

Usage:
    def test_example(room, alice_client):
        response = alice_client.get(f"/api/v1/chat/rooms/{room.id}/")
        assert response.status_code == 200
"""

import pytest
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.services import Identity
from authentication.tests.factories import UserFactory
from chat.broadcaster import excluded_channels, room_group
from chat.presence import PresenceStore
from chat.tests.factories import MembershipFactory, RoomFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    return UserFactory(username="alice")


@pytest.fixture
def bob(db):
    return UserFactory(username="bob")


@pytest.fixture
def carol(db):
    """A user outside the test room."""
    return UserFactory(username="carol")


@pytest.fixture
def alice_identity(alice):
    return Identity.from_user(alice)


@pytest.fixture
def bob_identity(bob):
    return Identity.from_user(bob)


@pytest.fixture
def carol_identity(carol):
    return Identity.from_user(carol)


# =============================================================================
# Room Fixtures
# =============================================================================


@pytest.fixture
def room(alice, bob):
    """Public room created by alice, with alice and bob as members."""
    room = RoomFactory(name="general", created_by=alice)
    MembershipFactory(room=room, user=alice)
    MembershipFactory(room=room, user=bob)
    return room


@pytest.fixture
def private_room(alice):
    """Private room with alice as its only member."""
    room = RoomFactory(name="secret", created_by=alice, is_private=True)
    MembershipFactory(room=room, user=alice)
    return room


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


def _client_for(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


@pytest.fixture
def alice_client(alice):
    return _client_for(alice)


@pytest.fixture
def bob_client(bob):
    return _client_for(bob)


@pytest.fixture
def carol_client(carol):
    return _client_for(carol)


# =============================================================================
# Presence and Delivery Fixtures
# =============================================================================


@pytest.fixture
def redis_server():
    """In-process Redis shared by every client created in one test."""
    return FakeServer()


@pytest.fixture
def presence(redis_server):
    """
    PresenceStore over fakeredis.

    The client binds to the event loop of its first command, so each test
    drives it from a single loop.
    """
    return PresenceStore(FakeRedis(server=redis_server, decode_responses=True))


class RecordingBroadcaster:
    """
    Broadcaster double that resolves groups in memory.

    ``delivered`` maps connection id -> list of (event, payload) actually
    received, applying group membership and ``exclude`` the same way the
    channel layer and ChatConsumer do.
    """

    def __init__(self):
        self.groups: dict[str, set[str]] = {}
        self.delivered: dict[str, list[tuple[str, object]]] = {}
        self.sent: list[tuple[str, str, object]] = []

    async def send_to_connection(self, connection_id, event, payload):
        self.sent.append((connection_id, event, payload))
        self.delivered.setdefault(connection_id, []).append((event, payload))

    async def send_to_room(self, room_id, event, payload, exclude=None):
        await self.send_to_group(room_group(room_id), event, payload, exclude)

    async def send_to_group(self, group, event, payload, exclude=None):
        self.sent.append((group, event, payload))
        skipped = excluded_channels(exclude)
        for connection_id in sorted(self.groups.get(group, set())):
            if connection_id in skipped:
                continue
            self.delivered.setdefault(connection_id, []).append((event, payload))

    async def join_group(self, connection_id, group):
        self.groups.setdefault(group, set()).add(connection_id)

    async def leave_group(self, connection_id, group):
        self.groups.get(group, set()).discard(connection_id)

    async def fetch_present_connections(self, room_id):
        return set(self.groups.get(room_group(room_id), set()))

    def events_for(self, connection_id, event=None):
        received = self.delivered.get(connection_id, [])
        if event is None:
            return received
        return [payload for name, payload in received if name == event]

    def event_names_for(self, connection_id):
        return [name for name, _ in self.delivered.get(connection_id, [])]


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()
