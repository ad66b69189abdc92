"""
Tests for authentication API endpoints.

Test Organization:
    TestRegisterView: POST /api/v1/auth/register/
    TestTokenObtain: POST /api/v1/auth/token/
    TestMeView: GET/PATCH /api/v1/auth/me/
    TestLogoutView: POST /api/v1/auth/logout/
    TestUserDirectoryViews: /api/v1/auth/users/...
"""

from unittest.mock import patch

import pytest
from asgiref.sync import async_to_sync
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis

from authentication.models import User, UserStatus
from authentication.services import TokenService
from authentication.tests.factories import UserFactory
from chat.presence import PresenceStore
from chat.tests.factories import MembershipFactory, RoomFactory


@pytest.mark.django_db
class TestRegisterView:
    """Tests for the registration endpoint."""

    url = "/api/v1/auth/register/"

    def test_register_returns_tokens(self, api_client):
        response = api_client.post(
            self.url,
            {"email": "dave@example.com", "username": "dave", "password": "S3cure-pass!"},
            format="json",
        )

        assert response.status_code == 201
        assert response.data["access"]
        assert response.data["refresh"]
        assert response.data["user"]["username"] == "dave"
        assert User.objects.filter(email="dave@example.com").exists()

    def test_duplicate_username_is_400(self, api_client, user):
        response = api_client.post(
            self.url,
            {"email": "dup@example.com", "username": "alice", "password": "S3cure-pass!"},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error_code"] == "USERNAME_TAKEN"


@pytest.mark.django_db
class TestTokenObtain:
    """Tests for the simplejwt token endpoint with email login."""

    def test_obtain_pair_with_email(self, api_client, user):
        response = api_client.post(
            "/api/v1/auth/token/",
            {"email": user.email, "password": "TestPass123!"},
            format="json",
        )

        assert response.status_code == 200
        assert "access" in response.data

    def test_wrong_password(self, api_client, user):
        response = api_client.post(
            "/api/v1/auth/token/",
            {"email": user.email, "password": "nope"},
            format="json",
        )

        assert response.status_code == 401


@pytest.mark.django_db
class TestMeView:
    """Tests for the current-user endpoint."""

    url = "/api/v1/auth/me/"

    def test_requires_authentication(self, api_client):
        assert api_client.get(self.url).status_code == 401

    def test_get_returns_own_account(self, authenticated_client, user):
        response = authenticated_client.get(self.url)

        assert response.status_code == 200
        assert response.data["email"] == user.email

    def test_patch_broadcasts_profile_update_to_member_rooms(
        self, authenticated_client, user
    ):
        """
        Verify a profile change is pushed to the user's rooms.

        Why it matters: other members render the display name from the
        socket event without refetching.
        """
        membership = MembershipFactory(user=user)

        with patch("chat.broadcaster.notify_rooms") as notify:
            response = authenticated_client.patch(
                self.url, {"username": "alice_new", "bio": "hello"}, format="json"
            )

        assert response.status_code == 200
        assert response.data["username"] == "alice_new"
        notify.assert_called_once()
        room_ids, event, payload = notify.call_args.args
        assert list(room_ids) == [membership.room_id]
        assert event == "user_profile_updated"
        assert payload == {"userId": str(user.id), "username": "alice_new", "bio": "hello"}

    def test_patch_rejects_taken_username(self, authenticated_client, other_user):
        response = authenticated_client.patch(
            self.url, {"username": "bob"}, format="json"
        )

        assert response.status_code == 400
        assert response.data["error_code"] == "USERNAME_TAKEN"


@pytest.fixture
def fake_presence(monkeypatch):
    """
    Point PresenceStore.from_settings() at an in-process Redis.

    Returns a helper running one coroutine against a fresh store.
    """
    server = FakeServer()

    def from_settings(cls):
        return cls(FakeRedis(server=server, decode_responses=True))

    monkeypatch.setattr(PresenceStore, "from_settings", classmethod(from_settings))

    def using_store(operation):
        async def scenario():
            store = PresenceStore.from_settings()
            try:
                return await operation(store)
            finally:
                await store.close()

        return async_to_sync(scenario)()

    return using_store


@pytest.mark.django_db
class TestLogoutView:
    """Tests for the logout endpoint."""

    url = "/api/v1/auth/logout/"

    def test_requires_authentication(self, api_client):
        assert api_client.post(self.url).status_code == 401

    def test_logout_goes_offline_everywhere(
        self, authenticated_client, user, fake_presence
    ):
        """
        Verify logout persists OFFLINE, purges presence and tells rooms.

        Why it matters: Without it the user stays listed as online until
        every socket heartbeat expires.
        """
        membership = MembershipFactory(user=user)
        User.objects.filter(pk=user.pk).update(status=UserStatus.ONLINE)

        async def go_online(store):
            await store.set_online(user.id, "conn.alice")
            await store.add_user_to_room(user.id, membership.room_id, "conn.alice")

        async def leftovers(store):
            return (
                await store.get_registered_connection_ids(user.id),
                await store.get_users_in_room(membership.room_id),
                await store.get_status(user.id),
            )

        fake_presence(go_online)
        with patch("chat.broadcaster.notify_rooms") as notify:
            response = authenticated_client.post(self.url, {}, format="json")
        connections, present, presence_status = fake_presence(leftovers)

        assert response.status_code == 204
        user.refresh_from_db()
        assert user.status == UserStatus.OFFLINE
        assert connections == set()
        assert present == set()
        assert presence_status == "OFFLINE"
        room_ids, event, payload = notify.call_args.args
        assert list(room_ids) == [membership.room_id]
        assert event == "user_status_changed"
        assert payload == {"userId": str(user.id), "status": "OFFLINE"}

    def test_refresh_token_is_blacklisted(
        self, api_client, authenticated_client, user, fake_presence
    ):
        refresh = TokenService.issue(user)["refresh"]

        with patch("chat.broadcaster.notify_rooms"):
            response = authenticated_client.post(
                self.url, {"refresh": refresh}, format="json"
            )
        reuse = api_client.post(
            "/api/v1/auth/token/refresh/", {"refresh": refresh}, format="json"
        )

        assert response.status_code == 204
        assert reuse.status_code == 401

    def test_invalid_refresh_token_is_400(self, authenticated_client, user, fake_presence):
        with patch("chat.broadcaster.notify_rooms") as notify:
            response = authenticated_client.post(
                self.url, {"refresh": "garbage"}, format="json"
            )

        assert response.status_code == 400
        assert response.data["error_code"] == "INVALID_TOKEN"
        notify.assert_not_called()


@pytest.mark.django_db
class TestUserDirectoryViews:
    """Tests for online users, user search and public profiles."""

    def test_online_users(self, authenticated_client, user):
        UserFactory(username="carol", status=UserStatus.ONLINE)
        UserFactory(username="dave", status=UserStatus.OFFLINE)

        response = authenticated_client.get("/api/v1/auth/users/online/")

        assert response.status_code == 200
        assert [u["username"] for u in response.data] == ["carol"]
        assert "email" not in response.data[0]

    def test_search(self, authenticated_client, user, other_user):
        response = authenticated_client.get("/api/v1/auth/users/search/", {"q": "o"})

        assert response.status_code == 200
        assert [u["username"] for u in response.data] == ["bob"]

    def test_search_requires_query(self, authenticated_client):
        response = authenticated_client.get("/api/v1/auth/users/search/")

        assert response.status_code == 400

    def test_profile(self, authenticated_client, other_user):
        room = RoomFactory(name="lobby", created_by=other_user)
        MembershipFactory(user=other_user, room=room)

        response = authenticated_client.get(f"/api/v1/auth/users/{other_user.id}/")

        assert response.status_code == 200
        assert response.data["username"] == "bob"
        assert response.data["stats"] == {
            "message_count": 0,
            "rooms_created": 1,
            "rooms_joined": 1,
        }
        assert response.data["rooms"] == [
            {"id": str(room.id), "name": "lobby", "is_private": False}
        ]
        assert "email" not in response.data

    def test_unknown_profile_is_404(self, authenticated_client):
        response = authenticated_client.get(
            "/api/v1/auth/users/00000000-0000-0000-0000-000000000000/"
        )

        assert response.status_code == 404
        assert response.data["error_code"] == "USER_NOT_FOUND"
