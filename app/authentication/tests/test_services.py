"""
Tests for authentication services.

Test Organization:
    TestTokenService: JWT issue/verify used by the socket handshake
    TestRegister: Account creation rules
    TestUpdateProfile: Display name and bio updates
    TestUpdateStatus: Persisted presence status
    TestRevokeToken: Refresh token blacklisting
    TestDirectory: Online users, search and profiles
"""

import pytest
from freezegun import freeze_time
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken, RefreshToken

from authentication.models import User, UserStatus
from authentication.services import Identity, TokenService, UserService
from authentication.tests.factories import UserFactory
from chat.tests.factories import MembershipFactory, MessageFactory, RoomFactory


@pytest.mark.django_db
class TestTokenService:
    """Tests for TokenService.issue() and TokenService.verify()."""

    def test_issued_access_token_verifies_to_identity(self, user):
        """
        Verify a freshly issued token resolves to the user's identity.

        Why it matters: the socket handshake relies on this round trip.
        """
        tokens = TokenService.issue(user)

        identity = TokenService.verify(tokens["access"])

        assert identity == Identity(user_id=user.id, username="alice")

    def test_missing_token_is_rejected(self):
        assert TokenService.verify(None) is None
        assert TokenService.verify("") is None

    def test_garbage_token_is_rejected(self):
        assert TokenService.verify("not-a-jwt") is None

    def test_inactive_user_is_rejected(self, user):
        token = str(AccessToken.for_user(user))
        user.is_active = False
        user.save()

        assert TokenService.verify(token) is None

    def test_deleted_user_is_rejected(self, user):
        token = str(AccessToken.for_user(user))
        user.delete()

        assert TokenService.verify(token) is None

    def test_expired_token_is_rejected(self, user):
        with freeze_time("2026-01-01 12:00:00"):
            token = str(AccessToken.for_user(user))

        with freeze_time("2026-01-02 12:00:00"):
            assert TokenService.verify(token) is None

    def test_identity_payload_uses_string_ids(self, user):
        payload = Identity.from_user(user).to_payload()

        assert payload == {"userId": str(user.id), "username": "alice"}


@pytest.mark.django_db
class TestRegister:
    """Tests for UserService.register()."""

    def test_creates_user_with_hashed_password(self):
        result = UserService.register("carol@example.com", "carol", "S3cure-pass!")

        assert result.success
        assert result.data.check_password("S3cure-pass!")
        assert result.data.status == UserStatus.OFFLINE

    def test_username_taken_case_insensitive(self, user):
        result = UserService.register("other@example.com", "ALICE", "S3cure-pass!")

        assert not result.success
        assert result.error_code == "USERNAME_TAKEN"

    def test_email_taken(self, user):
        result = UserService.register(user.email, "someone", "S3cure-pass!")

        assert result.error_code == "EMAIL_TAKEN"

    @pytest.mark.parametrize("username", ["ab", "has space", "x" * 31, "bad!char"])
    def test_invalid_username_format(self, username):
        result = UserService.register("new@example.com", username, "S3cure-pass!")

        assert result.error_code == "INVALID_USERNAME"
        assert not User.objects.filter(email="new@example.com").exists()


@pytest.mark.django_db
class TestUpdateProfile:
    """Tests for UserService.update_profile()."""

    def test_updates_username_and_bio(self, user):
        result = UserService.update_profile(user, username="alice_2", bio="  hi  ")

        user.refresh_from_db()
        assert result.success
        assert user.username == "alice_2"
        assert user.bio == "hi"

    def test_rejects_username_held_by_other_user(self, user, other_user):
        result = UserService.update_profile(user, username="Bob")

        user.refresh_from_db()
        assert result.error_code == "USERNAME_TAKEN"
        assert user.username == "alice"

    def test_same_username_different_case_is_allowed_for_self(self, user):
        result = UserService.update_profile(user, username="Alice")

        assert result.success


@pytest.mark.django_db
class TestUpdateStatus:
    """Tests for UserService.update_status()."""

    @freeze_time("2026-03-01 10:00:00")
    def test_persists_status_and_last_seen(self, user):
        result = UserService.update_status(user.id, UserStatus.AWAY)

        user.refresh_from_db()
        assert result.success
        assert user.status == UserStatus.AWAY
        assert user.last_seen.isoformat() == "2026-03-01T10:00:00+00:00"

    def test_rejects_unknown_status(self, user):
        result = UserService.update_status(user.id, "BUSY")

        user.refresh_from_db()
        assert result.error_code == "INVALID_STATUS"
        assert user.status == UserStatus.OFFLINE

    def test_unknown_user(self):
        result = UserService.update_status(UserFactory.build().id, UserStatus.ONLINE)

        assert result.error_code == "USER_NOT_FOUND"

    def test_mark_online_then_offline(self, user):
        UserService.mark_online(user.id)
        user.refresh_from_db()
        assert user.status == UserStatus.ONLINE

        UserService.mark_offline(user.id)
        user.refresh_from_db()
        assert user.status == UserStatus.OFFLINE


@pytest.mark.django_db
class TestRevokeToken:
    """Tests for refresh token blacklisting on logout."""

    def test_revoked_token_cannot_be_reused(self, user):
        refresh = TokenService.issue(user)["refresh"]

        assert TokenService.revoke(refresh, user).success
        with pytest.raises(TokenError):
            RefreshToken(refresh)

    def test_second_revoke_is_invalid(self, user):
        refresh = TokenService.issue(user)["refresh"]
        TokenService.revoke(refresh, user)

        assert TokenService.revoke(refresh, user).error_code == "INVALID_TOKEN"

    def test_cannot_revoke_someone_elses_token(self, user, other_user):
        refresh = TokenService.issue(other_user)["refresh"]

        assert TokenService.revoke(refresh, user).error_code == "INVALID_TOKEN"
        RefreshToken(refresh)

    def test_garbage(self, user):
        assert TokenService.revoke("not-a-token", user).error_code == "INVALID_TOKEN"


@pytest.mark.django_db
class TestDirectory:
    """Online list, username search and public profiles."""

    def test_online_users_by_username(self):
        UserFactory(username="zed", status=UserStatus.ONLINE)
        UserFactory(username="amy", status=UserStatus.ONLINE)
        UserFactory(username="away_one", status=UserStatus.AWAY)
        UserFactory(username="gone", status=UserStatus.ONLINE, is_active=False)

        names = [u.username for u in UserService.online_users()]

        assert names == ["amy", "zed"]

    def test_search_excludes_caller_and_is_case_insensitive(self, user):
        UserFactory(username="Alicia")
        UserFactory(username="bob")

        names = [u.username for u in UserService.search_users("ALI", exclude_user_id=user.id)]

        assert names == ["Alicia"]

    def test_search_is_capped(self):
        for n in range(UserService.SEARCH_LIMIT + 3):
            UserFactory(username=f"member_{n:02d}")

        assert len(UserService.search_users("member")) == UserService.SEARCH_LIMIT

    def test_blank_search(self, user):
        assert UserService.search_users("   ") == []

    def test_profile_counts_and_visible_rooms(self, user, other_user):
        public = RoomFactory(name="lobby", created_by=user)
        secret = RoomFactory(name="secret", created_by=user, is_private=True)
        shared = RoomFactory(name="shared", is_private=True)
        for room in (public, secret, shared):
            MembershipFactory(user=user, room=room)
        MembershipFactory(user=other_user, room=shared)
        MessageFactory(author=user, room=public)
        MessageFactory(author=user, room=public)

        result = UserService.get_profile(str(user.id), viewer=other_user)

        profile = result.data
        assert profile.user == user
        assert profile.message_count == 2
        assert profile.rooms_created == 2
        assert profile.rooms_joined == 3
        assert [room.name for room in profile.rooms] == ["lobby", "shared"]

    def test_profile_of_unknown_user(self, user):
        result = UserService.get_profile(UserFactory.build().id, viewer=user)

        assert result.error_code == "USER_NOT_FOUND"

    def test_profile_with_malformed_id(self, user):
        assert UserService.get_profile("nope", viewer=user).error_code == "USER_NOT_FOUND"
