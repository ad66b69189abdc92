"""
Authentication services.

This module provides:
- Identity: immutable {user_id, username} value attached to a socket once
- TokenService: issue, verify and revoke JWTs (simplejwt)
- UserService: registration, profile updates, persisted presence status
  and the user directory (online list, search, public profiles)

Related files:
    - models.py: User, UserStatus
    - chat/middleware.py: Socket handshake built on TokenService.verify()
    - chat/router.py: Status transitions on connect/disconnect

Security:
    - Tokens are signed with SIMPLE_JWT["SIGNING_KEY"]
    - Inactive users never produce an Identity
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import IntegrityError
from django.db.models import Count, Q
from django.utils import timezone
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.tokens import AccessToken, RefreshToken

from authentication.models import USERNAME_PATTERN, User, UserStatus
from core.helpers import parse_uuid
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from typing import Any

    from django.db.models import QuerySet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """
    Authenticated principal of a socket connection.

    Built once during the handshake and passed explicitly to every
    handler. Never re-derived from the connection afterwards.
    """

    user_id: uuid.UUID
    username: str

    @classmethod
    def from_user(cls, user: User) -> Identity:
        return cls(user_id=user.id, username=user.username)

    def to_payload(self) -> dict[str, str]:
        return {"userId": str(self.user_id), "username": self.username}


@dataclass(frozen=True)
class UserProfile:
    """A user together with activity counts and the rooms shown on their profile."""

    user: User
    message_count: int
    rooms_created: int
    rooms_joined: int
    rooms: list


class TokenService(BaseService):
    """
    JWT issue/verify backed by rest_framework_simplejwt.

    Usage:
        tokens = TokenService.issue(user)
        identity = TokenService.verify(tokens["access"])
        if identity is None:
            reject()
    """

    @classmethod
    def issue(cls, user: User) -> dict[str, str]:
        """
        Create an access/refresh token pair for a user.

        Returns:
            Dict with ``access`` and ``refresh`` token strings
        """
        refresh = RefreshToken.for_user(user)
        return {"access": str(refresh.access_token), "refresh": str(refresh)}

    @classmethod
    def verify(cls, token: str | None) -> Identity | None:
        """
        Validate an access token and resolve the user behind it.

        Args:
            token: Raw JWT string (may be None or empty)

        Returns:
            Identity for an active user, None on any failure
        """
        if not token:
            return None

        try:
            access = AccessToken(token)
            user_id = access[jwt_settings.USER_ID_CLAIM]
        except (TokenError, KeyError) as e:
            cls.get_logger().info(f"Rejected socket token: {e}")
            return None

        user = User.objects.filter(pk=user_id, is_active=True).first()
        if user is None:
            cls.get_logger().info(f"Token references unknown user {user_id}")
            return None

        return Identity.from_user(user)

    @classmethod
    def revoke(cls, refresh: str, user: User) -> ServiceResult[None]:
        """
        Blacklist a refresh token owned by ``user``.

        Returns:
            ServiceResult, INVALID_TOKEN when the token is malformed,
            expired, already revoked or issued to someone else
        """
        try:
            token = RefreshToken(refresh)
            if str(token.get(jwt_settings.USER_ID_CLAIM)) != str(user.id):
                raise TokenError("Token was issued to another user")
            token.blacklist()
        except TokenError as e:
            cls.get_logger().info(f"Refused to revoke token for user {user.id}: {e}")
            return ServiceResult.failure(
                "Invalid refresh token", error_code="INVALID_TOKEN"
            )
        return ServiceResult.success(None)


class UserService(BaseService):
    """
    User lifecycle operations used by REST views and the socket router.

    Error codes:
        EMAIL_TAKEN, USERNAME_TAKEN, INVALID_USERNAME, INVALID_STATUS,
        USER_NOT_FOUND
    """

    @classmethod
    def register(cls, email: str, username: str, password: str) -> ServiceResult[User]:
        """
        Create a new user account.

        Args:
            email: Login email
            username: Display name (unique, case-insensitive)
            password: Raw password (hashed by the manager)

        Returns:
            ServiceResult with the created User
        """
        email = User.objects.normalize_email(email)
        username = (username or "").strip()

        if not USERNAME_PATTERN.match(username):
            return ServiceResult.failure(
                "Username must be 3-30 characters of letters, numbers, _ or -",
                error_code="INVALID_USERNAME",
            )
        if User.objects.filter(email__iexact=email).exists():
            return ServiceResult.failure(
                "Email already registered", error_code="EMAIL_TAKEN"
            )
        if User.objects.filter(username__iexact=username).exists():
            return ServiceResult.failure(
                "Username already taken", error_code="USERNAME_TAKEN"
            )

        try:
            with cls.atomic():
                user = User.objects.create_user(
                    email=email, username=username, password=password
                )
        except IntegrityError:
            # Lost a race against a concurrent registration
            return ServiceResult.failure(
                "Username or email already taken", error_code="USERNAME_TAKEN"
            )

        cls.get_logger().info(f"Registered user {user.id} ({username})")
        return ServiceResult.success(user)

    @classmethod
    def update_profile(
        cls,
        user: User,
        username: str | None = None,
        bio: str | None = None,
    ) -> ServiceResult[User]:
        """
        Update display name and/or bio.

        Returns:
            ServiceResult with the updated User
        """
        update_fields: list[str] = []

        if username is not None:
            username = username.strip()
            if not USERNAME_PATTERN.match(username):
                return ServiceResult.failure(
                    "Username must be 3-30 characters of letters, numbers, _ or -",
                    error_code="INVALID_USERNAME",
                )
            taken = (
                User.objects.filter(username__iexact=username)
                .exclude(pk=user.pk)
                .exists()
            )
            if taken:
                return ServiceResult.failure(
                    "Username already taken", error_code="USERNAME_TAKEN"
                )
            user.username = username
            update_fields.append("username")

        if bio is not None:
            user.bio = bio.strip()
            update_fields.append("bio")

        if update_fields:
            user.save(update_fields=[*update_fields, "updated_at"])
            cls.get_logger().info(f"Updated profile for user {user.id}: {update_fields}")

        return ServiceResult.success(user)

    @classmethod
    def update_status(cls, user_id: Any, status: str) -> ServiceResult[User]:
        """
        Persist a presence status and refresh ``last_seen``.

        Args:
            user_id: Target user's id
            status: One of UserStatus values

        Returns:
            ServiceResult with the updated User
        """
        if not UserStatus.is_valid(status):
            return ServiceResult.failure(
                f"Invalid status: {status}", error_code="INVALID_STATUS"
            )

        updated = User.objects.filter(pk=user_id).update(
            status=status, last_seen=timezone.now(), updated_at=timezone.now()
        )
        if not updated:
            return ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")

        return ServiceResult.success(User.objects.get(pk=user_id))

    @classmethod
    def mark_online(cls, user_id: Any) -> ServiceResult[User]:
        return cls.update_status(user_id, UserStatus.ONLINE)

    @classmethod
    def mark_offline(cls, user_id: Any) -> ServiceResult[User]:
        return cls.update_status(user_id, UserStatus.OFFLINE)

    # =========================================================================
    # Directory
    # =========================================================================

    SEARCH_LIMIT = 10

    @classmethod
    def online_users(cls) -> QuerySet[User]:
        """Active users whose persisted status is ONLINE, by username."""
        return User.objects.filter(is_active=True, status=UserStatus.ONLINE).order_by(
            "username"
        )

    @classmethod
    def search_users(cls, query: str, exclude_user_id: Any = None) -> list[User]:
        """
        Case-insensitive username search.

        Args:
            query: Substring to look for; blank returns nothing
            exclude_user_id: Usually the caller, never part of the results

        Returns:
            At most SEARCH_LIMIT users ordered by username
        """
        query = (query or "").strip()
        if not query:
            return []
        queryset = User.objects.filter(is_active=True, username__icontains=query)
        if exclude_user_id is not None:
            queryset = queryset.exclude(pk=exclude_user_id)
        return list(queryset.order_by("username")[: cls.SEARCH_LIMIT])

    @classmethod
    def get_profile(cls, user_id: Any, viewer: User) -> ServiceResult[UserProfile]:
        """
        Public profile with activity counts.

        ``rooms`` lists the user's rooms that ``viewer`` may see: public
        rooms and private rooms the viewer also belongs to.

        Returns:
            ServiceResult with a UserProfile, or USER_NOT_FOUND
        """
        user_uuid = parse_uuid(user_id)
        user = (
            User.objects.filter(pk=user_uuid, is_active=True)
            .annotate(
                message_count=Count(
                    "messages", filter=Q(messages__is_deleted=False), distinct=True
                ),
                rooms_created=Count("created_rooms", distinct=True),
                rooms_joined=Count("memberships", distinct=True),
            )
            .first()
            if user_uuid
            else None
        )
        if user is None:
            return ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")

        viewer_room_ids = viewer.memberships.values("room_id")
        rooms = user.rooms.filter(
            Q(is_private=False) | Q(id__in=viewer_room_ids)
        ).order_by("name")

        return ServiceResult.success(
            UserProfile(
                user=user,
                message_count=user.message_count,
                rooms_created=user.rooms_created,
                rooms_joined=user.rooms_joined,
                rooms=list(rooms),
            )
        )
