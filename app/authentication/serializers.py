"""
Serializers for authentication endpoints.

This module provides DRF serializers for:
- User (read operations, public and self views)
- Registration (create user)
- Profile update (username, bio)
- Public profiles, user search and logout input

Related files:
    - views.py: Views that use these serializers
    - services.py: UserService performs the actual writes

Security:
    - Password fields are write-only
    - Presence fields are read-only; only the socket layer writes them
"""

from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from authentication.models import User


class PublicUserSerializer(serializers.ModelSerializer):
    """Fields other chat users may see."""

    class Meta:
        model = User
        fields = ["id", "username", "bio", "status", "last_seen"]
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for the authenticated user's own account.

    Adds the email on top of the public fields.
    """

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "username",
            "bio",
            "status",
            "last_seen",
            "date_joined",
        ]
        read_only_fields = fields


class RegisterSerializer(serializers.Serializer):
    """
    Input for account registration.

    Uniqueness is checked by UserService, which reports distinct error
    codes for a taken email and a taken username.
    """

    email = serializers.EmailField()
    username = serializers.CharField(min_length=3, max_length=30)
    password = serializers.CharField(write_only=True, min_length=8)

    def validate_password(self, value):
        validate_password(value)
        return value


class ProfileUpdateSerializer(serializers.Serializer):
    """Input for PATCH /auth/me/. Every field is optional."""

    username = serializers.CharField(required=False, min_length=3, max_length=30)
    bio = serializers.CharField(required=False, allow_blank=True, max_length=200)


class TokenPairSerializer(serializers.Serializer):
    """Response shape for registration."""

    access = serializers.CharField()
    refresh = serializers.CharField()
    user = UserSerializer()


class ProfileRoomSerializer(serializers.Serializer):
    """Room reference listed on a profile."""

    id = serializers.UUIDField()
    name = serializers.CharField()
    is_private = serializers.BooleanField()


class UserProfileSerializer(serializers.Serializer):
    """Public profile: public user fields, activity counts and rooms."""

    id = serializers.UUIDField(source="user.id")
    username = serializers.CharField(source="user.username")
    bio = serializers.CharField(source="user.bio")
    status = serializers.CharField(source="user.status")
    last_seen = serializers.DateTimeField(source="user.last_seen", allow_null=True)
    date_joined = serializers.DateTimeField(source="user.date_joined")
    stats = serializers.SerializerMethodField()
    rooms = ProfileRoomSerializer(many=True)

    def get_stats(self, obj) -> dict:
        return {
            "message_count": obj.message_count,
            "rooms_created": obj.rooms_created,
            "rooms_joined": obj.rooms_joined,
        }


class UserSearchQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=30, trim_whitespace=True)


class LogoutSerializer(serializers.Serializer):
    """Input for logout. The refresh token, when given, is blacklisted."""

    refresh = serializers.CharField(required=False)
