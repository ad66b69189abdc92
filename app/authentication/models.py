"""
Authentication models.

This module defines the chat user:
- User: email-based login, unique display name, live presence status

Related files:
    - managers.py: Custom user manager for email-based creation
    - services.py: TokenService (socket handshake) and UserService

Security:
    - Passwords hashed with Django's configured hashers
    - Display names validated against a fixed character set
"""

import re

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models.functions import Lower

from authentication.managers import UserManager
from core.model_mixins import UUIDPrimaryKeyMixin


USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{3,30}$")


def validate_username_format(value):
    """Validate username format: 3-30 chars, alphanumeric + _ + -."""
    if not USERNAME_PATTERN.match(value):
        raise ValidationError(
            "Username must be 3-30 characters and contain only "
            "letters, numbers, underscores, and hyphens."
        )


class UserStatus(models.TextChoices):
    """
    Presence status persisted on the user row.

    The same values travel over the socket in ``user_status_changed``.
    """

    ONLINE = "ONLINE", "Online"
    AWAY = "AWAY", "Away"
    OFFLINE = "OFFLINE", "Offline"

    @classmethod
    def is_valid(cls, status: str) -> bool:
        return status in cls.values


class User(UUIDPrimaryKeyMixin, AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the login identifier.

    Fields:
        email: Login identifier, unique
        username: Public display name, unique case-insensitively
        bio: Optional short profile text
        status: Last known presence status (ONLINE/AWAY/OFFLINE)
        last_seen: When the user was last connected
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Note:
        ``status`` and ``last_seen`` are written by the socket layer on
        connect/disconnect and by explicit status updates. Users are never
        hard-deleted by the chat flows.
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (login identifier)",
    )
    username = models.CharField(
        max_length=30,
        validators=[validate_username_format],
        help_text="Public display name (3-30 chars, alphanumeric + _ + -)",
    )
    bio = models.CharField(
        max_length=200,
        blank=True,
        default="",
        help_text="Short profile text shown to other users",
    )
    status = models.CharField(
        max_length=10,
        choices=UserStatus.choices,
        default=UserStatus.OFFLINE,
        db_index=True,
        help_text="Last known presence status",
    )
    last_seen = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the user last connected or disconnected",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]
        constraints = [
            models.UniqueConstraint(
                Lower("username"),
                name="unique_username_case_insensitive",
            ),
        ]

    def __str__(self):
        return self.username or self.email

    def get_full_name(self):
        return self.username

    def get_short_name(self):
        return self.username
