"""
Constants and configuration for the chat module.

This module centralizes configuration values for:
- Message operations (content limits, edit window, rate limiting)
- Room validation (name/description limits)
- Presence tracking (Redis key prefixes and TTLs)
- Socket event names and error codes

Tunables can be overridden through the ``CHAT`` dict in Django settings.
Import example:
    from chat.constants import MESSAGE_CONFIG, PRESENCE_CONFIG, ERROR_CODES
"""

from typing import Final

from django.conf import settings

_CHAT_SETTINGS: dict = getattr(settings, "CHAT", {})


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for room and direct messages."""

    # Content limits
    MAX_CONTENT_LENGTH: Final[int] = _CHAT_SETTINGS.get("MAX_MESSAGE_LENGTH", 1000)

    # Edit settings, measured from the message's creation time
    EDIT_WINDOW_HOURS: Final[int] = _CHAT_SETTINGS.get("EDIT_WINDOW_HOURS", 24)

    # Visible body of a soft-deleted message
    DELETED_PLACEHOLDER: Final[str] = "[Message deleted]"

    # Rate limiting, counted across room and direct messages
    RATE_LIMIT_MESSAGES: Final[int] = _CHAT_SETTINGS.get("RATE_LIMIT_MESSAGES", 30)
    RATE_LIMIT_WINDOW_SECONDS: Final[int] = _CHAT_SETTINGS.get(
        "RATE_LIMIT_WINDOW_SECONDS", 60
    )

    # History and search
    PAGE_SIZE: Final[int] = 50
    ROOM_SEARCH_MAX_RESULTS: Final[int] = 50
    DIRECT_SEARCH_MAX_RESULTS: Final[int] = 20


# =============================================================================
# Room Configuration
# =============================================================================


class ROOM_CONFIG:
    """Validation limits for rooms."""

    NAME_MAX_LENGTH: Final[int] = 50
    NAME_PATTERN: Final[str] = r"^[a-zA-Z0-9\s\-_#]+$"
    DESCRIPTION_MAX_LENGTH: Final[int] = 200


# =============================================================================
# Presence Configuration
# =============================================================================


class PRESENCE_CONFIG:
    """Configuration for presence tracking."""

    # Status record TTLs (seconds). Online records are refreshed by ping.
    ONLINE_TTL_SECONDS: Final[int] = _CHAT_SETTINGS.get("ONLINE_TTL_SECONDS", 300)
    OFFLINE_TTL_SECONDS: Final[int] = _CHAT_SETTINGS.get("OFFLINE_TTL_SECONDS", 86400)

    # Typing indicators expire on their own
    TYPING_TTL_SECONDS: Final[int] = _CHAT_SETTINGS.get("TYPING_TTL_SECONDS", 10)

    # Redis key prefixes
    KEY_PREFIX_USER: Final[str] = "presence:user"
    KEY_PREFIX_CONNECTION: Final[str] = "presence:conn"
    KEY_PREFIX_ROOM: Final[str] = "presence:room"
    KEY_PREFIX_TYPING: Final[str] = "typing"


# =============================================================================
# Channel Groups
# =============================================================================


class GROUPS:
    """Channel layer group names."""

    # Every authenticated connection, used for public room announcements
    LOBBY: Final[str] = "chat.lobby"
    ROOM_PREFIX: Final[str] = "room"
    DIRECT_PREFIX: Final[str] = "dm"


# =============================================================================
# Error Codes
# =============================================================================


class ERROR_CODES:
    """Error codes sent to clients in ``error`` events and REST bodies."""

    # Authorization
    ROOM_ACCESS_DENIED: Final[str] = "ROOM_ACCESS_DENIED"
    ROOM_NOT_FOUND: Final[str] = "ROOM_NOT_FOUND"
    MESSAGE_NOT_FOUND: Final[str] = "MESSAGE_NOT_FOUND"
    UNAUTHORIZED_MESSAGE_EDIT: Final[str] = "UNAUTHORIZED_MESSAGE_EDIT"
    UNAUTHORIZED_MESSAGE_DELETE: Final[str] = "UNAUTHORIZED_MESSAGE_DELETE"
    MESSAGE_TOO_OLD: Final[str] = "MESSAGE_TOO_OLD"

    # Validation
    MESSAGE_VALIDATION_ERROR: Final[str] = "MESSAGE_VALIDATION_ERROR"
    MESSAGE_TOO_LONG: Final[str] = "MESSAGE_TOO_LONG"
    INVALID_MESSAGE_CONTENT: Final[str] = "INVALID_MESSAGE_CONTENT"
    INVALID_STATUS: Final[str] = "INVALID_STATUS"
    INVALID_PAYLOAD: Final[str] = "INVALID_PAYLOAD"
    UNKNOWN_EVENT: Final[str] = "UNKNOWN_EVENT"

    # Self actions
    SELF_MESSAGE_NOT_ALLOWED: Final[str] = "SELF_MESSAGE_NOT_ALLOWED"
    SELF_CONVERSATION_NOT_ALLOWED: Final[str] = "SELF_CONVERSATION_NOT_ALLOWED"

    # Missing identifiers
    MISSING_ROOM_ID: Final[str] = "MISSING_ROOM_ID"
    MISSING_RECEIVER_ID: Final[str] = "MISSING_RECEIVER_ID"
    MISSING_PARTNER_ID: Final[str] = "MISSING_PARTNER_ID"
    MISSING_MESSAGE_ID: Final[str] = "MISSING_MESSAGE_ID"
    RECEIVER_NOT_FOUND: Final[str] = "RECEIVER_NOT_FOUND"
    INVALID_PARTNER_ID: Final[str] = "INVALID_PARTNER_ID"

    # Rooms
    ROOM_NAME_TAKEN: Final[str] = "ROOM_NAME_TAKEN"
    INVALID_ROOM: Final[str] = "INVALID_ROOM"
    CREATOR_CANNOT_LEAVE: Final[str] = "CREATOR_CANNOT_LEAVE"
    NOT_A_MEMBER: Final[str] = "NOT_A_MEMBER"


# =============================================================================
# Socket Events
# =============================================================================


class EVENTS:
    """Outbound socket event names."""

    MESSAGE_RECEIVED: Final[str] = "message_received"
    MESSAGE_EDITED: Final[str] = "message_edited"
    MESSAGE_DELETED: Final[str] = "message_deleted"
    DIRECT_MESSAGE_SENT: Final[str] = "direct_message_sent"
    DIRECT_MESSAGE_RECEIVED: Final[str] = "direct_message_received"
    DIRECT_MESSAGE_EDITED: Final[str] = "direct_message_edited"
    DIRECT_MESSAGE_DELETED: Final[str] = "direct_message_deleted"
    USER_JOINED: Final[str] = "user_joined"
    USER_LEFT: Final[str] = "user_left"
    TYPING_INDICATOR: Final[str] = "typing_indicator"
    USER_STATUS_CHANGED: Final[str] = "user_status_changed"
    USER_PROFILE_UPDATED: Final[str] = "user_profile_updated"
    ROOM_CREATED: Final[str] = "room_created"
    ERROR: Final[str] = "error"
    PONG: Final[str] = "pong"
