"""
Chat business logic.

This module is the persistence gateway plus the rules that guard it:
- RoomService: room creation, visibility, membership and room history
- MessageService: send/edit/delete/search of room messages
- DirectMessageService: send/edit/delete/search of direct messages
- DirectConversationService: derived conversation list with unread counts

All methods are synchronous and return ServiceResult for expected
failures. The socket router calls them through database_sync_to_async;
REST views call them directly.

Error codes (see chat.constants.ERROR_CODES):
    ROOM_NOT_FOUND, ROOM_ACCESS_DENIED, ROOM_NAME_TAKEN, INVALID_ROOM,
    CREATOR_CANNOT_LEAVE, NOT_A_MEMBER, MESSAGE_NOT_FOUND,
    UNAUTHORIZED_MESSAGE_EDIT, UNAUTHORIZED_MESSAGE_DELETE, MESSAGE_TOO_OLD,
    INVALID_MESSAGE_CONTENT, MESSAGE_TOO_LONG, MESSAGE_VALIDATION_ERROR,
    SELF_MESSAGE_NOT_ALLOWED, MISSING_RECEIVER_ID, MISSING_MESSAGE_ID,
    RECEIVER_NOT_FOUND

Usage:
    from chat.services import MessageService

    result = MessageService.send_message(user.id, room_id, "Hello there!")
    if result.success:
        message = result.data
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from django.db import IntegrityError
from django.db.models import Count, Q
from django.utils import timezone

from authentication.models import User
from chat.authorization import ChatAuthorizationService
from chat.constants import ERROR_CODES, MESSAGE_CONFIG, ROOM_CONFIG
from chat.conversations import ConversationSummary, ConversationTracker
from chat.models import DirectMessage, EditHistoryEntry, Membership, Message, Room
from chat.validation import MessageValidator
from core.helpers import parse_uuid
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from datetime import datetime
    from typing import Any

    from django.db.models import QuerySet

logger = logging.getLogger(__name__)

_ROOM_NAME_RE = re.compile(ROOM_CONFIG.NAME_PATTERN)


def _message_not_found() -> ServiceResult:
    return ServiceResult.failure(
        "Message not found", error_code=ERROR_CODES.MESSAGE_NOT_FOUND
    )


def _missing_message_id() -> ServiceResult:
    return ServiceResult.failure(
        "Message ID is required", error_code=ERROR_CODES.MISSING_MESSAGE_ID
    )


# =============================================================================
# Rooms
# =============================================================================


class RoomService(BaseService):
    """
    Room lifecycle and membership.

    Invariants:
        - The creator is a member from the moment the room exists
        - The creator cannot leave while other members remain
        - Private rooms and their data are visible to members only
    """

    @classmethod
    def create_room(
        cls,
        user: User,
        name: str,
        description: str = "",
        is_private: bool = False,
    ) -> ServiceResult[Room]:
        """
        Create a room and make the creator its first member.

        Args:
            user: Creator
            name: 1-50 chars of letters, digits, spaces, "-", "_" or "#"
            description: Up to 200 chars
            is_private: Restrict visibility to members

        Returns:
            ServiceResult with the new Room
        """
        name = (name or "").strip()
        description = (description or "").strip()

        if not name or len(name) > ROOM_CONFIG.NAME_MAX_LENGTH:
            return ServiceResult.failure(
                f"Room name must be 1-{ROOM_CONFIG.NAME_MAX_LENGTH} characters",
                error_code=ERROR_CODES.INVALID_ROOM,
                errors={"name": ["Invalid length."]},
            )
        if not _ROOM_NAME_RE.match(name):
            return ServiceResult.failure(
                "Room name can only contain letters, numbers, spaces, -, _ and #",
                error_code=ERROR_CODES.INVALID_ROOM,
                errors={"name": ["Invalid characters."]},
            )
        if len(description) > ROOM_CONFIG.DESCRIPTION_MAX_LENGTH:
            return ServiceResult.failure(
                f"Description must be at most {ROOM_CONFIG.DESCRIPTION_MAX_LENGTH} characters",
                error_code=ERROR_CODES.INVALID_ROOM,
                errors={"description": ["Too long."]},
            )
        if Room.objects.filter(name__iexact=name).exists():
            return ServiceResult.failure(
                "A room with this name already exists",
                error_code=ERROR_CODES.ROOM_NAME_TAKEN,
            )

        try:
            with cls.atomic():
                room = Room.objects.create(
                    name=name,
                    description=description,
                    is_private=bool(is_private),
                    created_by=user,
                )
                Membership.objects.create(user=user, room=room)
        except IntegrityError:
            return ServiceResult.failure(
                "A room with this name already exists",
                error_code=ERROR_CODES.ROOM_NAME_TAKEN,
            )

        cls.get_logger().info(f"Room {room.id} ({name!r}) created by {user.id}")
        return ServiceResult.success(room)

    @classmethod
    def visible_rooms(cls, user: User) -> QuerySet[Room]:
        """Public rooms plus private rooms the user belongs to, with member counts."""
        member_room_ids = Membership.objects.filter(user=user).values("room_id")
        return (
            Room.objects.filter(Q(is_private=False) | Q(id__in=member_room_ids))
            .select_related("created_by")
            .annotate(member_count=Count("memberships", distinct=True))
            .order_by("-updated_at")
        )

    @classmethod
    def get_room(cls, room_id: Any, user: User) -> ServiceResult[Room]:
        """
        Fetch a room the user may see.

        Returns:
            ServiceResult with the Room, or ROOM_NOT_FOUND / ROOM_ACCESS_DENIED
        """
        room_uuid = parse_uuid(room_id)
        room = Room.objects.filter(pk=room_uuid).first() if room_uuid else None
        if room is None:
            return ServiceResult.failure(
                "Room not found", error_code=ERROR_CODES.ROOM_NOT_FOUND
            )
        if not ChatAuthorizationService.can_view_room(user.id, room):
            return ServiceResult.failure(
                "Access denied to room", error_code=ERROR_CODES.ROOM_ACCESS_DENIED
            )
        return ServiceResult.success(room)

    @classmethod
    def join_room(cls, user: User, room_id: Any) -> ServiceResult[Membership]:
        """
        Create the membership row for a visible room.

        Idempotent: joining twice returns the existing membership.
        """
        result = cls.get_room(room_id, user)
        if not result:
            return result

        membership, created = Membership.objects.get_or_create(
            user=user, room=result.data
        )
        if created:
            cls.get_logger().info(f"User {user.id} joined room {result.data.id}")
        return ServiceResult.success(membership)

    @classmethod
    def leave_room(cls, user: User, room_id: Any) -> ServiceResult[Room]:
        """
        Delete the user's membership.

        The creator may only leave once they are the last member.
        """
        room_uuid = parse_uuid(room_id)
        membership = (
            Membership.objects.select_related("room")
            .filter(user=user, room_id=room_uuid)
            .first()
            if room_uuid
            else None
        )
        if membership is None:
            return ServiceResult.failure(
                "You are not a member of this room",
                error_code=ERROR_CODES.NOT_A_MEMBER,
            )

        room = membership.room
        if room.created_by_id == user.id:
            others = Membership.objects.filter(room=room).exclude(user=user).exists()
            if others:
                return ServiceResult.failure(
                    "Room creator cannot leave while other members remain",
                    error_code=ERROR_CODES.CREATOR_CANNOT_LEAVE,
                )

        membership.delete()
        cls.get_logger().info(f"User {user.id} left room {room.id}")
        return ServiceResult.success(room)

    @classmethod
    def member_room_ids(cls, user: User | Any) -> list:
        """Ids of every room the user is a member of."""
        user_id = getattr(user, "id", user)
        return list(
            Membership.objects.filter(user_id=user_id).values_list("room_id", flat=True)
        )

    @classmethod
    def room_members(cls, room: Room) -> QuerySet[Membership]:
        """Memberships of the room with their users, earliest joiner first."""
        return (
            Membership.objects.filter(room=room)
            .select_related("user")
            .order_by("joined_at", "pk")
        )

    @classmethod
    def mark_read(cls, user: User, room: Room) -> None:
        Membership.objects.filter(user=user, room=room).update(
            last_read_at=timezone.now()
        )

    @classmethod
    def room_messages(
        cls,
        room: Room,
        before: datetime | None = None,
        limit: int = MESSAGE_CONFIG.PAGE_SIZE,
    ) -> list[Message]:
        """Newest-first page of live messages, optionally older than ``before``."""
        queryset = Message.objects.filter(room=room).select_related("author")
        if before is not None:
            queryset = queryset.filter(created_at__lt=before)
        return list(queryset.order_by("-created_at")[: min(limit, MESSAGE_CONFIG.PAGE_SIZE)])

    @classmethod
    def search_messages(cls, room: Room, query: str) -> list[Message]:
        """Case-insensitive content search over live messages in a room."""
        query = (query or "").strip()
        if not query:
            return []
        return list(
            Message.objects.filter(room=room, content__icontains=query)
            .select_related("author")
            .order_by("-created_at")[: MESSAGE_CONFIG.ROOM_SEARCH_MAX_RESULTS]
        )


# =============================================================================
# Room messages
# =============================================================================


class MessageService(BaseService):
    """
    Room message operations.

    Every write path checks authorization before validation so a denied
    request never reaches the rate limiter.
    """

    @classmethod
    def send_message(
        cls,
        author_id: Any,
        room_id: Any,
        content: Any,
        validator: MessageValidator | None = None,
    ) -> ServiceResult[Message]:
        """
        Validate and persist a room message.

        Args:
            author_id: Sender
            room_id: Target room; the sender must be a member
            content: Raw content
            validator: Content validator (defaults to MessageValidator.default())

        Returns:
            ServiceResult with the created Message
        """
        validator = validator or MessageValidator.default()

        validation = validator.validate(content, author_id)
        if not validation:
            return validation

        room_uuid = parse_uuid(room_id)
        if room_uuid is None or not ChatAuthorizationService.is_room_member(
            author_id, room_uuid
        ):
            return ServiceResult.failure(
                "Access denied to room", error_code=ERROR_CODES.ROOM_ACCESS_DENIED
            )

        with cls.atomic():
            message = Message.objects.create(
                room_id=room_uuid, author_id=author_id, content=validation.data
            )
            Room.objects.filter(pk=room_uuid).update(updated_at=timezone.now())

        cls.get_logger().info(f"Message {message.id} sent to room {room_uuid}")
        return ServiceResult.success(
            Message.objects.select_related("author").get(pk=message.pk)
        )

    @classmethod
    def edit_message(
        cls,
        message_id: Any,
        requester_id: Any,
        content: Any,
        validator: MessageValidator | None = None,
    ) -> ServiceResult[Message]:
        """
        Edit a message, appending the previous body to its history.

        Order: look up, authorize (owner + 24h window), validate, persist.
        The row is locked for the duration so concurrent edits serialize.
        """
        if not message_id:
            return _missing_message_id()
        message_uuid = parse_uuid(message_id)
        if message_uuid is None:
            return _message_not_found()

        validator = validator or MessageValidator.default()

        with cls.atomic():
            message = (
                Message.objects.select_for_update().filter(pk=message_uuid).first()
            )
            denial = ChatAuthorizationService.authorize_edit(message, requester_id)
            if denial:
                return denial.to_result("edit")

            validation = validator.validate(content, requester_id)
            if not validation:
                return validation

            message.apply_edit(validation.data)
            message.save(
                update_fields=["content", "edited_at", "edit_history", "updated_at"]
            )

        cls.get_logger().info(f"Message {message.id} edited by {requester_id}")
        return ServiceResult.success(
            Message.objects.select_related("author").get(pk=message.pk)
        )

    @classmethod
    def delete_message(cls, message_id: Any, requester_id: Any) -> ServiceResult[Message]:
        """
        Soft delete a message owned by the requester.

        A second delete finds nothing: deleted rows are outside the live
        manager, so it reports MESSAGE_NOT_FOUND.
        """
        if not message_id:
            return _missing_message_id()
        message_uuid = parse_uuid(message_id)
        if message_uuid is None:
            return _message_not_found()

        with cls.atomic():
            message = (
                Message.objects.select_for_update().filter(pk=message_uuid).first()
            )
            denial = ChatAuthorizationService.authorize_delete(message, requester_id)
            if denial:
                return denial.to_result("delete")
            message.soft_delete()

        cls.get_logger().info(f"Message {message.id} deleted by {requester_id}")
        return ServiceResult.success(message)

    @classmethod
    def get_edit_history(
        cls, message_id: Any, user: User
    ) -> ServiceResult[list[EditHistoryEntry]]:
        """Edit history of a live message, for room members only."""
        message_uuid = parse_uuid(message_id)
        message = Message.objects.filter(pk=message_uuid).first() if message_uuid else None
        if message is None:
            return _message_not_found()
        if not ChatAuthorizationService.is_room_member(user.id, message.room_id):
            return ServiceResult.failure(
                "Access denied to room", error_code=ERROR_CODES.ROOM_ACCESS_DENIED
            )
        return ServiceResult.success(message.history)


# =============================================================================
# Direct messages
# =============================================================================


class DirectMessageService(BaseService):
    """Direct message operations between two users."""

    @classmethod
    def send_direct_message(
        cls,
        sender_id: Any,
        receiver_id: Any,
        content: Any,
        validator: MessageValidator | None = None,
    ) -> ServiceResult[DirectMessage]:
        """
        Validate and persist a direct message.

        The receiver id is parsed first; unparsable ids are reported as
        not found and self-messages are rejected, both before validation
        and persistence.

        Returns:
            ServiceResult with the created DirectMessage
        """
        missing = cls.validate_required(receiver_id=receiver_id)
        if missing:
            return missing

        receiver_uuid = parse_uuid(receiver_id)
        if receiver_uuid is None:
            return ServiceResult.failure(
                "Receiver not found", error_code=ERROR_CODES.RECEIVER_NOT_FOUND
            )

        self_denial = ChatAuthorizationService.check_not_self(
            sender_id, receiver_uuid, ERROR_CODES.SELF_MESSAGE_NOT_ALLOWED
        )
        if self_denial:
            return self_denial

        validator = validator or MessageValidator.default()
        validation = validator.validate(content, sender_id)
        if not validation:
            return validation

        if not User.objects.filter(pk=receiver_uuid, is_active=True).exists():
            return ServiceResult.failure(
                "Receiver not found", error_code=ERROR_CODES.RECEIVER_NOT_FOUND
            )

        message = DirectMessage.objects.create(
            sender_id=sender_id, receiver_id=receiver_uuid, content=validation.data
        )
        cls.get_logger().info(
            f"Direct message {message.id} sent {sender_id} -> {receiver_uuid}"
        )
        return ServiceResult.success(
            DirectMessage.objects.select_related("sender", "receiver").get(pk=message.pk)
        )

    @classmethod
    def edit_direct_message(
        cls,
        message_id: Any,
        requester_id: Any,
        content: Any,
        validator: MessageValidator | None = None,
    ) -> ServiceResult[DirectMessage]:
        """Edit a direct message under the same owner/24h rules as room messages."""
        if not message_id:
            return _missing_message_id()
        message_uuid = parse_uuid(message_id)
        if message_uuid is None:
            return _message_not_found()

        validator = validator or MessageValidator.default()

        with cls.atomic():
            message = (
                DirectMessage.objects.select_for_update()
                .filter(pk=message_uuid)
                .first()
            )
            denial = ChatAuthorizationService.authorize_edit(message, requester_id)
            if denial:
                return denial.to_result("edit")

            validation = validator.validate(content, requester_id)
            if not validation:
                return validation

            message.apply_edit(validation.data)
            message.save(
                update_fields=["content", "edited_at", "edit_history", "updated_at"]
            )

        cls.get_logger().info(f"Direct message {message.id} edited by {requester_id}")
        return ServiceResult.success(
            DirectMessage.objects.select_related("sender", "receiver").get(pk=message.pk)
        )

    @classmethod
    def delete_direct_message(
        cls, message_id: Any, requester_id: Any
    ) -> ServiceResult[DirectMessage]:
        """Soft delete a direct message sent by the requester."""
        if not message_id:
            return _missing_message_id()
        message_uuid = parse_uuid(message_id)
        if message_uuid is None:
            return _message_not_found()

        with cls.atomic():
            message = (
                DirectMessage.objects.select_for_update()
                .filter(pk=message_uuid)
                .first()
            )
            denial = ChatAuthorizationService.authorize_delete(message, requester_id)
            if denial:
                return denial.to_result("delete")
            message.soft_delete()

        cls.get_logger().info(f"Direct message {message.id} deleted by {requester_id}")
        return ServiceResult.success(message)

    @classmethod
    def involving(cls, user_id: Any) -> QuerySet[DirectMessage]:
        """Live direct messages where the user is sender or receiver."""
        return DirectMessage.objects.filter(
            Q(sender_id=user_id) | Q(receiver_id=user_id)
        )

    @classmethod
    def messages_between(
        cls,
        user_id: Any,
        partner_id: Any,
        before: datetime | None = None,
        limit: int = MESSAGE_CONFIG.PAGE_SIZE,
    ) -> list[DirectMessage]:
        """Newest-first page of live messages between two users."""
        queryset = DirectMessage.objects.filter(
            Q(sender_id=user_id, receiver_id=partner_id)
            | Q(sender_id=partner_id, receiver_id=user_id)
        ).select_related("sender", "receiver")
        if before is not None:
            queryset = queryset.filter(created_at__lt=before)
        return list(queryset.order_by("-created_at")[: min(limit, MESSAGE_CONFIG.PAGE_SIZE)])

    @classmethod
    def search(cls, user_id: Any, query: str) -> list[DirectMessage]:
        """Case-insensitive search over the user's live direct messages."""
        query = (query or "").strip()
        if not query:
            return []
        return list(
            cls.involving(user_id)
            .filter(content__icontains=query)
            .select_related("sender", "receiver")
            .order_by("-created_at")[: MESSAGE_CONFIG.DIRECT_SEARCH_MAX_RESULTS]
        )


class DirectConversationService(BaseService):
    """Derived direct conversation listing."""

    @classmethod
    def get_conversations(
        cls, user: User, active_partner_id: Any = None
    ) -> tuple[list[ConversationSummary], int]:
        """
        Group the user's direct messages by partner.

        Args:
            user: Viewer
            active_partner_id: Conversation currently open on the client;
                its unread count is zero

        Returns:
            Tuple of (summaries sorted by last activity desc, total unread)
        """
        tracker = ConversationTracker(user.id)
        tracker.load(
            DirectMessageService.involving(user.id)
            .select_related("sender", "receiver")
            .order_by("created_at")
        )
        if active_partner_id is not None:
            tracker.set_active(active_partner_id)
        return tracker.conversations(), tracker.total_unread

    @classmethod
    def partners_by_id(cls, summaries: list[ConversationSummary]) -> dict[str, User]:
        ids = [summary.partner_id for summary in summaries]
        return {str(user.id): user for user in User.objects.filter(pk__in=ids)}
