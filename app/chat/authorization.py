"""
Service-level authorization for chat operations.

This module decides whether a (user, action) pair is allowed. HTTP-level
access (authenticated or not) stays with DRF permission classes on the views.

Key Components:
    Denial: Typed reason an action was refused
    ChatAuthorizationService: Stateless checks for membership, ownership,
        edit window and self-actions

Denial to error code mapping:
    edit:   NOT_FOUND -> MESSAGE_NOT_FOUND
            NOT_OWNER -> UNAUTHORIZED_MESSAGE_EDIT
            TOO_OLD   -> MESSAGE_TOO_OLD
    delete: NOT_FOUND -> MESSAGE_NOT_FOUND
            NOT_OWNER -> UNAUTHORIZED_MESSAGE_DELETE

Usage:
    denial = ChatAuthorizationService.authorize_edit(message, user.id)
    if denial:
        return ServiceResult.failure(
            denial.message, error_code=denial.error_code_for("edit")
        )
"""

from __future__ import annotations

import enum
from datetime import timedelta
from typing import TYPE_CHECKING

from django.utils import timezone

from chat.constants import ERROR_CODES, MESSAGE_CONFIG
from core.helpers import parse_uuid
from core.services import ServiceResult

if TYPE_CHECKING:
    from typing import Any

    from chat.models import EditableMessage, Room


class Denial(enum.Enum):
    """Reason an edit or delete was refused."""

    NOT_FOUND = "not_found"
    NOT_OWNER = "not_owner"
    TOO_OLD = "too_old"

    @property
    def message(self) -> str:
        return {
            Denial.NOT_FOUND: "Message not found",
            Denial.NOT_OWNER: "You can only modify your own messages",
            Denial.TOO_OLD: "Message is too old to edit",
        }[self]

    def error_code_for(self, action: str) -> str:
        """Wire error code for this denial on ``edit`` or ``delete``."""
        if self is Denial.NOT_FOUND:
            return ERROR_CODES.MESSAGE_NOT_FOUND
        if self is Denial.TOO_OLD:
            return ERROR_CODES.MESSAGE_TOO_OLD
        if action == "edit":
            return ERROR_CODES.UNAUTHORIZED_MESSAGE_EDIT
        return ERROR_CODES.UNAUTHORIZED_MESSAGE_DELETE

    def to_result(self, action: str) -> ServiceResult:
        return ServiceResult.failure(self.message, error_code=self.error_code_for(action))


class ChatAuthorizationService:
    """
    Stateless service providing authorization checks for chat operations.

    Ownership compares identifiers as strings so UUID objects and their
    wire representation are interchangeable.
    """

    @classmethod
    def is_room_member(cls, user_id: Any, room_id: Any) -> bool:
        """
        Check if a Membership row exists for the pair.

        Args:
            user_id: User to check
            room_id: Room to check

        Returns:
            True if the user is a member of the room
        """
        from chat.models import Membership

        return Membership.objects.filter(user_id=user_id, room_id=room_id).exists()

    @classmethod
    def can_view_room(cls, user_id: Any, room: Room) -> bool:
        """Public rooms are visible to everyone, private ones to members only."""
        return not room.is_private or cls.is_room_member(user_id, room.id)

    @classmethod
    def authorize_edit(
        cls,
        message: EditableMessage | None,
        requester_id: Any,
        now=None,
    ) -> Denial | None:
        """
        Check whether the requester may edit the message.

        Ownership is strict equality of the author id. Age is measured from
        ``created_at`` against the edit window, never from the last edit.

        Args:
            message: Message looked up through the live manager, or None
            requester_id: User attempting the edit
            now: Override for the current time

        Returns:
            None when allowed, otherwise the Denial
        """
        if message is None or message.is_deleted:
            return Denial.NOT_FOUND
        if str(message.owner_id) != str(requester_id):
            return Denial.NOT_OWNER

        now = now or timezone.now()
        if now - message.created_at > timedelta(hours=MESSAGE_CONFIG.EDIT_WINDOW_HOURS):
            return Denial.TOO_OLD
        return None

    @classmethod
    def authorize_delete(
        cls,
        message: EditableMessage | None,
        requester_id: Any,
    ) -> Denial | None:
        """
        Check whether the requester may delete the message.

        There is no age limit on delete.

        Returns:
            None when allowed, otherwise the Denial
        """
        if message is None or message.is_deleted:
            return Denial.NOT_FOUND
        if str(message.owner_id) != str(requester_id):
            return Denial.NOT_OWNER
        return None

    @classmethod
    def check_not_self(
        cls, user_id: Any, other_id: Any, error_code: str
    ) -> ServiceResult | None:
        """
        Reject actions whose counterpart is the requester.

        Ids are compared as UUIDs, so any spelling of the requester's own
        id (upper case, no hyphens, braces) counts as self. Ids that do not
        parse are not self; the caller reports them as not found.

        Args:
            user_id: Requester
            other_id: Receiver or partner
            error_code: SELF_MESSAGE_NOT_ALLOWED or SELF_CONVERSATION_NOT_ALLOWED

        Returns:
            Failed ServiceResult when both ids match, None otherwise
        """
        other_uuid = parse_uuid(other_id)
        if other_uuid is None or other_uuid != parse_uuid(user_id):
            return None
        message = (
            "Cannot send message to yourself"
            if error_code == ERROR_CODES.SELF_MESSAGE_NOT_ALLOWED
            else "Cannot join conversation with yourself"
        )
        return ServiceResult.failure(message, error_code=error_code)
