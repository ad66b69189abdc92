"""
Chat system models.

This module defines the persisted chat state:
- Topic rooms with explicit membership
- Room messages and 1:1 direct messages, both soft-deletable and editable

Models:
    Room: Named topic room, public or private
    Membership: User x Room fact with read tracking
    Message: Room-scoped message
    DirectMessage: Message between two users, no membership table

Value objects:
    EditHistoryEntry: One prior version of a message body

Design Decisions:
    - The creator of a room is always a member; enforced by RoomService
    - Deleted messages keep their row but lose their content, and are hidden
      from the default manager so edit/delete/search treat them as absent
    - Edit history is an append-only list stored as JSON, converted to
      EditHistoryEntry values only at the model boundary
    - Direct conversations are derived from DirectMessage rows grouped by
      the other participant; see chat.conversations
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models.functions import Lower
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from chat.constants import MESSAGE_CONFIG, ROOM_CONFIG
from core.managers import SoftDeleteManager
from core.model_mixins import SoftDeleteMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel

if TYPE_CHECKING:
    import uuid


@dataclass(frozen=True)
class EditHistoryEntry:
    """
    A previous version of a message body.

    Attributes:
        content: The body as it was before the edit
        edited_at: When that body was written (creation time for the
            first version, previous edit time for later ones)
    """

    content: str
    edited_at: datetime

    def to_dict(self) -> dict[str, str]:
        return {"content": self.content, "editedAt": self.edited_at.isoformat()}

    @classmethod
    def from_dict(cls, data: dict) -> EditHistoryEntry:
        return cls(content=data["content"], edited_at=parse_datetime(data["editedAt"]))


class Room(UUIDPrimaryKeyMixin, BaseModel):
    """
    Topic room that users join explicitly.

    Fields:
        name: Display name, unique case-insensitively
        description: Optional short description
        is_private: Private rooms are visible only to members
        created_by: Creator, always a member while the room has members

    Constraints:
        - UniqueConstraint(Lower(name)): "General" and "general" collide
    """

    name = models.CharField(
        max_length=ROOM_CONFIG.NAME_MAX_LENGTH,
        help_text="Room name (1-50 chars: letters, digits, spaces, - _ #)",
    )
    description = models.CharField(
        max_length=ROOM_CONFIG.DESCRIPTION_MAX_LENGTH,
        blank=True,
        default="",
        help_text="Optional room description",
    )
    is_private = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Private rooms are visible only to their members",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_rooms",
        help_text="User who created the room",
    )
    members = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through="Membership",
        related_name="rooms",
    )

    class Meta:
        db_table = "chat_room"
        ordering = ["-updated_at"]
        constraints = [
            models.UniqueConstraint(
                Lower("name"),
                name="unique_room_name_case_insensitive",
            ),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def visibility(self) -> str:
        return "private" if self.is_private else "public"


class Membership(BaseModel):
    """
    Persisted fact that a user belongs to a room.

    Distinct from transport presence: a member may be offline, and a
    connection may only join a room's socket group when a Membership exists.

    Fields:
        user: Member
        room: Room
        joined_at: When the membership was created
        last_read_at: Last time the member read the room's history

    Constraints:
        - UniqueConstraint(user, room): at most one row per pair
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="memberships",
        help_text="Member",
    )
    room = models.ForeignKey(
        Room,
        on_delete=models.CASCADE,
        related_name="memberships",
        help_text="Room the user belongs to",
    )
    joined_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user joined the room",
    )
    last_read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last time the member read the room (for unread counts)",
    )

    class Meta:
        db_table = "chat_membership"
        ordering = ["joined_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "room"],
                name="unique_room_membership",
            ),
        ]

    def __str__(self) -> str:
        return f"Membership: {self.user_id} in {self.room_id}"


class EditableMessage(UUIDPrimaryKeyMixin, SoftDeleteMixin, BaseModel):
    """
    Shared shape of room and direct messages.

    Fields:
        content: Current body (placeholder once deleted)
        edited_at: Time of the latest edit, null if never edited
        edit_history: JSON list of prior versions, oldest first

    Managers:
        objects: Excludes soft-deleted rows
        all_objects: Everything, for admin and audits
    """

    content = models.TextField(
        help_text="Message body",
    )
    edited_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the message was last edited",
    )
    edit_history = models.JSONField(
        default=list,
        blank=True,
        help_text="Prior versions as [{content, editedAt}], oldest first",
    )

    objects = SoftDeleteManager()
    all_objects = models.Manager()

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    @property
    def owner_id(self) -> uuid.UUID:
        raise NotImplementedError

    @property
    def history(self) -> list[EditHistoryEntry]:
        return [EditHistoryEntry.from_dict(item) for item in self.edit_history]

    @property
    def is_edited(self) -> bool:
        return self.edited_at is not None

    def apply_edit(self, new_content: str) -> EditHistoryEntry:
        """
        Replace the body, recording the previous version first.

        The recorded timestamp is the moment the previous body was written:
        ``created_at`` for the original, ``edited_at`` for later versions.
        Does not save.

        Returns:
            The appended history entry
        """
        entry = EditHistoryEntry(
            content=self.content,
            edited_at=self.edited_at or self.created_at,
        )
        self.edit_history = [*self.edit_history, entry.to_dict()]
        self.content = new_content
        self.edited_at = timezone.now()
        return entry

    def on_soft_delete(self) -> list[str]:
        self.content = MESSAGE_CONFIG.DELETED_PLACEHOLDER
        return ["content"]


class Message(EditableMessage):
    """
    Room-scoped message.

    Fields:
        room: Room the message was posted in
        author: User who wrote it
    """

    room = models.ForeignKey(
        Room,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Room the message belongs to",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="User who wrote the message",
    )

    class Meta(EditableMessage.Meta):
        db_table = "chat_message"
        indexes = [
            models.Index(
                fields=["room", "-created_at"],
                name="chat_msg_room_created_idx",
            ),
            models.Index(
                fields=["author", "-created_at"],
                name="chat_msg_author_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Message {self.id} in {self.room_id}"

    @property
    def owner_id(self) -> uuid.UUID:
        return self.author_id


class DirectMessage(EditableMessage):
    """
    Message between two users.

    The conversation is implicit in the unordered (sender, receiver) pair.

    Fields:
        sender: User who wrote it
        receiver: Recipient
    """

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_direct_messages",
        help_text="User who wrote the message",
    )
    receiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="received_direct_messages",
        help_text="User the message was sent to",
    )

    class Meta(EditableMessage.Meta):
        db_table = "chat_direct_message"
        indexes = [
            models.Index(
                fields=["sender", "receiver", "-created_at"],
                name="chat_dm_pair_created_idx",
            ),
            models.Index(
                fields=["receiver", "-created_at"],
                name="chat_dm_receiver_created_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(sender=models.F("receiver")),
                name="chat_dm_sender_not_receiver",
            ),
        ]

    def __str__(self) -> str:
        return f"DirectMessage {self.id} {self.sender_id} -> {self.receiver_id}"

    @property
    def owner_id(self) -> uuid.UUID:
        return self.sender_id

    def other_participant_id(self, user_id) -> uuid.UUID:
        """Return the participant that is not ``user_id``."""
        return self.receiver_id if str(self.sender_id) == str(user_id) else self.sender_id
