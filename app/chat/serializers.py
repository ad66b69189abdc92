"""
Serializers for the chat API and socket payloads.

The same read serializers render REST responses and the bodies of
outbound socket events, so clients parse one shape everywhere. Output
contains only JSON primitives (ids and timestamps as strings) so it can
cross the channel layer.

Serializer Hierarchy:
    UserSummarySerializer: id + username of an author/partner
    RoomSerializer: Room with member count
    RoomCreateSerializer: Input for room creation
    MemberSerializer: Membership with the member's public fields
    MessageSerializer: Room message
    DirectMessageSerializer: Direct message
    EditHistoryEntrySerializer: One prior version of a message
    ConversationSerializer: Derived direct conversation summary
    HistoryQuerySerializer / SearchQuerySerializer: Query parameter input

Design Decisions:
    - Read and write serializers are separate
    - Deleted content is already scrubbed at the model, no per-field masking
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.models import User
from authentication.serializers import PublicUserSerializer
from chat.models import DirectMessage, Membership, Message, Room


class UserSummarySerializer(serializers.ModelSerializer):
    """Minimal user reference embedded in messages."""

    class Meta:
        model = User
        fields = ["id", "username"]
        read_only_fields = fields


class RoomSerializer(serializers.ModelSerializer):
    """
    Room for list and detail views.

    ``member_count`` comes from RoomService.visible_rooms() annotation and
    falls back to a count query for rooms loaded without it.
    """

    created_by = UserSummarySerializer(read_only=True)
    member_count = serializers.SerializerMethodField()

    class Meta:
        model = Room
        fields = [
            "id",
            "name",
            "description",
            "is_private",
            "created_by",
            "member_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_member_count(self, obj: Room) -> int:
        count = getattr(obj, "member_count", None)
        if count is None:
            count = obj.memberships.count()
        return count


class MemberSerializer(serializers.ModelSerializer):
    """A room member with membership timestamps."""

    user = PublicUserSerializer(read_only=True)

    class Meta:
        model = Membership
        fields = ["user", "joined_at", "last_read_at"]
        read_only_fields = fields


class RoomCreateSerializer(serializers.Serializer):
    """
    Input for room creation.

    Shape checks only; naming rules and uniqueness live in RoomService.
    """

    name = serializers.CharField(max_length=50, trim_whitespace=True)
    description = serializers.CharField(
        max_length=200, required=False, allow_blank=True, default=""
    )
    is_private = serializers.BooleanField(required=False, default=False)


class EditHistoryEntrySerializer(serializers.Serializer):
    content = serializers.CharField()
    edited_at = serializers.DateTimeField()


class MessageSerializer(serializers.ModelSerializer):
    """Room message with its author."""

    room_id = serializers.UUIDField(read_only=True)
    author = UserSummarySerializer(read_only=True)
    is_edited = serializers.BooleanField(read_only=True)

    class Meta:
        model = Message
        fields = [
            "id",
            "room_id",
            "author",
            "content",
            "is_deleted",
            "is_edited",
            "edited_at",
            "created_at",
        ]
        read_only_fields = fields


class DirectMessageSerializer(serializers.ModelSerializer):
    """Direct message with both participants."""

    sender = UserSummarySerializer(read_only=True)
    receiver = UserSummarySerializer(read_only=True)
    is_edited = serializers.BooleanField(read_only=True)

    class Meta:
        model = DirectMessage
        fields = [
            "id",
            "sender",
            "receiver",
            "content",
            "is_deleted",
            "is_edited",
            "edited_at",
            "created_at",
        ]
        read_only_fields = fields


class ConversationSerializer(serializers.Serializer):
    """
    Derived direct conversation.

    Expects ``partners`` (id -> User) in the serializer context.
    """

    partner = serializers.SerializerMethodField()
    last_message = serializers.SerializerMethodField()
    unread_count = serializers.IntegerField()
    last_activity = serializers.DateTimeField()

    def get_partner(self, obj) -> dict | None:
        partner = self.context.get("partners", {}).get(obj.partner_id)
        if partner is None:
            return {"id": obj.partner_id, "username": None}
        return UserSummarySerializer(partner).data

    def get_last_message(self, obj) -> dict:
        return DirectMessageSerializer(obj.last_message).data


def message_payload(message: Message) -> dict:
    """Socket payload for a room message (author must be loaded)."""
    return dict(MessageSerializer(message).data)


def direct_message_payload(message: DirectMessage) -> dict:
    """Socket payload for a direct message (sender/receiver must be loaded)."""
    return dict(DirectMessageSerializer(message).data)


class HistoryQuerySerializer(serializers.Serializer):
    """Query parameters for paging back through message history."""

    before = serializers.DateTimeField(required=False)
    limit = serializers.IntegerField(
        required=False, min_value=1, max_value=50, default=50
    )


class SearchQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=200, trim_whitespace=True)
