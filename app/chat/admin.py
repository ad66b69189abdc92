"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Room management with inline memberships
- Message moderation, deleted rows included
"""

from django.contrib import admin

from chat.models import DirectMessage, Membership, Message, Room


class MembershipInline(admin.TabularInline):
    """Inline display of members in room admin."""

    model = Membership
    extra = 0
    readonly_fields = ["joined_at", "last_read_at"]
    raw_id_fields = ["user"]


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ["name", "is_private", "created_by", "created_at", "updated_at"]
    list_filter = ["is_private", "created_at"]
    search_fields = ["name", "description"]
    readonly_fields = ["created_at", "updated_at"]
    raw_id_fields = ["created_by"]
    inlines = [MembershipInline]
    ordering = ["-updated_at"]


class EditableMessageAdmin(admin.ModelAdmin):
    """Shared admin for room and direct messages."""

    list_filter = ["is_deleted", "created_at"]
    search_fields = ["content"]
    readonly_fields = [
        "created_at",
        "updated_at",
        "edited_at",
        "edit_history",
        "deleted_at",
    ]
    ordering = ["-created_at"]

    def get_queryset(self, request):
        return self.model.all_objects.all()

    @admin.display(description="Content Preview")
    def content_preview(self, obj) -> str:
        """Return truncated content for list display."""
        max_length = 50
        if len(obj.content) > max_length:
            return obj.content[:max_length] + "..."
        return obj.content


@admin.register(Message)
class MessageAdmin(EditableMessageAdmin):
    list_display = ["id", "room", "author", "content_preview", "is_deleted", "created_at"]
    raw_id_fields = ["room", "author"]


@admin.register(DirectMessage)
class DirectMessageAdmin(EditableMessageAdmin):
    list_display = [
        "id",
        "sender",
        "receiver",
        "content_preview",
        "is_deleted",
        "created_at",
    ]
    raw_id_fields = ["sender", "receiver"]
