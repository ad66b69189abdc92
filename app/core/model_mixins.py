"""
Model mixins providing reusable functionality for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    SoftDeleteMixin: Soft delete support (is_deleted, deleted_at)

Usage:
    from core.models import BaseModel
    from core.model_mixins import SoftDeleteMixin, UUIDPrimaryKeyMixin

    class Message(UUIDPrimaryKeyMixin, SoftDeleteMixin, BaseModel):
        content = models.TextField()

Note:
    - Always list mixins before BaseModel in inheritance
    - SoftDeleteMixin requires SoftDeleteManager (see core.managers)
"""

from __future__ import annotations

import uuid

from django.db import models
from django.utils import timezone


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Chat identifiers travel over the socket and appear in direct
    conversation pair keys, so they must be non-guessable and stable
    across nodes.

    Fields:
        id: UUIDField as primary key (auto-generated)
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class SoftDeleteMixin(models.Model):
    """
    Soft delete support for models.

    Instead of removing rows, marks them deleted. Subclasses can override
    ``on_soft_delete()`` to scrub visible data (for example replacing a
    message body with a placeholder); the fields it returns are saved in
    the same UPDATE as the deletion flag.

    Fields:
        is_deleted: Boolean flag indicating soft delete status
        deleted_at: Timestamp when the record was soft deleted

    Usage:
        from core.managers import SoftDeleteManager

        class Message(SoftDeleteMixin, BaseModel):
            objects = SoftDeleteManager()   # Excludes deleted by default
            all_objects = models.Manager()  # For admin access

        message.soft_delete()
        Message.objects.filter(pk=message.pk).exists()  # False
        Message.all_objects.get(pk=message.pk).is_deleted  # True
    """

    is_deleted = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether this record has been soft deleted",
    )
    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp when this record was soft deleted",
    )

    class Meta:
        abstract = True

    def on_soft_delete(self) -> list[str]:
        """
        Hook called right before the deletion flag is persisted.

        Returns:
            Names of any additional fields the hook modified
        """
        return []

    def soft_delete(self) -> None:
        """
        Mark this record as deleted.

        Sets is_deleted=True and deleted_at to the current time. Calling it
        on an already deleted record is a no-op.
        """
        if self.is_deleted:
            return
        extra_fields = self.on_soft_delete()
        self.is_deleted = True
        self.deleted_at = timezone.now()
        self.save(
            update_fields=["is_deleted", "deleted_at", "updated_at", *extra_fields]
        )

    def restore(self) -> None:
        """
        Restore a soft-deleted record.

        Only the flag is restored; data scrubbed by ``on_soft_delete()``
        stays scrubbed.
        """
        self.is_deleted = False
        self.deleted_at = None
        self.save(update_fields=["is_deleted", "deleted_at", "updated_at"])

    def hard_delete(self) -> None:
        """
        Permanently delete this record.

        Warning:
            This cannot be undone. Consider soft_delete() instead.
        """
        super().delete()
