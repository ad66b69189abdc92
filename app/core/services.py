"""
Service layer primitives shared by every app.

This module provides two building blocks:
- ServiceResult: success/failure wrapper returned by service methods
- BaseService: base class with logging and transaction helpers

Service Layer Philosophy:
    Services own the business rules. Views and socket handlers translate
    transport concerns (HTTP status codes, socket events) and never decide
    who may do what.

Pattern Comparison:
    - ServiceResult: expected failures (validation, ownership, not found)
    - Exceptions: unexpected failures (database down, programming errors)

Usage:
    from core.services import BaseService, ServiceResult

    class RoomService(BaseService):
        @classmethod
        def create_room(cls, user, name: str) -> ServiceResult[Room]:
            if Room.objects.filter(name__iexact=name).exists():
                return ServiceResult.failure(
                    "Room name already taken",
                    error_code="ROOM_NAME_TAKEN",
                )

            with cls.atomic():
                room = Room.objects.create(name=name, created_by=user)
                Membership.objects.create(user=user, room=room)

            cls.get_logger().info(f"Created room {room.id}")
            return ServiceResult.success(room)

    # In a view
    result = RoomService.create_room(request.user, name)
    if result.success:
        return Response(RoomSerializer(result.data).data, status=201)
    return Response(result.to_response(), status=400)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Callable, Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Human-readable error message if failed
        error_code: Machine-readable code, sent verbatim to clients
        errors: Field-level errors for validation failures

    Usage:
        result = MessageService.edit_message(message_id, user, content)
        if not result:
            emit_error(result.error, result.error_code)
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)

        Returns:
            ServiceResult with success=False and error details

        Example:
            return ServiceResult.failure(
                "Message not found",
                error_code="MESSAGE_NOT_FOUND",
            )
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        Returns:
            Dict with success status and data or error details
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def map(self, func: Callable[[T], Any]) -> ServiceResult:
        """
        Transform the data if successful, return self unchanged otherwise.

        Example:
            result = RoomService.get_room(room_id, user)
            serialized = result.map(lambda room: RoomSerializer(room).data)
        """
        if self.success and self.data is not None:
            return ServiceResult.success(func(self.data))
        return self  # type: ignore

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Services are stateless: every method is a classmethod and all state
    lives in the database or the presence store.

    Usage:
        class MembershipService(BaseService):
            @classmethod
            def join(cls, user, room) -> ServiceResult[Membership]:
                with cls.atomic():
                    membership, _ = Membership.objects.get_or_create(
                        user=user, room=room
                    )
                cls.get_logger().info(f"User {user.id} joined room {room.id}")
                return ServiceResult.success(membership)
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the service class, e.g. ``chat.services.RoomService``."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Thin wrapper around Django's transaction.atomic() that makes
        transaction boundaries explicit in service code.

        Example:
            with cls.atomic():
                message = Message.objects.select_for_update().get(pk=pk)
                message.apply_edit(content)
        """
        with transaction.atomic():
            yield

    @classmethod
    def validate_required(cls, **kwargs: Any) -> ServiceResult | None:
        """
        Validate that required fields are provided.

        Args:
            **kwargs: Field names mapped to their values. Each key is
                upper-cased into a ``MISSING_<KEY>`` error code.

        Returns:
            ServiceResult.failure for the first missing field, None otherwise

        Example:
            missing = cls.validate_required(receiver_id=receiver_id)
            if missing:
                return missing  # error_code="MISSING_RECEIVER_ID"
        """
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                label = field_name.replace("_", " ").capitalize()
                return ServiceResult.failure(
                    f"{label} is required",
                    error_code=f"MISSING_{field_name.upper()}",
                    errors={field_name: ["This field is required."]},
                )
        return None
