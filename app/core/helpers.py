"""
Small stateless helpers shared across apps.

Functions:
    parse_uuid: Coerce client input into a UUID, or None
"""

from __future__ import annotations

import uuid
from typing import Any


def parse_uuid(value: Any) -> uuid.UUID | None:
    """
    Coerce a client-supplied identifier into a UUID.

    Socket payloads carry ids as strings; anything malformed becomes None
    so lookups can treat it as "not found" instead of raising.

    Example:
        parse_uuid("550e8400-e29b-41d4-a716-446655440000")  # UUID(...)
        parse_uuid("42")                                    # None
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None
