"""
Message content validation.

MessageValidator turns raw client input into either sanitized content or
a failure carrying a wire error code. The structural checks (non-empty,
length) are fixed; content policies are pluggable callables so deployments
can add or drop rules without touching the delivery path.

Check order:
    1. Empty after trim          -> INVALID_MESSAGE_CONTENT
    2. Longer than the maximum   -> MESSAGE_TOO_LONG
    3. Sanitize
    4. Empty after sanitizing    -> MESSAGE_VALIDATION_ERROR
    5. Each policy in order      -> MESSAGE_VALIDATION_ERROR

Usage:
    from chat.validation import MessageValidator

    result = MessageValidator.default().validate(content, author_id)
    if not result:
        return emit_error(result.error, result.error_code)
    content = result.data
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from django.utils import timezone

from chat.constants import ERROR_CODES, MESSAGE_CONFIG
from core.services import ServiceResult

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from typing import Any

    # (content, author_id) -> error message or None
    ContentPolicy = Callable[[str, Any], "str | None"]

logger = logging.getLogger(__name__)


# =============================================================================
# Sanitizing
# =============================================================================

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_JAVASCRIPT_URL = re.compile(r"javascript:", re.IGNORECASE)
_INLINE_HANDLER = re.compile(r"\bon\w+\s*=", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_REPEATED_CHAR = re.compile(r"(.)\1{4,}")


def sanitize_content(content: str) -> str:
    """
    Normalize message text.

    Collapses whitespace, strips script blocks, ``javascript:`` URLs and
    inline ``on*=`` handlers, and squeezes runs of one character to at
    most four.
    """
    content = _WHITESPACE.sub(" ", content).strip()
    content = _SCRIPT_BLOCK.sub("", content)
    content = _JAVASCRIPT_URL.sub("", content)
    content = _INLINE_HANDLER.sub("", content)
    content = _REPEATED_CHAR.sub(lambda m: m.group(1) * 4, content)
    return content.strip()


# =============================================================================
# Policies
# =============================================================================


def spam_policy(content: str, author_id: Any) -> str | None:
    """
    Heuristic spam detection.

    Flags heavy word repetition, shouting and symbol noise.
    """
    words = content.lower().split()
    if len(words) > 5 and len(set(words)) / len(words) < 0.3:
        return "Message appears to be spam"

    if len(content) > 10:
        letters = [c for c in content if c.isalpha()]
        uppercase = sum(1 for c in letters if c.isupper())
        if letters and uppercase / len(content) > 0.7:
            return "Message appears to be spam"

    # Short replies like "ok?" are exempt from the symbol ratio
    special = sum(1 for c in content if not (c.isalnum() or c.isspace()))
    if len(content) > 10 and special / len(content) > 0.3:
        return "Message appears to be spam"

    return None


def rate_limit_policy(content: str, author_id: Any) -> str | None:
    """
    Limit how many messages one author may send per window.

    Counts room and direct messages together, including deleted ones.
    """
    from chat.models import DirectMessage, Message

    since = timezone.now() - timedelta(seconds=MESSAGE_CONFIG.RATE_LIMIT_WINDOW_SECONDS)
    sent = (
        Message.all_objects.filter(author_id=author_id, created_at__gte=since).count()
        + DirectMessage.all_objects.filter(
            sender_id=author_id, created_at__gte=since
        ).count()
    )
    if sent >= MESSAGE_CONFIG.RATE_LIMIT_MESSAGES:
        logger.info(f"Rate limit hit by user {author_id}: {sent} messages")
        return "Rate limit exceeded. Please slow down."
    return None


DEFAULT_POLICIES: tuple[ContentPolicy, ...] = (rate_limit_policy, spam_policy)


# =============================================================================
# Validator
# =============================================================================


@dataclass
class MessageValidator:
    """
    Validates and sanitizes message content.

    Attributes:
        max_length: Maximum length of the raw (trimmed) content
        sanitizer: Normalization applied before policies run
        policies: Content rules; each returns an error message or None
    """

    max_length: int = MESSAGE_CONFIG.MAX_CONTENT_LENGTH
    sanitizer: Callable[[str], str] = sanitize_content
    policies: Sequence[ContentPolicy] = field(default_factory=tuple)

    @classmethod
    def default(cls) -> MessageValidator:
        return cls(policies=DEFAULT_POLICIES)

    def validate(self, content: Any, author_id: Any = None) -> ServiceResult[str]:
        """
        Validate message content.

        Args:
            content: Raw content from the client (any type)
            author_id: Author, passed to policies

        Returns:
            ServiceResult whose data is the sanitized content
        """
        if not isinstance(content, str) or not content.strip():
            return ServiceResult.failure(
                "Message content is required",
                error_code=ERROR_CODES.INVALID_MESSAGE_CONTENT,
            )

        content = content.strip()
        if len(content) > self.max_length:
            return ServiceResult.failure(
                f"Message too long (max {self.max_length} characters)",
                error_code=ERROR_CODES.MESSAGE_TOO_LONG,
            )

        sanitized = self.sanitizer(content)
        if not sanitized:
            return ServiceResult.failure(
                "Message content is empty after sanitization",
                error_code=ERROR_CODES.MESSAGE_VALIDATION_ERROR,
            )

        for policy in self.policies:
            error = policy(sanitized, author_id)
            if error:
                return ServiceResult.failure(
                    error, error_code=ERROR_CODES.MESSAGE_VALIDATION_ERROR
                )

        return ServiceResult.success(sanitized)
