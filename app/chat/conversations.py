"""
Direct conversation identity and unread aggregation.

Direct conversations are never stored as rows. Two pure pieces derive
them from DirectMessage records:

pair_key(a, b):
    Deterministic name for the two-party conversation: the two user ids
    in canonical UUID form (lower case, hyphenated), sorted, joined with
    "-". Both participants compute the
    same key no matter who initiates, so their socket joins land in the
    same group. Implementations on other nodes or clients must reproduce
    this exact sort-then-join rule.

ConversationTracker:
    Groups a viewer's direct messages by the other participant, keeps the
    latest message per partner and counts unread messages. A message is
    unread when the viewer is its receiver and its conversation was not
    the active one when it arrived. Making a conversation active resets
    its count to zero.

Usage:
    tracker = ConversationTracker(viewer_id=user.id)
    tracker.load(DirectMessage.objects.involving(user).order_by("created_at"))
    tracker.set_active(partner_id)
    tracker.total_unread
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.helpers import parse_uuid

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from typing import Any

    from chat.models import DirectMessage


def _canonical_id(user_id: Any) -> str:
    parsed = parse_uuid(user_id)
    return str(parsed) if parsed is not None else str(user_id)


def pair_key(user_a: Any, user_b: Any) -> str:
    """Order-independent key for the conversation between two users."""
    return "-".join(sorted([_canonical_id(user_a), _canonical_id(user_b)]))


@dataclass
class ConversationSummary:
    """Derived state of one direct conversation, seen by the viewer."""

    partner_id: str
    last_message: DirectMessage
    unread_count: int = 0

    @property
    def last_activity(self) -> datetime:
        return self.last_message.created_at


class ConversationTracker:
    """
    Per-viewer direct conversation state.

    Messages must be fed in the order they were created.
    """

    def __init__(self, viewer_id: Any, active_partner_id: Any = None):
        self.viewer_id = str(viewer_id)
        self.active_partner_id = (
            str(active_partner_id) if active_partner_id is not None else None
        )
        self._conversations: dict[str, ConversationSummary] = {}

    def load(self, messages: Iterable[DirectMessage]) -> ConversationTracker:
        """Rebuild state from scratch from chronologically ordered messages."""
        self._conversations.clear()
        for message in messages:
            self.receive(message)
        return self

    def receive(self, message: DirectMessage) -> None:
        """
        Account for one new message involving the viewer.

        Messages not involving the viewer are ignored.
        """
        sender_id = str(message.sender_id)
        receiver_id = str(message.receiver_id)
        if self.viewer_id not in (sender_id, receiver_id):
            return

        partner_id = receiver_id if sender_id == self.viewer_id else sender_id
        summary = self._conversations.get(partner_id)
        if summary is None:
            summary = ConversationSummary(partner_id=partner_id, last_message=message)
            self._conversations[partner_id] = summary
        else:
            summary.last_message = message

        if receiver_id == self.viewer_id and partner_id != self.active_partner_id:
            summary.unread_count += 1

    def set_active(self, partner_id: Any) -> None:
        """Make a conversation active and mark it read."""
        self.active_partner_id = str(partner_id) if partner_id is not None else None
        if self.active_partner_id in self._conversations:
            self._conversations[self.active_partner_id].unread_count = 0

    def unread_count(self, partner_id: Any) -> int:
        summary = self._conversations.get(str(partner_id))
        return summary.unread_count if summary else 0

    @property
    def total_unread(self) -> int:
        return sum(summary.unread_count for summary in self._conversations.values())

    def conversations(self) -> list[ConversationSummary]:
        """Summaries sorted by last activity, most recent first."""
        return sorted(
            self._conversations.values(),
            key=lambda summary: summary.last_activity,
            reverse=True,
        )
