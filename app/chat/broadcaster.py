"""
Outbound event delivery.

The delivery router never touches the transport directly. It receives a
Broadcaster at construction and asks it to send events to a connection, a
room, or a named group. ChannelLayerBroadcaster implements that over the
Django Channels layer (Redis in production), so events reach sockets held
by any server process.

Channel layer message shape:
    {
        "type": "chat.event",   # handled by ChatConsumer.chat_event
        "event": "message_received",
        "payload": {...},
        "exclude": ["<channel name>", ...],
    }

Usage:
    from chat.broadcaster import ChannelLayerBroadcaster, notify_rooms

    broadcaster = ChannelLayerBroadcaster(get_channel_layer(), presence)
    await broadcaster.send_to_room(room_id, "message_received", payload)

    # From synchronous code (REST views, Celery tasks)
    notify_rooms(room_ids, "user_profile_updated", payload)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from chat.constants import GROUPS

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

    from chat.presence import PresenceStore

logger = logging.getLogger(__name__)

EVENT_MESSAGE_TYPE = "chat.event"


def room_group(room_id: Any) -> str:
    """Channel layer group holding every connection joined to a room."""
    return f"{GROUPS.ROOM_PREFIX}.{room_id}"


def direct_group(pair_key: str) -> str:
    """Channel layer group for a direct conversation pair key."""
    return f"{GROUPS.DIRECT_PREFIX}.{pair_key}"


def excluded_channels(exclude: str | Iterable[str] | None) -> list[str]:
    """Normalize one channel name or a collection of them to a sorted list."""
    if not exclude:
        return []
    if isinstance(exclude, str):
        return [exclude]
    return sorted(exclude)


def build_event(
    event: str, payload: Any, exclude: str | Iterable[str] | None = None
) -> dict:
    return {
        "type": EVENT_MESSAGE_TYPE,
        "event": event,
        "payload": payload,
        "exclude": excluded_channels(exclude),
    }


class Broadcaster(Protocol):
    """Transport operations the delivery router depends on."""

    async def send_to_connection(
        self, connection_id: str, event: str, payload: Any
    ) -> None: ...

    async def send_to_room(
        self,
        room_id: Any,
        event: str,
        payload: Any,
        exclude: str | Iterable[str] | None = None,
    ) -> None: ...

    async def send_to_group(
        self,
        group: str,
        event: str,
        payload: Any,
        exclude: str | Iterable[str] | None = None,
    ) -> None: ...

    async def join_group(self, connection_id: str, group: str) -> None: ...

    async def leave_group(self, connection_id: str, group: str) -> None: ...

    async def fetch_present_connections(self, room_id: Any) -> set[str]: ...


class ChannelLayerBroadcaster:
    """
    Broadcaster backed by a Channels layer.

    Room fan-out is a single group_send per event, so every consumer of a
    room sees events in the order this process emitted them.
    """

    def __init__(self, channel_layer, presence: PresenceStore):
        self.channel_layer = channel_layer
        self.presence = presence

    async def send_to_connection(
        self, connection_id: str, event: str, payload: Any
    ) -> None:
        await self.channel_layer.send(connection_id, build_event(event, payload))

    async def send_to_room(
        self,
        room_id: Any,
        event: str,
        payload: Any,
        exclude: str | Iterable[str] | None = None,
    ) -> None:
        await self.send_to_group(room_group(room_id), event, payload, exclude)

    async def send_to_group(
        self,
        group: str,
        event: str,
        payload: Any,
        exclude: str | Iterable[str] | None = None,
    ) -> None:
        await self.channel_layer.group_send(group, build_event(event, payload, exclude))

    async def join_group(self, connection_id: str, group: str) -> None:
        await self.channel_layer.group_add(group, connection_id)

    async def leave_group(self, connection_id: str, group: str) -> None:
        await self.channel_layer.group_discard(group, connection_id)

    async def fetch_present_connections(self, room_id: Any) -> set[str]:
        return await self.presence.get_connections_in_room(room_id)


def notify_groups(groups: Iterable[str], event: str, payload: Any) -> None:
    """
    Send one event to several groups from synchronous code.

    Delivery failures are logged and swallowed; the caller's database
    work has already been committed.
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning(f"No channel layer configured, dropping {event}")
        return

    message = build_event(event, payload)
    for group in groups:
        try:
            async_to_sync(channel_layer.group_send)(group, message)
        except Exception:
            logger.exception(f"Failed to deliver {event} to {group}")


def notify_rooms(room_ids: Iterable[Any], event: str, payload: Any) -> None:
    """Send one event to every listed room from synchronous code."""
    notify_groups((room_group(room_id) for room_id in room_ids), event, payload)
