"""
Redis-backed presence store.

Tracks the ephemeral side of chat state that must be shared by every
server process holding sockets:
- User status (online, away, offline) with TTL-based expiry
- Which connections a user currently holds (multi-device)
- Which rooms each connection is transport-joined to
- Who is typing in which room (auto-expiring)

Key layout:
    presence:user:{user_id}             hash   status, connection_id, last_seen
    presence:user:{user_id}:conns       set    connection ids
    presence:conn:{connection_id}:alive string owning user id, heartbeat TTL
    presence:conn:{connection_id}:rooms set    room ids joined by the connection
    presence:room:{room_id}             set    "{user_id}|{connection_id}"
    typing:{room_id}:{user_id}          string expires after TYPING_TTL_SECONDS

Design Decisions:
    - Every mutation is an add/remove on a set or a keyed write with TTL,
      so concurrent calls from several connections commute
    - A connection counts as live only while its ``alive`` key exists;
      ids of connections that died without a disconnect are filtered out
      of every read and pruned by the maintenance task
    - Room presence is recorded per connection; removing one connection
      never removes another connection's entry for the same user
    - Multi-key updates go through pipelines (MULTI/EXEC), not Lua
    - Status changes are not broadcast here; the caller decides who to tell

Usage:
    from chat.presence import get_presence_store

    store = get_presence_store()
    await store.set_online(user_id, channel_name)
    await store.add_user_to_room(user_id, room_id, channel_name)
    rooms = await store.get_rooms_for_user(user_id)
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING

import redis.asyncio as aioredis
from asgiref.sync import async_to_sync
from django.conf import settings
from django.utils import timezone

from authentication.models import UserStatus
from chat.constants import PRESENCE_CONFIG

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

_MEMBER_SEPARATOR = "|"


class PresenceStore:
    """
    Presence operations over an async Redis client.

    The client must be created with ``decode_responses=True``.
    """

    def __init__(self, client: aioredis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> PresenceStore:
        return cls(aioredis.from_url(url, decode_responses=True))

    @classmethod
    def from_settings(cls) -> PresenceStore:
        return cls.from_url(settings.PRESENCE_REDIS_URL)

    async def close(self) -> None:
        await self.client.aclose()

    # =========================================================================
    # Key builders
    # =========================================================================

    @staticmethod
    def _user_key(user_id: Any) -> str:
        return f"{PRESENCE_CONFIG.KEY_PREFIX_USER}:{user_id}"

    @staticmethod
    def _user_connections_key(user_id: Any) -> str:
        return f"{PRESENCE_CONFIG.KEY_PREFIX_USER}:{user_id}:conns"

    @staticmethod
    def _connection_rooms_key(connection_id: str) -> str:
        return f"{PRESENCE_CONFIG.KEY_PREFIX_CONNECTION}:{connection_id}:rooms"

    @staticmethod
    def _connection_alive_key(connection_id: str) -> str:
        return f"{PRESENCE_CONFIG.KEY_PREFIX_CONNECTION}:{connection_id}:alive"

    @staticmethod
    def _room_key(room_id: Any) -> str:
        return f"{PRESENCE_CONFIG.KEY_PREFIX_ROOM}:{room_id}"

    @staticmethod
    def _typing_key(room_id: Any, user_id: Any) -> str:
        return f"{PRESENCE_CONFIG.KEY_PREFIX_TYPING}:{room_id}:{user_id}"

    @staticmethod
    def _room_member(user_id: Any, connection_id: str) -> str:
        return f"{user_id}{_MEMBER_SEPARATOR}{connection_id}"

    # =========================================================================
    # Status
    # =========================================================================

    async def _refresh_connection(self, pipe, user_id: Any, connection_id: str) -> None:
        """Queue the TTL refresh of every key the connection owns."""
        ttl = PRESENCE_CONFIG.ONLINE_TTL_SECONDS
        conns_key = self._user_connections_key(user_id)
        rooms_key = self._connection_rooms_key(connection_id)

        pipe.set(self._connection_alive_key(connection_id), str(user_id), ex=ttl)
        pipe.sadd(conns_key, connection_id)
        pipe.expire(conns_key, ttl)
        pipe.expire(rooms_key, ttl)
        for room_id in await self.client.smembers(rooms_key):
            pipe.expire(self._room_key(room_id), ttl)

    async def set_online(self, user_id: Any, connection_id: str) -> None:
        """
        Mark the user online and register the connection.

        Also serves as the heartbeat: calling it again refreshes every TTL
        the connection owns.
        """
        user_key = self._user_key(user_id)

        async with self.client.pipeline(transaction=True) as pipe:
            pipe.hset(
                user_key,
                mapping={
                    "status": UserStatus.ONLINE.value,
                    "connection_id": connection_id,
                    "last_seen": timezone.now().isoformat(),
                },
            )
            pipe.expire(user_key, PRESENCE_CONFIG.ONLINE_TTL_SECONDS)
            await self._refresh_connection(pipe, user_id, connection_id)
            await pipe.execute()

    async def touch(self, user_id: Any, connection_id: str) -> None:
        """Refresh TTLs for a live connection without changing the status."""
        user_key = self._user_key(user_id)
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.hset(user_key, "last_seen", timezone.now().isoformat())
            pipe.expire(user_key, PRESENCE_CONFIG.ONLINE_TTL_SECONDS)
            await self._refresh_connection(pipe, user_id, connection_id)
            await pipe.execute()

    async def set_away(self, user_id: Any) -> None:
        user_key = self._user_key(user_id)
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.hset(
                user_key,
                mapping={
                    "status": UserStatus.AWAY.value,
                    "last_seen": timezone.now().isoformat(),
                },
            )
            pipe.expire(user_key, PRESENCE_CONFIG.ONLINE_TTL_SECONDS)
            await pipe.execute()

    async def set_offline(self, user_id: Any) -> None:
        """
        Mark the user offline.

        The record is kept for OFFLINE_TTL_SECONDS so ``last_seen`` stays
        readable after disconnect.
        """
        user_key = self._user_key(user_id)
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.hset(
                user_key,
                mapping={
                    "status": UserStatus.OFFLINE.value,
                    "last_seen": timezone.now().isoformat(),
                },
            )
            pipe.hdel(user_key, "connection_id")
            pipe.expire(user_key, PRESENCE_CONFIG.OFFLINE_TTL_SECONDS)
            await pipe.execute()

    async def set_status(self, user_id: Any, status: str, connection_id: str) -> None:
        """Dispatch to the setter matching ``status``."""
        if status == UserStatus.ONLINE:
            await self.set_online(user_id, connection_id)
        elif status == UserStatus.AWAY:
            await self.set_away(user_id)
        else:
            await self.set_offline(user_id)

    async def get_status(self, user_id: Any) -> str | None:
        return await self.client.hget(self._user_key(user_id), "status")

    async def get_last_seen(self, user_id: Any) -> str | None:
        return await self.client.hget(self._user_key(user_id), "last_seen")

    # =========================================================================
    # Connections
    # =========================================================================

    async def _live(self, connection_ids) -> set[str]:
        """Subset of ``connection_ids`` whose liveness key has not expired."""
        connection_ids = sorted(connection_ids)
        if not connection_ids:
            return set()
        async with self.client.pipeline(transaction=False) as pipe:
            for conn in connection_ids:
                pipe.exists(self._connection_alive_key(conn))
            flags = await pipe.execute()
        return {conn for conn, alive in zip(connection_ids, flags) if alive}

    async def get_registered_connection_ids(self, user_id: Any) -> set[str]:
        """Every connection id recorded for the user, dead or alive."""
        return set(await self.client.smembers(self._user_connections_key(user_id)))

    async def get_user_connection_ids(self, user_id: Any) -> set[str]:
        """Connections of the user that heartbeated within ONLINE_TTL_SECONDS."""
        return await self._live(await self.get_registered_connection_ids(user_id))

    async def get_user_connection_id(self, user_id: Any) -> str | None:
        """
        Most recently registered live connection of the user, if any.

        Falls back to any other live connection when the most recent one
        has already gone away.
        """
        connections = await self.get_user_connection_ids(user_id)
        if not connections:
            return None
        latest = await self.client.hget(self._user_key(user_id), "connection_id")
        if latest in connections:
            return latest
        return sorted(connections)[0]

    async def remove_connection(self, user_id: Any, connection_id: str) -> set[str]:
        """
        Forget one connection and every room entry it held.

        Safe to call repeatedly; a second call finds nothing to remove.

        Returns:
            Room ids the connection was present in
        """
        rooms_key = self._connection_rooms_key(connection_id)
        rooms = set(await self.client.smembers(rooms_key))
        member = self._room_member(user_id, connection_id)

        async with self.client.pipeline(transaction=True) as pipe:
            for room_id in rooms:
                pipe.srem(self._room_key(room_id), member)
            pipe.delete(rooms_key, self._connection_alive_key(connection_id))
            pipe.srem(self._user_connections_key(user_id), connection_id)
            await pipe.execute()

        return rooms

    async def purge_user(self, user_id: Any) -> set[str]:
        """
        Forget every connection of the user, including ones that died
        without a disconnect, together with their room entries.

        Returns:
            Room ids any of the connections was present in
        """
        rooms: set[str] = set()
        for conn in await self.get_registered_connection_ids(user_id):
            rooms |= await self.remove_connection(user_id, conn)
        await self.client.delete(self._user_connections_key(user_id))
        return rooms

    async def prune_user_connections(self, user_id: Any) -> set[str]:
        """
        Drop the user's connections whose liveness key has expired.

        Returns:
            The pruned connection ids
        """
        registered = await self.get_registered_connection_ids(user_id)
        dead = registered - await self._live(registered)
        for conn in dead:
            await self.remove_connection(user_id, conn)
        if dead:
            logger.info(f"Pruned {len(dead)} dead connections of user {user_id}")
        return dead

    async def prune_rooms(self) -> int:
        """
        Remove room entries held by dead connections in every room.

        Returns:
            Number of entries removed
        """
        removed = 0
        async for room_key in self.client.scan_iter(
            match=f"{PRESENCE_CONFIG.KEY_PREFIX_ROOM}:*"
        ):
            members = await self.client.smembers(room_key)
            by_conn = {member.split(_MEMBER_SEPARATOR, 1)[-1]: member for member in members}
            live = await self._live(by_conn)
            stale = [member for conn, member in by_conn.items() if conn not in live]
            if stale:
                removed += await self.client.srem(room_key, *stale)
        return removed

    # =========================================================================
    # Room presence
    # =========================================================================

    async def add_user_to_room(
        self, user_id: Any, room_id: Any, connection_id: str
    ) -> None:
        """
        Record that the connection is transport-joined to the room.

        Callers must have checked Membership first. Both sets expire with
        the connection unless it keeps heartbeating.
        """
        ttl = PRESENCE_CONFIG.ONLINE_TTL_SECONDS
        rooms_key = self._connection_rooms_key(connection_id)
        room_key = self._room_key(room_id)
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.sadd(rooms_key, str(room_id))
            pipe.expire(rooms_key, ttl)
            pipe.sadd(room_key, self._room_member(user_id, connection_id))
            pipe.expire(room_key, ttl)
            await pipe.execute()

    async def remove_user_from_room(
        self, user_id: Any, room_id: Any, connection_id: str | None = None
    ) -> None:
        """
        Remove room presence for one connection, or for all of the user's
        connections when ``connection_id`` is omitted.
        """
        if connection_id is None:
            connections = await self.get_registered_connection_ids(user_id)
        else:
            connections = {connection_id}

        async with self.client.pipeline(transaction=True) as pipe:
            for conn in connections:
                pipe.srem(self._connection_rooms_key(conn), str(room_id))
                pipe.srem(self._room_key(room_id), self._room_member(user_id, conn))
            await pipe.execute()

    async def get_rooms_for_user(self, user_id: Any) -> set[str]:
        """Union of the rooms joined by any of the user's live connections."""
        connections = await self.get_user_connection_ids(user_id)
        if not connections:
            return set()
        keys = [self._connection_rooms_key(conn) for conn in connections]
        return set(await self.client.sunion(keys))

    async def get_present_members(self, room_id: Any) -> set[tuple[str, str]]:
        """(user_id, connection_id) pairs of live connections in the room."""
        members = {
            tuple(member.split(_MEMBER_SEPARATOR, 1))
            for member in await self.client.smembers(self._room_key(room_id))
        }
        live = await self._live(conn for _, conn in members)
        return {(user_id, conn) for user_id, conn in members if conn in live}

    async def get_users_in_room(self, room_id: Any) -> set[str]:
        return {user_id for user_id, _ in await self.get_present_members(room_id)}

    async def get_connections_in_room(self, room_id: Any) -> set[str]:
        return {conn for _, conn in await self.get_present_members(room_id)}

    async def get_online_users_count_in_room(self, room_id: Any) -> int:
        return len(await self.get_users_in_room(room_id))

    # =========================================================================
    # Typing
    # =========================================================================

    async def set_user_typing(
        self,
        user_id: Any,
        room_id: Any,
        ttl_seconds: int = PRESENCE_CONFIG.TYPING_TTL_SECONDS,
    ) -> None:
        await self.client.set(self._typing_key(room_id, user_id), "1", ex=ttl_seconds)

    async def remove_user_typing(self, user_id: Any, room_id: Any) -> None:
        await self.client.delete(self._typing_key(room_id, user_id))

    async def get_typing_users(self, room_id: Any) -> set[str]:
        prefix = self._typing_key(room_id, "")
        return {
            key[len(prefix):]
            async for key in self.client.scan_iter(match=f"{prefix}*")
        }

    async def clear_user_typing(self, user_id: Any) -> None:
        """Remove the user's typing entries in every room."""
        pattern = self._typing_key("*", user_id)
        keys = [key async for key in self.client.scan_iter(match=pattern)]
        if keys:
            await self.client.delete(*keys)


@lru_cache(maxsize=1)
def get_presence_store() -> PresenceStore:
    """
    Process-wide store used by socket consumers.

    Consumers of one ASGI server share a single event loop, so one client
    (and its connection pool) serves all of them.
    """
    logger.info("Creating presence store client")
    return PresenceStore.from_settings()


def purge_user_presence(user_id: Any) -> set[str]:
    """
    Mark the user offline in presence and forget all their connections.

    For synchronous callers such as the logout view. Uses its own client
    because the caller's thread has no long-lived event loop.

    Returns:
        Room ids the user was present in
    """

    async def purge() -> set[str]:
        store = PresenceStore.from_settings()
        try:
            await store.set_offline(user_id)
            await store.clear_user_typing(user_id)
            return await store.purge_user(user_id)
        finally:
            await store.close()

    return async_to_sync(purge)()
