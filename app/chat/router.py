"""
Real-time delivery router.

DeliveryRouter maps each inbound socket event to a persistence mutation,
a presence mutation and a recipient set, then emits the outbound event
to exactly those recipients plus the originator.

Collaborators (injected):
    broadcaster: chat.broadcaster.Broadcaster, the only way out to sockets
    presence: chat.presence.PresenceStore, shared ephemeral state
    validator: chat.validation.MessageValidator

Per-action flow:
    send_message            validate -> membership -> persist -> clear typing
                            -> message_received to room + echo
    edit_message            lookup -> owner/24h -> validate -> persist
                            -> message_edited to room + echo
    delete_message          lookup -> owner -> soft delete
                            -> message_deleted{messageId, roomId} to room + echo
    send_direct_message     missing/self checks -> validate -> persist
                            -> direct_message_received to receiver's live
                            connections (skipped when offline)
                            -> direct_message_sent echo
    edit/delete direct      same rules, sent to the other participant + echo
    join_room / leave_room  membership required to join; user_joined /
                            user_left to the other present members, none
                            of the user's own devices; leave by a
                            non-member is denied, leave without a prior
                            join is a no-op
    join/leave direct       partnerId parsed and self-checked, then socket
                            group named by chat.conversations.pair_key
    typing_start / stop     members only, silently ignored otherwise
    update_user_status      persist + presence, user_status_changed to every
                            room the user is a member of + echo
    ping                    refresh presence TTLs, pong

Error handling:
    Expected failures become ``error{message, code}`` to the requester
    only. Any unexpected exception inside a handler is logged and reported
    with the handler's generic *_ERROR code. Nothing is broadcast unless
    every earlier step succeeded. Handlers never raise.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from functools import wraps
from typing import TYPE_CHECKING

from channels.db import database_sync_to_async

from authentication.models import UserStatus
from authentication.services import UserService
from chat.authorization import ChatAuthorizationService
from chat.broadcaster import direct_group, room_group
from chat.constants import ERROR_CODES, EVENTS, GROUPS
from chat.conversations import pair_key
from chat.serializers import direct_message_payload, message_payload
from chat.services import DirectMessageService, MessageService, RoomService
from chat.validation import MessageValidator
from core.helpers import parse_uuid

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from typing import Any

    from authentication.services import Identity
    from chat.broadcaster import Broadcaster
    from chat.presence import PresenceStore
    from core.services import ServiceResult

logger = logging.getLogger(__name__)


def _arg(data: Any, key: str) -> Any:
    """Read ``key`` from a dict payload, or take a bare scalar payload as-is."""
    if isinstance(data, dict):
        return data.get(key)
    return data


def handles(error_code: str, action: str):
    """
    Wrap a router handler so it never raises.

    Unexpected exceptions are logged with the traceback and reported to
    the requester as ``error{message: "Failed to <action>", code}``.
    """

    def decorator(func: Callable[..., Awaitable[None]]):
        @wraps(func)
        async def wrapper(self, identity: Identity, connection_id: str, data: Any = None):
            try:
                await func(self, identity, connection_id, data)
            except Exception:
                logger.exception(
                    f"{func.__name__} failed for user {identity.user_id} "
                    f"on {connection_id}"
                )
                await self.send_error(connection_id, f"Failed to {action}", error_code)

        wrapper.error_code = error_code
        return wrapper

    return decorator


class DeliveryRouter:
    """
    Socket event state machine.

    One router may serve many connections; per-connection state is keyed
    by connection id.
    """

    EVENT_HANDLERS = {
        "join_room": "join_room",
        "leave_room": "leave_room",
        "send_message": "send_message",
        "edit_message": "edit_message",
        "delete_message": "delete_message",
        "send_direct_message": "send_direct_message",
        "edit_direct_message": "edit_direct_message",
        "delete_direct_message": "delete_direct_message",
        "join_direct_conversation": "join_direct_conversation",
        "leave_direct_conversation": "leave_direct_conversation",
        "typing_start": "typing_start",
        "typing_stop": "typing_stop",
        "update_user_status": "update_user_status",
        "ping": "ping",
    }

    def __init__(
        self,
        broadcaster: Broadcaster,
        presence: PresenceStore,
        validator: MessageValidator | None = None,
    ):
        self.broadcaster = broadcaster
        self.presence = presence
        self.validator = validator or MessageValidator.default()
        # Socket groups joined per connection, left again on disconnect
        self._groups: dict[str, set[str]] = defaultdict(set)

    # =========================================================================
    # Plumbing
    # =========================================================================

    async def dispatch(
        self, identity: Identity, connection_id: str, event: Any, data: Any = None
    ) -> None:
        """Route one inbound event to its handler."""
        handler_name = self.EVENT_HANDLERS.get(event) if isinstance(event, str) else None
        if handler_name is None:
            await self.send_error(
                connection_id, f"Unknown event: {event}", ERROR_CODES.UNKNOWN_EVENT
            )
            return
        await getattr(self, handler_name)(identity, connection_id, data)

    async def send_error(self, connection_id: str, message: str, code: str) -> None:
        try:
            await self.broadcaster.send_to_connection(
                connection_id, EVENTS.ERROR, {"message": message, "code": code}
            )
        except Exception:
            logger.exception(f"Could not deliver error {code} to {connection_id}")

    async def _fail(self, connection_id: str, result: ServiceResult) -> None:
        await self.send_error(connection_id, result.error, result.error_code)

    async def _join_group(self, connection_id: str, group: str) -> None:
        await self.broadcaster.join_group(connection_id, group)
        self._groups[connection_id].add(group)

    async def _leave_group(self, connection_id: str, group: str) -> None:
        await self.broadcaster.leave_group(connection_id, group)
        self._groups[connection_id].discard(group)

    async def _send_to_user(
        self, user_id: Any, event: str, payload: Any, skip: str | None = None
    ) -> int:
        """
        Send to every live connection of a user.

        Returns:
            Number of connections the event was sent to
        """
        connections = await self.presence.get_user_connection_ids(user_id)
        connections.discard(skip)
        for connection in sorted(connections):
            await self.broadcaster.send_to_connection(connection, event, payload)
        return len(connections)

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    async def connect(self, identity: Identity, connection_id: str) -> None:
        """
        Register a freshly authenticated connection.

        Persists ONLINE, records the connection in presence and subscribes
        it to lobby announcements.
        """
        await database_sync_to_async(UserService.mark_online)(identity.user_id)
        await self.presence.set_online(identity.user_id, connection_id)
        await self._join_group(connection_id, GROUPS.LOBBY)
        logger.info(f"User {identity.user_id} connected on {connection_id}")

    async def disconnect(self, identity: Identity, connection_id: str) -> None:
        """
        Tear down a connection, whatever the reason it closed.

        When no other live connection of the user remains: persist OFFLINE,
        mark the presence record offline, purge every registered connection
        (including ones that died without a disconnect) with its room
        entries, tell every room the user was present in and clear typing
        entries. Safe to call more than once. Never raises.
        """
        user_id = identity.user_id

        for group in list(self._groups.pop(connection_id, ())):
            try:
                await self.broadcaster.leave_group(connection_id, group)
            except Exception:
                logger.exception(f"Failed to leave {group} for {connection_id}")

        try:
            present_rooms = await self.presence.get_rooms_for_user(user_id)
            await self.presence.remove_connection(user_id, connection_id)
            if await self.presence.get_user_connection_ids(user_id):
                logger.info(
                    f"User {user_id} closed {connection_id}, other connections remain"
                )
                return
        except Exception:
            logger.exception(f"Presence cleanup failed for {connection_id}")
            return

        try:
            await database_sync_to_async(UserService.mark_offline)(user_id)
        except Exception:
            logger.exception(f"Failed to persist OFFLINE for user {user_id}")

        try:
            await self.presence.set_offline(user_id)
            present_rooms |= await self.presence.purge_user(user_id)
            payload = {"userId": str(user_id), "status": UserStatus.OFFLINE.value}
            for room_id in sorted(present_rooms):
                await self.broadcaster.send_to_room(
                    room_id, EVENTS.USER_STATUS_CHANGED, payload
                )
            await self.presence.clear_user_typing(user_id)
        except Exception:
            logger.exception(f"Offline fan-out failed for user {user_id}")

        logger.info(f"User {user_id} disconnected ({connection_id})")

    # =========================================================================
    # Rooms
    # =========================================================================

    async def _own_connections(self, identity: Identity, connection_id: str) -> set[str]:
        """Every live connection of the user, the current one included."""
        return await self.presence.get_user_connection_ids(identity.user_id) | {
            connection_id
        }

    @handles("JOIN_ROOM_ERROR", "join room")
    async def join_room(self, identity: Identity, connection_id: str, data: Any) -> None:
        room_id = parse_uuid(_arg(data, "roomId"))
        if room_id is None:
            await self.send_error(
                connection_id, "Room ID is required", ERROR_CODES.MISSING_ROOM_ID
            )
            return

        is_member = await database_sync_to_async(ChatAuthorizationService.is_room_member)(
            identity.user_id, room_id
        )
        if not is_member:
            await self.send_error(
                connection_id, "Access denied to room", ERROR_CODES.ROOM_ACCESS_DENIED
            )
            return

        await self._join_group(connection_id, room_group(room_id))
        await self.presence.add_user_to_room(identity.user_id, room_id, connection_id)
        await self.presence.set_online(identity.user_id, connection_id)
        await self.broadcaster.send_to_room(
            room_id,
            EVENTS.USER_JOINED,
            {**identity.to_payload(), "roomId": str(room_id)},
            exclude=await self._own_connections(identity, connection_id),
        )
        logger.info(f"User {identity.user_id} joined room {room_id}")

    @handles("LEAVE_ROOM_ERROR", "leave room")
    async def leave_room(self, identity: Identity, connection_id: str, data: Any) -> None:
        """
        Leave a room's transport group.

        ``user_left`` goes out only when this connection had joined the
        room. Non-members are denied; a member whose connection never
        joined gets no broadcast.
        """
        room_id = parse_uuid(_arg(data, "roomId"))
        if room_id is None:
            await self.send_error(
                connection_id, "Room ID is required", ERROR_CODES.MISSING_ROOM_ID
            )
            return

        group = room_group(room_id)
        if group not in self._groups[connection_id]:
            is_member = await database_sync_to_async(
                ChatAuthorizationService.is_room_member
            )(identity.user_id, room_id)
            if not is_member:
                await self.send_error(
                    connection_id, "Access denied to room", ERROR_CODES.ROOM_ACCESS_DENIED
                )
            return

        await self._leave_group(connection_id, group)
        await self.presence.remove_user_from_room(identity.user_id, room_id, connection_id)
        await self.presence.remove_user_typing(identity.user_id, room_id)
        await self.broadcaster.send_to_room(
            room_id,
            EVENTS.USER_LEFT,
            {**identity.to_payload(), "roomId": str(room_id)},
            exclude=await self._own_connections(identity, connection_id),
        )
        logger.info(f"User {identity.user_id} left room {room_id}")

    # =========================================================================
    # Room messages
    # =========================================================================

    @database_sync_to_async
    def _send_room_message(self, identity: Identity, room_id: Any, content: Any):
        result = MessageService.send_message(
            identity.user_id, room_id, content, self.validator
        )
        return result.map(message_payload)

    @database_sync_to_async
    def _edit_room_message(self, identity: Identity, message_id: Any, content: Any):
        result = MessageService.edit_message(
            message_id, identity.user_id, content, self.validator
        )
        return result.map(message_payload)

    @handles("SEND_MESSAGE_ERROR", "send message")
    async def send_message(self, identity: Identity, connection_id: str, data: Any) -> None:
        data = data if isinstance(data, dict) else {}
        result = await self._send_room_message(
            identity, data.get("roomId"), data.get("content")
        )
        if not result:
            await self._fail(connection_id, result)
            return

        payload = result.data
        room_id = payload["room_id"]
        await self.presence.remove_user_typing(identity.user_id, room_id)
        await self.broadcaster.send_to_room(
            room_id, EVENTS.MESSAGE_RECEIVED, payload, exclude=connection_id
        )
        await self.broadcaster.send_to_connection(
            connection_id, EVENTS.MESSAGE_RECEIVED, payload
        )

    @handles("EDIT_MESSAGE_ERROR", "edit message")
    async def edit_message(self, identity: Identity, connection_id: str, data: Any) -> None:
        data = data if isinstance(data, dict) else {}
        result = await self._edit_room_message(
            identity, data.get("messageId"), data.get("content")
        )
        if not result:
            await self._fail(connection_id, result)
            return

        payload = result.data
        await self.broadcaster.send_to_room(
            payload["room_id"], EVENTS.MESSAGE_EDITED, payload, exclude=connection_id
        )
        await self.broadcaster.send_to_connection(
            connection_id, EVENTS.MESSAGE_EDITED, payload
        )

    @handles("DELETE_MESSAGE_ERROR", "delete message")
    async def delete_message(
        self, identity: Identity, connection_id: str, data: Any
    ) -> None:
        result = await database_sync_to_async(MessageService.delete_message)(
            _arg(data, "messageId"), identity.user_id
        )
        if not result:
            await self._fail(connection_id, result)
            return

        message = result.data
        payload = {"messageId": str(message.id), "roomId": str(message.room_id)}
        await self.broadcaster.send_to_room(
            message.room_id, EVENTS.MESSAGE_DELETED, payload, exclude=connection_id
        )
        await self.broadcaster.send_to_connection(
            connection_id, EVENTS.MESSAGE_DELETED, payload
        )

    # =========================================================================
    # Direct messages
    # =========================================================================

    @database_sync_to_async
    def _send_direct(self, identity: Identity, receiver_id: Any, content: Any):
        result = DirectMessageService.send_direct_message(
            identity.user_id, receiver_id, content, self.validator
        )
        return result.map(direct_message_payload)

    @database_sync_to_async
    def _edit_direct(self, identity: Identity, message_id: Any, content: Any):
        result = DirectMessageService.edit_direct_message(
            message_id, identity.user_id, content, self.validator
        )
        return result.map(direct_message_payload)

    @handles("SEND_DIRECT_MESSAGE_ERROR", "send direct message")
    async def send_direct_message(
        self, identity: Identity, connection_id: str, data: Any
    ) -> None:
        data = data if isinstance(data, dict) else {}
        result = await self._send_direct(
            identity, data.get("receiverId"), data.get("content")
        )
        if not result:
            await self._fail(connection_id, result)
            return

        payload = result.data
        receiver_id = payload["receiver"]["id"]
        delivered = await self._send_to_user(
            receiver_id, EVENTS.DIRECT_MESSAGE_RECEIVED, payload
        )
        if not delivered:
            logger.debug(f"User {receiver_id} offline, direct message {payload['id']} not pushed")
        await self.broadcaster.send_to_connection(
            connection_id, EVENTS.DIRECT_MESSAGE_SENT, payload
        )

    @handles("EDIT_DIRECT_MESSAGE_ERROR", "edit direct message")
    async def edit_direct_message(
        self, identity: Identity, connection_id: str, data: Any
    ) -> None:
        data = data if isinstance(data, dict) else {}
        result = await self._edit_direct(
            identity, data.get("messageId"), data.get("content")
        )
        if not result:
            await self._fail(connection_id, result)
            return

        payload = result.data
        await self._send_to_user(
            payload["receiver"]["id"], EVENTS.DIRECT_MESSAGE_EDITED, payload
        )
        await self.broadcaster.send_to_connection(
            connection_id, EVENTS.DIRECT_MESSAGE_EDITED, payload
        )

    @handles("DELETE_DIRECT_MESSAGE_ERROR", "delete direct message")
    async def delete_direct_message(
        self, identity: Identity, connection_id: str, data: Any
    ) -> None:
        result = await database_sync_to_async(DirectMessageService.delete_direct_message)(
            _arg(data, "messageId"), identity.user_id
        )
        if not result:
            await self._fail(connection_id, result)
            return

        message = result.data
        payload = {
            "messageId": str(message.id),
            "senderId": str(message.sender_id),
            "receiverId": str(message.receiver_id),
        }
        await self._send_to_user(
            message.other_participant_id(identity.user_id),
            EVENTS.DIRECT_MESSAGE_DELETED,
            payload,
        )
        await self.broadcaster.send_to_connection(
            connection_id, EVENTS.DIRECT_MESSAGE_DELETED, payload
        )

    async def _resolve_partner(
        self, identity: Identity, connection_id: str, data: Any
    ):
        """
        Parse ``partnerId`` and reject missing, malformed and self ids.

        Returns:
            The partner's UUID, or None after an error was sent
        """
        raw = _arg(data, "partnerId")
        if not raw:
            await self.send_error(
                connection_id, "Partner ID is required", ERROR_CODES.MISSING_PARTNER_ID
            )
            return None

        partner_id = parse_uuid(raw)
        if partner_id is None:
            await self.send_error(
                connection_id, "Invalid partner ID", ERROR_CODES.INVALID_PARTNER_ID
            )
            return None

        denial = ChatAuthorizationService.check_not_self(
            identity.user_id, partner_id, ERROR_CODES.SELF_CONVERSATION_NOT_ALLOWED
        )
        if denial:
            await self._fail(connection_id, denial)
            return None
        return partner_id

    @handles("JOIN_CONVERSATION_ERROR", "join conversation")
    async def join_direct_conversation(
        self, identity: Identity, connection_id: str, data: Any
    ) -> None:
        partner_id = await self._resolve_partner(identity, connection_id, data)
        if partner_id is None:
            return
        await self._join_group(
            connection_id, direct_group(pair_key(identity.user_id, partner_id))
        )

    @handles("LEAVE_CONVERSATION_ERROR", "leave conversation")
    async def leave_direct_conversation(
        self, identity: Identity, connection_id: str, data: Any
    ) -> None:
        partner_id = await self._resolve_partner(identity, connection_id, data)
        if partner_id is None:
            return
        await self._leave_group(
            connection_id, direct_group(pair_key(identity.user_id, partner_id))
        )

    # =========================================================================
    # Typing and status
    # =========================================================================

    async def _typing(
        self, identity: Identity, connection_id: str, data: Any, is_typing: bool
    ) -> None:
        room_id = parse_uuid(_arg(data, "roomId"))
        if room_id is None:
            return
        is_member = await database_sync_to_async(ChatAuthorizationService.is_room_member)(
            identity.user_id, room_id
        )
        if not is_member:
            return

        if is_typing:
            await self.presence.set_user_typing(identity.user_id, room_id)
        else:
            await self.presence.remove_user_typing(identity.user_id, room_id)

        await self.broadcaster.send_to_room(
            room_id,
            EVENTS.TYPING_INDICATOR,
            {**identity.to_payload(), "roomId": str(room_id), "isTyping": is_typing},
            exclude=connection_id,
        )

    async def typing_start(
        self, identity: Identity, connection_id: str, data: Any = None
    ) -> None:
        """Best effort: failures are logged, never reported."""
        try:
            await self._typing(identity, connection_id, data, True)
        except Exception:
            logger.exception(f"typing_start failed for user {identity.user_id}")

    async def typing_stop(
        self, identity: Identity, connection_id: str, data: Any = None
    ) -> None:
        try:
            await self._typing(identity, connection_id, data, False)
        except Exception:
            logger.exception(f"typing_stop failed for user {identity.user_id}")

    @handles("STATUS_UPDATE_ERROR", "update status")
    async def update_user_status(
        self, identity: Identity, connection_id: str, data: Any
    ) -> None:
        status = _arg(data, "status")
        if not isinstance(status, str) or not UserStatus.is_valid(status):
            await self.send_error(
                connection_id, f"Invalid status: {status}", ERROR_CODES.INVALID_STATUS
            )
            return

        result = await database_sync_to_async(UserService.update_status)(
            identity.user_id, status
        )
        if not result:
            await self._fail(connection_id, result)
            return

        await self.presence.set_status(identity.user_id, status, connection_id)
        room_ids = await database_sync_to_async(RoomService.member_room_ids)(
            identity.user_id
        )

        payload = {"userId": str(identity.user_id), "status": status}
        for room_id in room_ids:
            await self.broadcaster.send_to_room(
                room_id, EVENTS.USER_STATUS_CHANGED, payload, exclude=connection_id
            )
        await self.broadcaster.send_to_connection(
            connection_id, EVENTS.USER_STATUS_CHANGED, payload
        )

    @handles("PING_ERROR", "ping")
    async def ping(self, identity: Identity, connection_id: str, data: Any = None) -> None:
        await self.presence.touch(identity.user_id, connection_id)
        await self.broadcaster.send_to_connection(connection_id, EVENTS.PONG, {})
