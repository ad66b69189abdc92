"""
WebSocket consumer for the chat application.

One socket per client session carries every room, direct conversation
and presence event. The consumer is a thin session layer: it checks the
identity resolved by JWTAuthMiddleware, hands inbound frames to the
DeliveryRouter and relays channel layer events back to the client.

Authentication:
    JWTAuthMiddleware resolves the token and sets scope["identity"].
    Connections without an identity are closed with code 4001.

Frames (from client):
    {"event": "send_message", "data": {"roomId": "...", "content": "Hi"}}
    {"event": "ping"}

Frames (to client):
    {"event": "message_received", "data": {...}}
    {"event": "error", "data": {"message": "...", "code": "..."}}

Channel layer messages:
    Every outbound event travels as {"type": "chat.event", ...} and is
    handled by chat_event(). Events carrying this connection's channel
    name in ``exclude`` are dropped, so originators only get their echo
    and a joining user's own devices skip news about themselves.
"""

from __future__ import annotations

import logging

from channels.generic.websocket import AsyncJsonWebsocketConsumer

from chat import presence
from chat.broadcaster import ChannelLayerBroadcaster
from chat.constants import ERROR_CODES, EVENTS
from chat.router import DeliveryRouter

logger = logging.getLogger(__name__)

# Close code for a missing or invalid token
UNAUTHENTICATED_CLOSE_CODE = 4001


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    Session layer for one authenticated chat connection.

    Attributes:
        identity: Identity of the connected user, None until accepted
        router: DeliveryRouter handling this connection's events
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.identity = None
        self.router: DeliveryRouter | None = None

    async def connect(self):
        identity = self.scope.get("identity")
        if identity is None:
            logger.warning("Rejected unauthenticated chat connection")
            await self.close(code=UNAUTHENTICATED_CLOSE_CODE)
            return

        self.identity = identity
        self.router = DeliveryRouter(
            ChannelLayerBroadcaster(self.channel_layer, presence.get_presence_store()),
            presence.get_presence_store(),
        )

        subprotocol = "jwt" if "jwt" in self.scope.get("subprotocols", []) else None
        await self.accept(subprotocol=subprotocol)
        await self.router.connect(identity, self.channel_name)

    async def disconnect(self, close_code):
        if self.router is None or self.identity is None:
            return
        logger.info(
            f"Connection {self.channel_name} of user {self.identity.user_id} "
            f"closed ({close_code})"
        )
        await self.router.disconnect(self.identity, self.channel_name)

    async def receive_json(self, content, **kwargs):
        """
        Handle one inbound frame.

        Expected format:
            {"event": "<name>", "data": <object or scalar>}
        """
        if not isinstance(content, dict) or not isinstance(content.get("event"), str):
            await self.send_json(
                {
                    "event": EVENTS.ERROR,
                    "data": {
                        "message": "Frames must be objects with an event name",
                        "code": ERROR_CODES.INVALID_PAYLOAD,
                    },
                }
            )
            return

        await self.router.dispatch(
            self.identity, self.channel_name, content["event"], content.get("data")
        )

    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        try:
            await super().receive(text_data=text_data, bytes_data=bytes_data, **kwargs)
        except ValueError:
            # Undecodable JSON or a binary frame
            await self.send_json(
                {
                    "event": EVENTS.ERROR,
                    "data": {
                        "message": "Malformed frame",
                        "code": ERROR_CODES.INVALID_PAYLOAD,
                    },
                }
            )

    async def chat_event(self, event):
        """
        Handle chat.event messages from the channel layer.

        Sends the event to the client unless this connection is excluded.
        """
        if self.channel_name in (event.get("exclude") or ()):
            return
        await self.send_json({"event": event["event"], "data": event["payload"]})
