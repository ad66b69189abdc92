"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/chat/ - The single chat socket; rooms and conversations are joined
               with events over it

Authentication:
    JWT token via ?token=, the "jwt" subprotocol or an Authorization
    header. See chat.middleware.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/chat/", consumers.ChatConsumer.as_asgi()),
]
