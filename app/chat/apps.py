"""
Chat application configuration.

This app provides the chat system with:
- Topic rooms with explicit membership
- Direct messages between two users
- Edit history and soft deletion
- Redis-backed presence and typing indicators
- Real-time delivery over a single WebSocket per client
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
