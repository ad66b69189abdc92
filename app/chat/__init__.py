"""
Chat app for real-time messaging.

This app handles:
- Rooms, membership and room message history
- Direct messages and derived conversations
- Presence, typing indicators and status changes
- WebSocket real-time delivery

Related apps:
    - authentication: User model, JWT identity
    - core: Base models, soft delete, ServiceResult

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for the session layer, router.py for event handling
    and routing.py for WebSocket URL patterns.

Usage:
    from chat.services import MessageService

    result = MessageService.send_message(
        author_id=user.id,
        room_id=room.id,
        content="Hello!",
    )
"""
