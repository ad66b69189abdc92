"""
Authentication application.

Key components:
    - User model: email login, unique display name, persisted presence status
    - TokenService: JWT issue/verify for the REST API and the socket handshake
    - UserService: status and profile updates

Usage:
    from authentication.models import User, UserStatus
    from authentication.services import Identity, TokenService
"""
