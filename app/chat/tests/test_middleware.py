"""
Tests for JWTAuthMiddleware token resolution.

Wraps a stub ASGI app that records the scope it was called with.
"""

import pytest
from asgiref.sync import async_to_sync
from rest_framework_simplejwt.tokens import AccessToken

from authentication.services import Identity
from chat.middleware import JWTAuthMiddleware

pytestmark = pytest.mark.django_db(transaction=True)


def resolve_identity(scope):
    """Run the middleware over ``scope`` and return the identity it set."""
    seen = {}

    async def inner(scope, receive, send):
        seen.update(scope)

    async def noop(*args):
        return None

    base = {"type": "websocket", "path": "/ws/chat/", "query_string": b"", "headers": []}
    async_to_sync(JWTAuthMiddleware(inner))({**base, **scope}, noop, noop)
    return seen["identity"]


@pytest.fixture
def token(alice):
    return str(AccessToken.for_user(alice))


class TestJWTAuthMiddleware:
    def test_query_string_token(self, alice, token):
        identity = resolve_identity({"query_string": f"token={token}".encode()})

        assert identity == Identity.from_user(alice)

    def test_subprotocol_token(self, alice, token):
        identity = resolve_identity({"subprotocols": ["jwt", token]})

        assert identity == Identity.from_user(alice)

    def test_authorization_header(self, alice, token):
        identity = resolve_identity(
            {"headers": [(b"authorization", f"Bearer {token}".encode())]}
        )

        assert identity == Identity.from_user(alice)

    def test_query_string_wins(self, alice, bob, token):
        bob_token = str(AccessToken.for_user(bob))

        identity = resolve_identity(
            {
                "query_string": f"token={token}".encode(),
                "headers": [(b"authorization", f"Bearer {bob_token}".encode())],
            }
        )

        assert identity.username == "alice"

    def test_no_token(self):
        assert resolve_identity({}) is None

    def test_invalid_token(self):
        assert resolve_identity({"query_string": b"token=forged"}) is None

    def test_other_auth_scheme_ignored(self, token):
        identity = resolve_identity(
            {"headers": [(b"authorization", f"Basic {token}".encode())]}
        )

        assert identity is None

    def test_inactive_user(self, alice, token):
        alice.is_active = False
        alice.save()

        assert resolve_identity({"query_string": f"token={token}".encode()}) is None
