"""
URL configuration for the chat backend.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Authentication endpoints
        register/                  - Create account, returns a JWT pair
        token/                     - Obtain JWT pair (email + password)
        token/refresh/             - Refresh access token
        logout/                    - Blacklist refresh token, go offline
        me/                        - Current user (GET/PATCH)
        users/online/              - Users currently online
        users/search/              - Username search
        users/{id}/                - Public profile
    /api/v1/chat/                  - Chat endpoints
        rooms/                     - Room list/create
        rooms/{id}/                - Room detail
        rooms/{id}/join/           - Join room
        rooms/{id}/leave/          - Leave room
        rooms/{id}/members/        - Room members
        rooms/{id}/messages/       - Room history
        rooms/{id}/search/         - Search room messages
        messages/{id}/history/     - Message edit history
        direct/conversations/      - Derived direct conversations
        direct/{partner}/messages/ - Direct history with one partner
        direct/search/             - Search direct messages

WebSocket:
    /ws/chat/                      - See chat/routing.py
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/", include("authentication.urls")),
    path("chat/", include("chat.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Chat Admin"
admin.site.site_title = "Chat Admin Portal"
admin.site.index_title = "Rooms, messages and users"
