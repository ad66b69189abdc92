"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/register/            - Create account, returns JWT pair
    /api/v1/auth/token/               - Obtain JWT pair (email + password)
    /api/v1/auth/token/refresh/       - Refresh access token
    /api/v1/auth/logout/              - Blacklist refresh token, go offline
    /api/v1/auth/me/                  - Current user (GET/PATCH)
    /api/v1/auth/users/online/        - Users currently online
    /api/v1/auth/users/search/?q=     - Username search
    /api/v1/auth/users/{user_id}/     - Public profile with stats
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from authentication.views import (
    LogoutView,
    MeView,
    OnlineUsersView,
    RegisterView,
    UserProfileView,
    UserSearchView,
)

app_name = "authentication"

urlpatterns = [
    path("register/", RegisterView.as_view(), name="register"),
    path("token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("logout/", LogoutView.as_view(), name="logout"),
    path("me/", MeView.as_view(), name="me"),
    path("users/online/", OnlineUsersView.as_view(), name="users-online"),
    path("users/search/", UserSearchView.as_view(), name="users-search"),
    path("users/<uuid:user_id>/", UserProfileView.as_view(), name="user-profile"),
]
