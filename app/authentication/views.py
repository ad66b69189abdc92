"""
Authentication views.

This module provides API views for:
- Registration (returns a JWT pair so clients can open a socket at once)
- The current user's account (read and profile update)
- Logout (refresh token blacklist, presence purge)
- The user directory: online users, search, public profiles

Token obtain/refresh come straight from rest_framework_simplejwt and are
wired in urls.py.

Related files:
    - serializers.py: Request/response serialization
    - services.py: UserService, TokenService
    - chat/broadcaster.py: Fan-out of ``user_profile_updated``
"""

import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.models import UserStatus
from authentication.serializers import (
    LogoutSerializer,
    ProfileUpdateSerializer,
    PublicUserSerializer,
    RegisterSerializer,
    TokenPairSerializer,
    UserProfileSerializer,
    UserSearchQuerySerializer,
    UserSerializer,
)
from authentication.services import TokenService, UserService

logger = logging.getLogger(__name__)


class RegisterView(APIView):
    """
    Create an account.

    URL: /api/v1/auth/register/
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        operation_id="auth_register",
        summary="Register",
        tags=["Auth"],
        request=RegisterSerializer,
        responses={201: TokenPairSerializer},
    )
    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = UserService.register(**serializer.validated_data)
        if not result.success:
            return Response(result.to_response(), status=status.HTTP_400_BAD_REQUEST)

        tokens = TokenService.issue(result.data)
        return Response(
            {**tokens, "user": UserSerializer(result.data).data},
            status=status.HTTP_201_CREATED,
        )


class MeView(APIView):
    """
    The authenticated user's account.

    GET: Retrieve own account
    PATCH: Update username and/or bio. Members of every room the user
    belongs to receive ``user_profile_updated``.

    URL: /api/v1/auth/me/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="auth_me_retrieve",
        summary="Get current user",
        tags=["Auth"],
        responses={200: UserSerializer},
    )
    def get(self, request):
        return Response(UserSerializer(request.user).data)

    @extend_schema(
        operation_id="auth_me_update",
        summary="Update profile",
        tags=["Auth"],
        request=ProfileUpdateSerializer,
        responses={200: UserSerializer},
    )
    def patch(self, request):
        serializer = ProfileUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = UserService.update_profile(request.user, **serializer.validated_data)
        if not result.success:
            return Response(result.to_response(), status=status.HTTP_400_BAD_REQUEST)

        user = result.data
        if serializer.validated_data:
            from chat.broadcaster import notify_rooms
            from chat.constants import EVENTS
            from chat.services import RoomService

            notify_rooms(
                RoomService.member_room_ids(user),
                EVENTS.USER_PROFILE_UPDATED,
                {"userId": str(user.id), "username": user.username, "bio": user.bio},
            )

        return Response(UserSerializer(user).data)


class LogoutView(APIView):
    """
    End the session.

    Blacklists the refresh token when one is posted, persists OFFLINE,
    purges the user's presence and tells every room they belong to.
    Open sockets are not closed by this endpoint.

    URL: /api/v1/auth/logout/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="auth_logout",
        summary="Logout",
        tags=["Auth"],
        request=LogoutSerializer,
        responses={204: None},
    )
    def post(self, request):
        from chat.broadcaster import notify_rooms
        from chat.constants import EVENTS
        from chat.presence import purge_user_presence
        from chat.services import RoomService

        serializer = LogoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = request.user
        refresh = serializer.validated_data.get("refresh")
        if refresh:
            result = TokenService.revoke(refresh, user)
            if not result.success:
                return Response(result.to_response(), status=status.HTTP_400_BAD_REQUEST)

        UserService.mark_offline(user.id)
        try:
            purge_user_presence(user.id)
        except Exception:
            # mark_stale_users_offline prunes whatever is left behind
            logger.exception(f"Failed to purge presence for user {user.id}")

        notify_rooms(
            RoomService.member_room_ids(user),
            EVENTS.USER_STATUS_CHANGED,
            {"userId": str(user.id), "status": UserStatus.OFFLINE.value},
        )
        logger.info(f"User {user.id} logged out")
        return Response(status=status.HTTP_204_NO_CONTENT)


class OnlineUsersView(APIView):
    """
    Users currently online, by username.

    URL: /api/v1/auth/users/online/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="users_online",
        summary="List online users",
        tags=["Users"],
        responses={200: PublicUserSerializer(many=True)},
    )
    def get(self, request):
        return Response(PublicUserSerializer(UserService.online_users(), many=True).data)


class UserSearchView(APIView):
    """
    Find users by username, excluding the caller.

    URL: /api/v1/auth/users/search/?q=
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="users_search",
        summary="Search users",
        tags=["Users"],
        parameters=[
            OpenApiParameter("q", OpenApiTypes.STR, required=True, description="Username text")
        ],
        responses={200: PublicUserSerializer(many=True)},
    )
    def get(self, request):
        query = UserSearchQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        users = UserService.search_users(
            query.validated_data["q"], exclude_user_id=request.user.id
        )
        return Response(PublicUserSerializer(users, many=True).data)


class UserProfileView(APIView):
    """
    Public profile of any active user.

    URL: /api/v1/auth/users/{user_id}/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="users_profile",
        summary="Get user profile",
        tags=["Users"],
        responses={200: UserProfileSerializer},
    )
    def get(self, request, user_id):
        result = UserService.get_profile(user_id, viewer=request.user)
        if not result.success:
            return Response(result.to_response(), status=status.HTTP_404_NOT_FOUND)
        return Response(UserProfileSerializer(result.data).data)
