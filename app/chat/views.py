"""
Views for the chat REST API.

The socket carries live traffic; these endpoints cover everything a
client needs before and around it: room discovery and membership,
history paging, search and derived direct conversations.

URL Structure:
    /api/v1/chat/rooms/                          GET, POST
    /api/v1/chat/rooms/{id}/                     GET
    /api/v1/chat/rooms/{id}/join/                POST
    /api/v1/chat/rooms/{id}/leave/               POST
    /api/v1/chat/rooms/{id}/members/             GET
    /api/v1/chat/rooms/{id}/messages/            GET  (?before=&limit=)
    /api/v1/chat/rooms/{id}/search/              GET  (?q=)
    /api/v1/chat/messages/{id}/history/          GET
    /api/v1/chat/direct/conversations/           GET  (?active=)
    /api/v1/chat/direct/{partner_id}/messages/   GET  (?before=&limit=)
    /api/v1/chat/direct/search/                  GET  (?q=)

Design Decisions:
    - Business rules live in the service layer; views translate
      ServiceResult failures into {"error", "error_code"} bodies
    - Not-found codes map to 404, access codes to 403, the rest to 400
    - Creating a public room announces it to every connected client
"""

from __future__ import annotations

import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from chat.authorization import ChatAuthorizationService
from chat.broadcaster import notify_groups
from chat.constants import ERROR_CODES, EVENTS, GROUPS
from chat.serializers import (
    ConversationSerializer,
    DirectMessageSerializer,
    EditHistoryEntrySerializer,
    HistoryQuerySerializer,
    MemberSerializer,
    MessageSerializer,
    RoomCreateSerializer,
    RoomSerializer,
    SearchQuerySerializer,
)
from chat.services import (
    DirectConversationService,
    DirectMessageService,
    MessageService,
    RoomService,
)
from core.helpers import parse_uuid

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {ERROR_CODES.ROOM_NOT_FOUND, ERROR_CODES.MESSAGE_NOT_FOUND}
FORBIDDEN_CODES = {
    ERROR_CODES.ROOM_ACCESS_DENIED,
    ERROR_CODES.UNAUTHORIZED_MESSAGE_EDIT,
    ERROR_CODES.UNAUTHORIZED_MESSAGE_DELETE,
}

HISTORY_PARAMETERS = [
    OpenApiParameter("before", OpenApiTypes.DATETIME, description="Only messages older than this"),
    OpenApiParameter("limit", OpenApiTypes.INT, description="Page size, at most 50"),
]
SEARCH_PARAMETERS = [
    OpenApiParameter("q", OpenApiTypes.STR, required=True, description="Search text"),
]


def error_response(result) -> Response:
    """Render a failed ServiceResult with a status matching its code."""
    if result.error_code in NOT_FOUND_CODES:
        http_status = status.HTTP_404_NOT_FOUND
    elif result.error_code in FORBIDDEN_CODES:
        http_status = status.HTTP_403_FORBIDDEN
    else:
        http_status = status.HTTP_400_BAD_REQUEST
    return Response(
        {"error": result.error, "error_code": result.error_code}, status=http_status
    )


def access_denied() -> Response:
    return Response(
        {"error": "Access denied to room", "error_code": ERROR_CODES.ROOM_ACCESS_DENIED},
        status=status.HTTP_403_FORBIDDEN,
    )


class RoomViewSet(viewsets.ViewSet):
    """
    Rooms visible to the current user.

    list:
        Public rooms plus private rooms the user belongs to.

    create:
        Create a room; the creator becomes its first member.

    retrieve:
        Room details. Private rooms are visible to members only.

    join / leave:
        Manage the caller's membership.

    members:
        Members by join time, with presence fields. Same visibility as
        retrieve.

    messages:
        Newest-first page of history. Reading marks the room read.

    search:
        Content search within the room, members only.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_rooms",
        summary="List rooms",
        tags=["Chat - Rooms"],
        responses={200: RoomSerializer(many=True)},
    )
    def list(self, request):
        rooms = RoomService.visible_rooms(request.user)
        return Response(RoomSerializer(rooms, many=True).data)

    @extend_schema(
        operation_id="create_room",
        summary="Create room",
        tags=["Chat - Rooms"],
        request=RoomCreateSerializer,
        responses={201: RoomSerializer},
    )
    def create(self, request):
        serializer = RoomCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = RoomService.create_room(request.user, **serializer.validated_data)
        if not result:
            return error_response(result)

        data = RoomSerializer(result.data).data
        if not result.data.is_private:
            notify_groups([GROUPS.LOBBY], EVENTS.ROOM_CREATED, dict(data))
        return Response(data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="get_room",
        summary="Get room",
        tags=["Chat - Rooms"],
        responses={200: RoomSerializer},
    )
    def retrieve(self, request, pk=None):
        result = RoomService.get_room(pk, request.user)
        if not result:
            return error_response(result)
        return Response(RoomSerializer(result.data).data)

    @extend_schema(
        operation_id="join_room",
        summary="Join room",
        tags=["Chat - Rooms"],
        request=None,
        responses={200: RoomSerializer},
    )
    @action(detail=True, methods=["post"])
    def join(self, request, pk=None):
        result = RoomService.join_room(request.user, pk)
        if not result:
            return error_response(result)
        return Response(RoomSerializer(result.data.room).data)

    @extend_schema(
        operation_id="leave_room",
        summary="Leave room",
        tags=["Chat - Rooms"],
        request=None,
        responses={204: None},
    )
    @action(detail=True, methods=["post"])
    def leave(self, request, pk=None):
        result = RoomService.leave_room(request.user, pk)
        if not result:
            return error_response(result)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="list_room_members",
        summary="Room members",
        tags=["Chat - Rooms"],
        responses={200: MemberSerializer(many=True)},
    )
    @action(detail=True, methods=["get"])
    def members(self, request, pk=None):
        result = RoomService.get_room(pk, request.user)
        if not result:
            return error_response(result)
        memberships = RoomService.room_members(result.data)
        return Response(MemberSerializer(memberships, many=True).data)

    @extend_schema(
        operation_id="list_room_messages",
        summary="Room message history",
        tags=["Chat - Messages"],
        parameters=HISTORY_PARAMETERS,
        responses={200: MessageSerializer(many=True)},
    )
    @action(detail=True, methods=["get"])
    def messages(self, request, pk=None):
        result = RoomService.get_room(pk, request.user)
        if not result:
            return error_response(result)
        room = result.data
        if not ChatAuthorizationService.is_room_member(request.user.id, room.id):
            return access_denied()

        query = HistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        messages = RoomService.room_messages(room, **query.validated_data)
        RoomService.mark_read(request.user, room)
        return Response(MessageSerializer(messages, many=True).data)

    @extend_schema(
        operation_id="search_room_messages",
        summary="Search room messages",
        tags=["Chat - Messages"],
        parameters=SEARCH_PARAMETERS,
        responses={200: MessageSerializer(many=True)},
    )
    @action(detail=True, methods=["get"])
    def search(self, request, pk=None):
        result = RoomService.get_room(pk, request.user)
        if not result:
            return error_response(result)
        room = result.data
        if not ChatAuthorizationService.is_room_member(request.user.id, room.id):
            return access_denied()

        query = SearchQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        messages = RoomService.search_messages(room, query.validated_data["q"])
        return Response(MessageSerializer(messages, many=True).data)


class MessageHistoryView(APIView):
    """
    Prior versions of a room message, oldest first.

    URL: /api/v1/chat/messages/{message_id}/history/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_message_edit_history",
        summary="Message edit history",
        tags=["Chat - Messages"],
        responses={200: EditHistoryEntrySerializer(many=True)},
    )
    def get(self, request, message_id):
        result = MessageService.get_edit_history(message_id, request.user)
        if not result:
            return error_response(result)
        return Response(EditHistoryEntrySerializer(result.data, many=True).data)


class DirectConversationListView(APIView):
    """
    The caller's direct conversations, most recent first.

    Conversations are derived from direct messages. ``?active=<partnerId>``
    names the conversation open on the client, whose unread count is zero.

    URL: /api/v1/chat/direct/conversations/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_direct_conversations",
        summary="List direct conversations",
        tags=["Chat - Direct"],
        parameters=[
            OpenApiParameter(
                "active", OpenApiTypes.UUID, description="Partner id of the open conversation"
            )
        ],
        responses={200: ConversationSerializer(many=True)},
    )
    def get(self, request):
        active = parse_uuid(request.query_params.get("active"))
        summaries, total_unread = DirectConversationService.get_conversations(
            request.user, active_partner_id=active
        )
        partners = DirectConversationService.partners_by_id(summaries)
        return Response(
            {
                "conversations": ConversationSerializer(
                    summaries, many=True, context={"partners": partners}
                ).data,
                "total_unread": total_unread,
            }
        )


class DirectMessageListView(APIView):
    """
    History with one partner, newest first.

    URL: /api/v1/chat/direct/{partner_id}/messages/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_direct_messages",
        summary="Direct message history",
        tags=["Chat - Direct"],
        parameters=HISTORY_PARAMETERS,
        responses={200: DirectMessageSerializer(many=True)},
    )
    def get(self, request, partner_id):
        query = HistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        messages = DirectMessageService.messages_between(
            request.user.id, partner_id, **query.validated_data
        )
        return Response(DirectMessageSerializer(messages, many=True).data)


class DirectMessageSearchView(APIView):
    """
    Content search across the caller's direct messages.

    URL: /api/v1/chat/direct/search/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="search_direct_messages",
        summary="Search direct messages",
        tags=["Chat - Direct"],
        parameters=SEARCH_PARAMETERS,
        responses={200: DirectMessageSerializer(many=True)},
    )
    def get(self, request):
        query = SearchQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        messages = DirectMessageService.search(request.user.id, query.validated_data["q"])
        return Response(DirectMessageSerializer(messages, many=True).data)
