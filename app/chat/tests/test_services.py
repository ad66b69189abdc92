"""
Tests for chat services.

Test Organization:
    TestCreateRoom / TestRoomMembership / TestRoomQueries: RoomService
    TestSendMessage / TestEditMessage / TestDeleteMessage: MessageService
    TestDirectMessages: DirectMessageService
    TestConversations: DirectConversationService
"""

from datetime import timedelta

import pytest
from django.utils import timezone
from freezegun import freeze_time

from authentication.tests.factories import UserFactory
from chat.constants import ERROR_CODES, MESSAGE_CONFIG
from chat.models import DirectMessage, Membership, Message, Room
from chat.services import (
    DirectConversationService,
    DirectMessageService,
    MessageService,
    RoomService,
)
from chat.tests.factories import DirectMessageFactory, MessageFactory


# =============================================================================
# Rooms
# =============================================================================


@pytest.mark.django_db
class TestCreateRoom:
    """Tests for RoomService.create_room()."""

    def test_creator_becomes_member(self, alice):
        result = RoomService.create_room(alice, "  Book Club  ", "Monthly reads")

        assert result.success
        room = result.data
        assert room.name == "Book Club"
        assert Membership.objects.filter(room=room, user=alice).exists()

    @pytest.mark.parametrize("name", ["", "   ", "x" * 51, "bad/name", "emoji 🎉"])
    def test_invalid_names(self, alice, name):
        result = RoomService.create_room(alice, name)

        assert result.error_code == ERROR_CODES.INVALID_ROOM
        assert not Room.objects.exists()

    def test_allowed_punctuation(self, alice):
        assert RoomService.create_room(alice, "team-a_general #1").success

    def test_description_too_long(self, alice):
        result = RoomService.create_room(alice, "Lounge", "d" * 201)

        assert result.error_code == ERROR_CODES.INVALID_ROOM
        assert "description" in result.errors

    def test_name_taken_ignoring_case(self, alice, bob):
        """
        Why it matters: "General" and "general" would be indistinguishable
        in room lists.
        """
        RoomService.create_room(alice, "General")

        result = RoomService.create_room(bob, "general")

        assert result.error_code == ERROR_CODES.ROOM_NAME_TAKEN
        assert Room.objects.count() == 1


@pytest.mark.django_db
class TestRoomMembership:
    def test_join_public_room(self, room, carol):
        result = RoomService.join_room(carol, room.id)

        assert result.success
        assert Membership.objects.filter(room=room, user=carol).exists()

    def test_join_is_idempotent(self, room, bob):
        first = RoomService.join_room(bob, room.id)
        second = RoomService.join_room(bob, room.id)

        assert first.data.pk == second.data.pk

    def test_cannot_join_private_room_uninvited(self, private_room, bob):
        result = RoomService.join_room(bob, private_room.id)

        assert result.error_code == ERROR_CODES.ROOM_ACCESS_DENIED

    def test_join_unknown_room(self, carol):
        assert RoomService.join_room(carol, "not-a-uuid").error_code == ERROR_CODES.ROOM_NOT_FOUND

    def test_member_can_leave(self, room, bob):
        result = RoomService.leave_room(bob, room.id)

        assert result.success
        assert not Membership.objects.filter(room=room, user=bob).exists()

    def test_creator_cannot_leave_while_others_remain(self, room, alice):
        result = RoomService.leave_room(alice, room.id)

        assert result.error_code == ERROR_CODES.CREATOR_CANNOT_LEAVE

    def test_creator_can_leave_when_alone(self, private_room, alice):
        assert RoomService.leave_room(alice, private_room.id).success

    def test_leave_without_membership(self, room, carol):
        assert RoomService.leave_room(carol, room.id).error_code == ERROR_CODES.NOT_A_MEMBER

    def test_member_room_ids(self, room, private_room, alice, bob):
        assert set(RoomService.member_room_ids(alice)) == {room.id, private_room.id}
        assert RoomService.member_room_ids(bob.id) == [room.id]


@pytest.mark.django_db
class TestRoomQueries:
    def test_visible_rooms_hide_private_rooms_of_others(self, room, private_room, bob, alice):
        assert list(RoomService.visible_rooms(bob)) == [room]
        assert set(RoomService.visible_rooms(alice)) == {room, private_room}

    def test_visible_rooms_annotate_member_count(self, room, bob):
        listed = RoomService.visible_rooms(bob).get(pk=room.pk)

        assert listed.member_count == 2

    def test_get_private_room_denied(self, private_room, bob):
        result = RoomService.get_room(private_room.id, bob)

        assert result.error_code == ERROR_CODES.ROOM_ACCESS_DENIED

    def test_room_messages_newest_first_without_deleted(self, room, alice):
        with freeze_time("2026-02-01 10:00:00"):
            oldest = MessageFactory(room=room, author=alice)
        with freeze_time("2026-02-01 10:01:00"):
            deleted = MessageFactory(room=room, author=alice)
        with freeze_time("2026-02-01 10:02:00"):
            newest = MessageFactory(room=room, author=alice)
        deleted.soft_delete()

        assert RoomService.room_messages(room) == [newest, oldest]

    def test_room_messages_before_cursor(self, room, alice):
        with freeze_time("2026-02-01 10:00:00"):
            older = MessageFactory(room=room, author=alice)
        with freeze_time("2026-02-01 11:00:00"):
            newer = MessageFactory(room=room, author=alice)

        assert RoomService.room_messages(room, before=newer.created_at) == [older]

    def test_room_messages_limit_capped(self, room, alice):
        MessageFactory.create_batch(MESSAGE_CONFIG.PAGE_SIZE + 5, room=room, author=alice)

        assert len(RoomService.room_messages(room, limit=500)) == MESSAGE_CONFIG.PAGE_SIZE

    def test_search_is_case_insensitive(self, room, alice):
        match = MessageFactory(room=room, author=alice, content="Deploy Friday?")
        MessageFactory(room=room, author=alice, content="lunch plans")

        assert RoomService.search_messages(room, "deploy") == [match]

    def test_search_skips_deleted(self, room, alice):
        message = MessageFactory(room=room, author=alice, content="secret plan")
        message.soft_delete()

        assert RoomService.search_messages(room, "secret") == []

    def test_blank_search(self, room):
        assert RoomService.search_messages(room, "   ") == []

    def test_mark_read(self, room, bob):
        RoomService.mark_read(bob, room)

        assert Membership.objects.get(room=room, user=bob).last_read_at is not None


# =============================================================================
# Room messages
# =============================================================================


@pytest.mark.django_db
class TestSendMessage:
    """Tests for MessageService.send_message()."""

    def test_persists_sanitized_content(self, room, alice):
        result = MessageService.send_message(alice.id, room.id, "  hello   team  ")

        assert result.success
        assert result.data.content == "hello team"
        assert result.data.author == alice

    def test_bumps_room_activity(self, room, alice):
        before = room.updated_at

        MessageService.send_message(alice.id, room.id, "any news")

        room.refresh_from_db()
        assert room.updated_at > before

    def test_non_member_denied(self, room, carol):
        result = MessageService.send_message(carol.id, room.id, "hello")

        assert result.error_code == ERROR_CODES.ROOM_ACCESS_DENIED

    def test_validation_runs_first(self, room, carol):
        result = MessageService.send_message(carol.id, room.id, "")

        assert result.error_code == ERROR_CODES.INVALID_MESSAGE_CONTENT

    def test_bad_room_id(self, alice):
        result = MessageService.send_message(alice.id, "nope", "hello")

        assert result.error_code == ERROR_CODES.ROOM_ACCESS_DENIED


@pytest.mark.django_db
class TestEditMessage:
    """Tests for MessageService.edit_message()."""

    def test_edit_appends_history(self, room, alice):
        message = MessageFactory(room=room, author=alice, content="teh plan")

        result = MessageService.edit_message(message.id, alice.id, "the plan")

        assert result.success
        assert result.data.content == "the plan"
        assert [entry.content for entry in result.data.history] == ["teh plan"]

    def test_other_user_denied(self, room, alice, bob):
        message = MessageFactory(room=room, author=alice)

        result = MessageService.edit_message(message.id, bob.id, "hijacked")

        assert result.error_code == ERROR_CODES.UNAUTHORIZED_MESSAGE_EDIT

    def test_too_old(self, room, alice):
        with freeze_time(timezone.now() - timedelta(hours=25)):
            message = MessageFactory(room=room, author=alice)

        result = MessageService.edit_message(message.id, alice.id, "late fix")

        assert result.error_code == ERROR_CODES.MESSAGE_TOO_OLD

    def test_authorization_before_validation(self, room, alice, bob):
        message = MessageFactory(room=room, author=alice)

        result = MessageService.edit_message(message.id, bob.id, "")

        assert result.error_code == ERROR_CODES.UNAUTHORIZED_MESSAGE_EDIT

    def test_invalid_content_leaves_message_unchanged(self, room, alice):
        message = MessageFactory(room=room, author=alice, content="keep me")

        result = MessageService.edit_message(message.id, alice.id, "   ")

        assert result.error_code == ERROR_CODES.INVALID_MESSAGE_CONTENT
        message.refresh_from_db()
        assert message.content == "keep me"
        assert message.edit_history == []

    def test_missing_id(self, alice):
        result = MessageService.edit_message(None, alice.id, "text")

        assert result.error_code == ERROR_CODES.MISSING_MESSAGE_ID

    def test_unknown_id(self, alice):
        result = MessageService.edit_message("not-a-uuid", alice.id, "text")

        assert result.error_code == ERROR_CODES.MESSAGE_NOT_FOUND

    def test_get_edit_history_members_only(self, room, alice, carol):
        message = MessageFactory(room=room, author=alice, content="v1")
        MessageService.edit_message(message.id, alice.id, "v2")

        allowed = MessageService.get_edit_history(message.id, alice)
        denied = MessageService.get_edit_history(message.id, carol)

        assert [entry.content for entry in allowed.data] == ["v1"]
        assert denied.error_code == ERROR_CODES.ROOM_ACCESS_DENIED


@pytest.mark.django_db
class TestDeleteMessage:
    def test_soft_deletes(self, room, alice):
        message = MessageFactory(room=room, author=alice)

        result = MessageService.delete_message(message.id, alice.id)

        assert result.success
        assert Message.all_objects.get(pk=message.pk).is_deleted

    def test_other_user_denied(self, room, alice, bob):
        message = MessageFactory(room=room, author=alice)

        result = MessageService.delete_message(message.id, bob.id)

        assert result.error_code == ERROR_CODES.UNAUTHORIZED_MESSAGE_DELETE

    def test_deleted_message_cannot_be_edited(self, room, alice):
        message = MessageFactory(room=room, author=alice)
        MessageService.delete_message(message.id, alice.id)

        result = MessageService.edit_message(message.id, alice.id, "resurrect")

        assert result.error_code == ERROR_CODES.MESSAGE_NOT_FOUND


# =============================================================================
# Direct messages
# =============================================================================


@pytest.mark.django_db
class TestDirectMessages:
    def test_send(self, alice, bob):
        result = DirectMessageService.send_direct_message(alice.id, bob.id, "hey there")

        assert result.success
        assert result.data.sender == alice
        assert result.data.receiver == bob

    def test_self_message(self, alice):
        result = DirectMessageService.send_direct_message(alice.id, str(alice.id), "me")

        assert result.error_code == ERROR_CODES.SELF_MESSAGE_NOT_ALLOWED
        assert not DirectMessage.all_objects.exists()

    def test_self_message_with_uppercased_id(self, alice):
        """
        Why it matters: Re-casing one's own id must still be caught before
        the database check constraint fires.
        """
        result = DirectMessageService.send_direct_message(
            alice.id, str(alice.id).upper(), "me"
        )

        assert result.error_code == ERROR_CODES.SELF_MESSAGE_NOT_ALLOWED
        assert not DirectMessage.all_objects.exists()

    def test_malformed_receiver(self, alice):
        result = DirectMessageService.send_direct_message(alice.id, "not-a-uuid", "hi")

        assert result.error_code == ERROR_CODES.RECEIVER_NOT_FOUND

    def test_missing_receiver(self, alice):
        result = DirectMessageService.send_direct_message(alice.id, None, "hello")

        assert result.error_code == ERROR_CODES.MISSING_RECEIVER_ID

    def test_unknown_receiver(self, alice):
        result = DirectMessageService.send_direct_message(
            alice.id, "00000000-0000-0000-0000-000000000000", "hello"
        )

        assert result.error_code == ERROR_CODES.RECEIVER_NOT_FOUND

    def test_inactive_receiver(self, alice):
        ghost = UserFactory(is_active=False)

        result = DirectMessageService.send_direct_message(alice.id, ghost.id, "hello")

        assert result.error_code == ERROR_CODES.RECEIVER_NOT_FOUND

    def test_edit_by_sender(self, alice, bob):
        message = DirectMessageFactory(sender=alice, receiver=bob, content="old")

        result = DirectMessageService.edit_direct_message(message.id, alice.id, "new")

        assert result.data.content == "new"
        assert result.data.history[0].content == "old"

    def test_receiver_cannot_edit(self, alice, bob):
        message = DirectMessageFactory(sender=alice, receiver=bob)

        result = DirectMessageService.edit_direct_message(message.id, bob.id, "changed")

        assert result.error_code == ERROR_CODES.UNAUTHORIZED_MESSAGE_EDIT

    def test_delete_twice(self, alice, bob):
        message = DirectMessageFactory(sender=alice, receiver=bob)

        first = DirectMessageService.delete_direct_message(message.id, alice.id)
        second = DirectMessageService.delete_direct_message(message.id, alice.id)

        assert first.success
        assert second.error_code == ERROR_CODES.MESSAGE_NOT_FOUND

    def test_messages_between_both_directions(self, alice, bob, carol):
        with freeze_time("2026-02-01 10:00:00"):
            first = DirectMessageFactory(sender=alice, receiver=bob)
        with freeze_time("2026-02-01 10:01:00"):
            second = DirectMessageFactory(sender=bob, receiver=alice)
        DirectMessageFactory(sender=alice, receiver=carol)

        assert DirectMessageService.messages_between(alice.id, bob.id) == [second, first]

    def test_search_only_own_conversations(self, alice, bob, carol):
        mine = DirectMessageFactory(sender=bob, receiver=alice, content="Quarterly report")
        DirectMessageFactory(sender=bob, receiver=carol, content="quarterly report too")

        assert DirectMessageService.search(alice.id, "QUARTERLY") == [mine]


# =============================================================================
# Conversations
# =============================================================================


@pytest.mark.django_db
class TestConversations:
    """Tests for DirectConversationService.get_conversations()."""

    def test_summaries_and_total_unread(self, alice, bob, carol):
        with freeze_time("2026-02-01 10:00:00"):
            DirectMessageFactory(sender=bob, receiver=alice)
        with freeze_time("2026-02-01 10:01:00"):
            DirectMessageFactory(sender=bob, receiver=alice)
        with freeze_time("2026-02-01 10:02:00"):
            DirectMessageFactory(sender=alice, receiver=carol)

        summaries, total_unread = DirectConversationService.get_conversations(alice)

        assert [s.partner_id for s in summaries] == [str(carol.id), str(bob.id)]
        assert [s.unread_count for s in summaries] == [0, 2]
        assert total_unread == 2

    def test_active_partner_has_no_unread(self, alice, bob):
        DirectMessageFactory(sender=bob, receiver=alice)

        summaries, total_unread = DirectConversationService.get_conversations(
            alice, active_partner_id=bob.id
        )

        assert summaries[0].unread_count == 0
        assert total_unread == 0

    def test_deleted_messages_ignored(self, alice, bob):
        DirectMessageFactory(sender=bob, receiver=alice).soft_delete()

        summaries, total_unread = DirectConversationService.get_conversations(alice)

        assert summaries == []
        assert total_unread == 0

    def test_partners_by_id(self, alice, bob):
        DirectMessageFactory(sender=bob, receiver=alice)
        summaries, _ = DirectConversationService.get_conversations(alice)

        partners = DirectConversationService.partners_by_id(summaries)

        assert partners == {str(bob.id): bob}
