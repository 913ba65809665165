"""Unit tests for the User, Contact, Conversation and Message records.

Payloads are given in both snake_case and the camelCase shape older
backends emit; missing optional fields must fall back to defaults.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from models.conversation import NEVER, RequestStatus
from models.message import Message, MessageType, ReplySnapshot, new_temp_id
from models.user import Contact, Role, User
from tests.fixtures.records import (
    BASE_TIME,
    CURRENT_USER_ID,
    create_conversation,
    create_group_conversation,
    create_message,
)


# =============================================================================
# Users
# =============================================================================


class TestUser:
    """Tests for User and Contact normalization."""

    def test_defaults_for_missing_fields(self):
        user = User.model_validate({"id": 42, "name": "", "role": "alien"})

        assert user.id == "42"
        assert user.name == "Unknown User"
        assert user.role == Role.STUDENT
        assert user.online is False
        assert user.last_active_at.tzinfo is not None

    def test_camel_case_and_status(self):
        user = User.model_validate(
            {
                "id": "user-2",
                "name": "Sarah Chen",
                "avatarRef": "avatars/2.png",
                "status": "online",
                "lastActiveAt": "2025-01-15T12:00:00Z",
            }
        )

        assert user.avatar_ref == "avatars/2.png"
        assert user.online is True
        assert user.last_active_at == BASE_TIME
        assert user.initials == "SC"

    def test_missing_id_rejected(self):
        with pytest.raises(ValidationError):
            User.model_validate({"name": "Nobody"})

    def test_contact_relationship_flags(self):
        contact = Contact.model_validate(
            {"id": "user-3", "isFollowing": None, "mutualConnections": "-2"}
        )

        assert contact.is_following is False
        assert contact.mutual_connection_count == 0


# =============================================================================
# Conversations
# =============================================================================


class TestConversation:
    """Tests for Conversation parsing and derivations."""

    def test_direct_display(self):
        conversation = create_conversation(timestamp=BASE_TIME)

        assert conversation.display_name(CURRENT_USER_ID) == "Sarah Chen"
        assert conversation.display_avatar(CURRENT_USER_ID).initials == "SC"
        assert conversation.last_activity_at == BASE_TIME

    def test_group_display(self):
        named = create_group_conversation()
        unnamed = create_group_conversation(group_name="  ")

        assert named.display_name(CURRENT_USER_ID) == "Study Group"
        assert unnamed.display_name(CURRENT_USER_ID) == "Group Chat"
        assert named.display_avatar(CURRENT_USER_ID).initials == "GC"
        assert named.other_participant(CURRENT_USER_ID) is None

    def test_display_name_follows_participant_changes(self):
        conversation = create_conversation()
        conversation.participants[1].name = "Sarah Chen-Li"

        assert conversation.display_name(CURRENT_USER_ID) == "Sarah Chen-Li"

    def test_direct_needs_two_participants(self):
        with pytest.raises(ValidationError):
            create_conversation(participants=[{"id": CURRENT_USER_ID}])

    def test_duplicate_participants_dropped(self):
        conversation = create_group_conversation(member_ids=("user-2", "user-2", "user-3"))

        assert conversation.participant_ids == [CURRENT_USER_ID, "user-2", "user-3"]

    def test_participant_ids_with_embedded_profile(self):
        conversation = create_conversation(
            participants=[CURRENT_USER_ID, "user-2"],
            participant={"id": "user-2", "name": "Sarah Chen", "online": True},
        )

        assert conversation.display_avatar(CURRENT_USER_ID).is_online is True

    def test_no_last_message_sorts_as_never(self):
        assert create_conversation().last_activity_at == NEVER

    def test_negative_unread_clamped(self):
        assert create_conversation(unread_count=-3).unread_count == 0

    def test_request_status(self):
        incoming = create_conversation(request_status="pending", requested_by="user-2")
        outgoing = create_conversation(request_status="pending", requested_by=CURRENT_USER_ID)

        assert incoming.is_pending_request_for(CURRENT_USER_ID) is True
        assert outgoing.is_pending_request_for(CURRENT_USER_ID) is False
        assert create_conversation(request_status="weird").request_status is None
        assert incoming.request_status == RequestStatus.PENDING

    def test_unread_helpers(self):
        conversation = create_conversation()
        conversation.increment_unread()
        conversation.increment_unread()
        assert conversation.unread_count == 2

        conversation.mark_all_read()
        assert conversation.unread_count == 0


# =============================================================================
# Messages
# =============================================================================


class TestMessage:
    """Tests for Message parsing and local mutation helpers."""

    def test_camel_case_payload(self):
        message = Message.model_validate(
            {
                "id": "m1",
                "conversationId": "conv-1",
                "senderId": "user-2",
                "content": None,
                "createdAt": "2025-01-15T12:00:00",
                "messageType": "sticker",
                "replyTo": {"id": "m0", "content": "Lunch?", "senderName": "Alex Morgan"},
            }
        )

        assert message.content == ""
        assert message.timestamp == BASE_TIME
        assert message.type == MessageType.TEXT
        assert message.reply_to.sender_name == "Alex Morgan"

    def test_reactions_list_form_merged(self):
        message = create_message(
            reactions=[
                {"emoji": "👍", "userIds": ["user-2"]},
                {"emoji": "👍", "user_ids": ["user-3", "user-2"]},
                {"emoji": "❤️", "userIds": []},
            ]
        )

        assert message.reactions == {"👍": {"user-2", "user-3"}}
        assert message.reaction_count("👍") == 2

    def test_toggle_reaction(self):
        message = create_message()

        assert message.toggle_reaction("👍", CURRENT_USER_ID) is True
        assert message.has_reacted("👍", CURRENT_USER_ID)
        assert message.toggle_reaction("👍", CURRENT_USER_ID) is False
        assert message.reactions == {}

    def test_apply_edit(self):
        message = create_message()
        message.apply_edit("Hello again")

        assert message.content == "Hello again"
        assert message.edited is True

    def test_temporary_ids(self):
        temp = create_message(new_temp_id())

        assert temp.is_temporary
        assert not create_message().is_temporary

    def test_reply_snapshot_is_frozen_copy(self):
        original = create_message(content="x" * 80)
        snapshot = ReplySnapshot.capture(original, "Sarah Chen")

        original.apply_edit("changed")

        assert snapshot.content == "x" * 50 + "..."
        with pytest.raises(ValidationError):
            snapshot.content = "mutated"

    def test_timestamp_order(self):
        earlier = create_message("m1", minutes=0)
        later = create_message("m2", minutes=1)
        assert later.timestamp - earlier.timestamp == timedelta(minutes=1)
