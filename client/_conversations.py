"""Conversations sub-client for the messaging API.

This module provides ConversationsClient for listing, creating and
updating conversations, marking them read, and answering message requests.

This is an internal module. Import from `client` instead.
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from client._base import BaseClient, extract, parse_records
from client.models import ConversationCreated
from models.conversation import Conversation


class ConversationsClient(BaseClient):
    """Synchronous client for conversation endpoints.

    Example:
        with MessagingClient(session=session) as client:
            conversations = client.conversations.list_conversations()
            created = client.conversations.create_direct("user-42")
            client.conversations.mark_read(created.conversation_id)
    """

    _BASE_PATH = "/conversations"

    def list_conversations(self) -> list[Conversation]:
        """Get every conversation visible to the current user.

        Returns:
            Conversations in server order, with server-side unread counts.

        Raises:
            APIError: If the request fails.
        """
        data = self._get(self._BASE_PATH)
        return parse_records(extract(data, "conversations"), Conversation, "conversation")

    def create_direct(self, user_id: str) -> ConversationCreated:
        """Start (or resolve the existing) direct conversation with a user.

        Args:
            user_id: The other participant.

        Returns:
            The conversation id, and the record when the backend returns it.

        Raises:
            APIError: If the request fails.
        """
        data = self._post(self._BASE_PATH, json={"participant_id": user_id})
        return _created(data)

    def create_group(
        self,
        conversation_id: str,
        participant_ids: list[str],
        name: str | None = None,
    ) -> ConversationCreated:
        """Create a group conversation under a client-chosen id.

        The id is the deterministic group key, so creating the same member
        set twice resolves to the same conversation.

        Args:
            conversation_id: Deterministic group key.
            participant_ids: Members other than the current user.
            name: Optional group display name.

        Returns:
            The conversation id, and the record when the backend returns it.

        Raises:
            APIError: If the request fails.
        """
        request_data: dict[str, Any] = {
            "conversation_id": conversation_id,
            "participant_ids": participant_ids,
        }
        if name is not None:
            request_data["name"] = name

        data = self._post("/group-chats", json=request_data)
        return _created(data, fallback_id=conversation_id)

    def mark_read(self, conversation_id: str) -> None:
        """Tell the backend the conversation was read up to now.

        Raises:
            APIError: If the request fails.
        """
        self._post(f"/messages/{conversation_id}/read")

    def accept_request(self, conversation_id: str) -> None:
        """Accept a pending message request.

        Raises:
            APIError: If the request fails.
        """
        self._post(f"/message-requests/{conversation_id}/accept")

    def decline_request(self, conversation_id: str) -> None:
        """Decline a pending message request.

        Raises:
            APIError: If the request fails.
        """
        self._post(f"/message-requests/{conversation_id}/decline")

    def update(
        self,
        conversation_id: str,
        is_pinned: bool | None = None,
        is_muted: bool | None = None,
    ) -> None:
        """Update per-user conversation flags.

        Args:
            conversation_id: The conversation to update.
            is_pinned: New pinned flag, if changing.
            is_muted: New muted flag, if changing.

        Raises:
            APIError: If the request fails.
        """
        request_data: dict[str, Any] = {}
        if is_pinned is not None:
            request_data["is_pinned"] = is_pinned
        if is_muted is not None:
            request_data["is_muted"] = is_muted

        self._put(f"{self._BASE_PATH}/{conversation_id}", json=request_data)


def _created(data: Any, fallback_id: str | None = None) -> ConversationCreated:
    """Interpret a creation response that may or may not embed the record."""
    record = extract(data, "conversation")
    conversation = None
    if isinstance(record, dict):
        try:
            conversation = Conversation.model_validate(record)
        except PydanticValidationError:
            conversation = None

    conversation_id = (
        conversation.id
        if conversation is not None
        else extract(data, "conversation_id", "conversation.id", "id") or fallback_id
    )
    if not conversation_id:
        raise ValueError("Conversation creation response did not include an id")

    return ConversationCreated(conversation_id=str(conversation_id), conversation=conversation)
