"""Messages sub-client for the messaging API.

This module provides MessagesClient for loading a conversation's history
and for the per-message mutations: send, edit, delete and react.

This is an internal module. Import from `client` instead.
"""

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from client._base import BaseClient, extract, parse_records
from models.message import Message, MessageType, ReplySnapshot

logger = logging.getLogger(__name__)


class MessagesClient(BaseClient):
    """Synchronous client for message endpoints.

    All mutations are retry-safe from the client's perspective: sends carry
    the client's temporary id so the backend can deduplicate them.

    Example:
        with MessagingClient(session=session) as client:
            history = client.messages.history("conv-1")
            sent = client.messages.send("conv-1", content="On my way!")
            client.messages.react(sent.id, emoji="👍")
    """

    def history(self, conversation_id: str) -> list[Message]:
        """Get the message history of a conversation, oldest first.

        Args:
            conversation_id: The conversation to load.

        Returns:
            Messages sorted by timestamp (stable for equal timestamps).

        Raises:
            APIError: If the request fails.
        """
        data = self._get(f"/conversations/{conversation_id}/messages")
        items = extract(data, "messages", "conversation.messages")
        if isinstance(items, list):
            # Older payloads omit the conversation id on each message
            items = [
                {"conversation_id": conversation_id, **item} if isinstance(item, dict) else item
                for item in items
            ]
        messages = parse_records(items, Message, "message")
        return sorted(messages, key=lambda message: message.timestamp)

    def send(
        self,
        conversation_id: str,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        reply_to: ReplySnapshot | None = None,
        client_id: str | None = None,
    ) -> Message:
        """Send a message.

        Args:
            conversation_id: Target conversation.
            content: Message text.
            message_type: Kind of content.
            reply_to: Snapshot of the message being replied to.
            client_id: Temporary id of the optimistic local copy.

        Returns:
            The server-confirmed message.

        Raises:
            APIError: If the request fails.
            pydantic.ValidationError: If the confirmation is malformed.
        """
        request_data: dict[str, Any] = {
            "content": content,
            "type": message_type.value,
        }
        if reply_to is not None:
            request_data["reply_to"] = reply_to.model_dump()
        if client_id is not None:
            request_data["client_id"] = client_id

        data = self._post(f"/conversations/{conversation_id}/messages", json=request_data)
        record = extract(data, "message")
        if record is None and isinstance(data, dict):
            record = data
        if isinstance(record, dict):
            record = {"conversation_id": conversation_id, **record}
        return Message.model_validate(record)

    def edit(self, message_id: str, content: str) -> Message | None:
        """Replace a message's content.

        Returns:
            The updated message, or None when the backend returns no body.

        Raises:
            APIError: If the request fails.
        """
        data = self._put(f"/messages/{message_id}", json={"content": content})
        return _optional_message(data)

    def delete(self, message_id: str) -> None:
        """Delete a message.

        Raises:
            APIError: If the request fails.
        """
        self._delete(f"/messages/{message_id}")

    def react(self, message_id: str, emoji: str) -> Message | None:
        """Toggle the current user's reaction on a message.

        Returns:
            The message with its authoritative reactions, or None when the
            backend returns no body.

        Raises:
            APIError: If the request fails.
        """
        data = self._post(f"/messages/{message_id}/reactions", json={"emoji": emoji})
        return _optional_message(data)


def _optional_message(data: Any) -> Message | None:
    """Parse an optional confirmation body; a partial record counts as none."""
    record = extract(data, "message")
    if record is None:
        record = data
    if not isinstance(record, dict) or "id" not in record:
        return None
    try:
        return Message.model_validate(record)
    except PydanticValidationError as e:
        logger.warning(f"Ignoring partial message confirmation: {e.error_count()} error(s)")
        return None
