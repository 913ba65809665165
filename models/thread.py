"""Message thread ownership and display planning.

This module provides:
- should_show_timestamp / should_show_avatar: the adjacency rules
- build_display_plan: per-message display flags for a message sequence
- MessageThread: owner of the message array of the open conversation

Display flags are derived, never stored: they are recomputed from the raw
sequence on every call, so edits and deletes that change adjacency are
always reflected.
"""

import logging
from datetime import timedelta
from typing import Iterator, Optional, Sequence

from pydantic import BaseModel, Field

from models.conversation import Conversation
from models.message import Message
from models.user import UNKNOWN_USER_NAME

logger = logging.getLogger(__name__)

TIMESTAMP_GAP = timedelta(minutes=5)
OWN_SENDER_NAME = "You"


def should_show_timestamp(current: Message, previous: Optional[Message]) -> bool:
    """Whether a timestamp divider goes before ``current``.

    A divider is shown before the first message and wherever the gap to the
    previous message is strictly greater than five minutes.
    """
    if previous is None:
        return True
    return current.timestamp - previous.timestamp > TIMESTAMP_GAP


def should_show_avatar(current: Message, previous: Optional[Message]) -> bool:
    """Whether ``current`` starts a new visual group with a sender avatar.

    Consecutive messages from the same sender merge unless a timestamp
    divider separates them.
    """
    if previous is None:
        return True
    if current.sender_id != previous.sender_id:
        return True
    return should_show_timestamp(current, previous)


class MessageDisplay(BaseModel):
    """Display flags for one message of a thread.

    Args:
        message_id: The message these flags are for.
        show_timestamp: Draw a timestamp divider before the message.
        show_avatar: Draw the sender's avatar (never for own messages).
        show_sender_label: Draw the sender's name (group chats only).
        is_own: Whether the current user sent the message.
        sender_name: Name to render for the sender.
        reply_resolves: Whether the replied-to message is still in the thread.
    """

    message_id: str
    show_timestamp: bool
    show_avatar: bool
    show_sender_label: bool = False
    is_own: bool = False
    sender_name: str = UNKNOWN_USER_NAME
    reply_resolves: bool = Field(default=True, description="False for dangling reply references")


def resolve_sender_name(
    message: Message,
    current_user_id: str,
    conversation: Optional[Conversation] = None,
) -> str:
    """Name shown for a message's sender."""
    if message.sender_id == current_user_id:
        return OWN_SENDER_NAME
    if message.sender_name:
        return message.sender_name
    if conversation is not None:
        for participant in conversation.participants:
            if participant.id == message.sender_id:
                return participant.name
    return UNKNOWN_USER_NAME


def build_display_plan(
    messages: Sequence[Message],
    current_user_id: str,
    conversation: Optional[Conversation] = None,
) -> list[MessageDisplay]:
    """Compute display flags for a chronologically ordered message sequence.

    Pure and idempotent: the input is not modified, and the same input
    always yields the same plan.

    Args:
        messages: Messages in chronological order.
        current_user_id: Id of the signed-in user.
        conversation: The conversation, used for group labels and names.

    Returns:
        One MessageDisplay per message, in the same order.
    """
    is_group = conversation is not None and conversation.is_group()
    present_ids = {message.id for message in messages}

    plan = []
    previous: Optional[Message] = None
    for message in messages:
        is_own = message.sender_id == current_user_id
        show_avatar = not is_own and should_show_avatar(message, previous)
        plan.append(
            MessageDisplay(
                message_id=message.id,
                show_timestamp=should_show_timestamp(message, previous),
                show_avatar=show_avatar,
                show_sender_label=is_group and show_avatar,
                is_own=is_own,
                sender_name=resolve_sender_name(message, current_user_id, conversation),
                reply_resolves=message.reply_to is None or message.reply_to.id in present_ids,
            )
        )
        previous = message
    return plan


class MessageThread:
    """The message array of the open conversation.

    Messages are kept in chronological order. Only the documented
    operations mutate the array; ``messages`` returns a copy.

    Args:
        conversation_id: Conversation the thread belongs to, if any.
    """

    def __init__(self, conversation_id: Optional[str] = None) -> None:
        self.conversation_id = conversation_id
        self._messages: list[Message] = []

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __contains__(self, message_id: object) -> bool:
        return any(message.id == message_id for message in self._messages)

    def load(self, conversation_id: Optional[str], messages: Sequence[Message]) -> None:
        """Replace the thread with a fetched history.

        Duplicate ids keep their first occurrence; order is chronological
        (stable for equal timestamps).
        """
        self.conversation_id = conversation_id
        seen: set[str] = set()
        unique = []
        for message in messages:
            if message.id not in seen:
                seen.add(message.id)
                unique.append(message)
        self._messages = sorted(unique, key=lambda m: m.timestamp)
        logger.debug(f"Loaded {len(self._messages)} messages for conversation {conversation_id}")

    def clear(self) -> None:
        self.conversation_id = None
        self._messages = []

    def receive(self, message: Message) -> bool:
        """Insert an inbound message in chronological position.

        Returns:
            False if it belongs to another conversation or is already
            present, True if it was inserted.
        """
        if message.conversation_id != self.conversation_id or message.id in self:
            return False
        index = len(self._messages)
        while index > 0 and self._messages[index - 1].timestamp > message.timestamp:
            index -= 1
        self._messages.insert(index, message)
        return True

    def append(self, message: Message) -> None:
        """Add a locally composed message at the end of the thread."""
        self._messages.append(message)

    def replace(self, message_id: str, message: Message) -> bool:
        """Swap the message with ``message_id`` for ``message`` in place.

        If ``message`` is already in the thread under its own id (the server
        echo arrived first), the entry being replaced is dropped instead.

        Returns:
            True if ``message_id`` was found.
        """
        index = self.index_of(message_id)
        if index is None:
            return False
        if message.id != message_id and message.id in self:
            del self._messages[index]
            return True
        self._messages[index] = message
        return True

    def remove(self, message_id: str) -> Optional[Message]:
        index = self.index_of(message_id)
        if index is None:
            return None
        return self._messages.pop(index)

    def get(self, message_id: str) -> Optional[Message]:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def index_of(self, message_id: str) -> Optional[int]:
        for index, message in enumerate(self._messages):
            if message.id == message_id:
                return index
        return None

    def ids(self) -> set[str]:
        return {message.id for message in self._messages}

    def display_plan(
        self,
        current_user_id: str,
        conversation: Optional[Conversation] = None,
    ) -> list[MessageDisplay]:
        """Display flags for the current messages."""
        return build_display_plan(self._messages, current_user_id, conversation)
