"""Conversation list ownership, ordering and unread tracking.

The ConversationStore is the only writer of ``unread_count``,
``last_message`` and the pinned/muted flags. Orderings are pure functions
over conversation lists and are recomputed on every read.
"""

import logging
from enum import Enum
from typing import Iterable, Optional

from models.conversation import Conversation, ConversationAvatar, LastMessage, RequestStatus
from models.message import Message

logger = logging.getLogger(__name__)


class ConversationTab(str, Enum):
    """Tabs of the conversation list."""

    DIRECT = "direct"
    REQUESTS = "requests"
    GROUPS = "groups"


def sort_for_display(conversations: Iterable[Conversation]) -> list[Conversation]:
    """Order conversations for the main list.

    Pinned conversations come first; within each tier, most recent last
    message first. Conversations without messages sort last in their tier.
    The sort is stable, so ties keep their input order.

    Args:
        conversations: Conversations in any order.

    Returns:
        A new, display-ordered list.
    """
    by_recency = sorted(conversations, key=lambda c: c.last_activity_at, reverse=True)
    return sorted(by_recency, key=lambda c: not c.is_pinned)


def sort_by_priority(conversations: Iterable[Conversation]) -> list[Conversation]:
    """Order conversations for notification badges.

    Like sort_for_display, but conversations with unread messages rank
    above read ones within each pinned tier. Not used for the main list.
    """
    by_recency = sorted(conversations, key=lambda c: c.last_activity_at, reverse=True)
    return sorted(by_recency, key=lambda c: (not c.is_pinned, c.unread_count == 0))


def filter_conversations(
    conversations: Iterable[Conversation],
    query: str,
    current_user_id: str,
) -> list[Conversation]:
    """Keep conversations whose title, members or last message match ``query``.

    Matching is case-insensitive; a blank query keeps everything.
    """
    needle = query.strip().lower()
    if not needle:
        return list(conversations)

    matches = []
    for conversation in conversations:
        haystack = [conversation.display_name(current_user_id)]
        haystack.extend(p.name for p in conversation.participants)
        if conversation.last_message is not None:
            haystack.append(conversation.last_message.content)
        if any(needle in text.lower() for text in haystack):
            matches.append(conversation)
    return matches


def tab_of(conversation: Conversation, current_user_id: str) -> Optional[ConversationTab]:
    """Which tab a conversation belongs to, or None if it is hidden.

    Declined requests are hidden, whoever started them. A pending request
    the current user sent is shown among direct conversations.
    """
    if conversation.is_group():
        return ConversationTab.GROUPS
    if conversation.is_pending_request_for(current_user_id):
        return ConversationTab.REQUESTS
    if conversation.is_accepted_direct():
        return ConversationTab.DIRECT
    if (
        conversation.request_status == RequestStatus.PENDING
        and conversation.requested_by == current_user_id
    ):
        return ConversationTab.DIRECT
    return None


class ConversationStore:
    """Owns the conversation list of the signed-in user.

    Unread counts follow three rules: opening a conversation zeroes its
    count immediately; an inbound message for any other conversation adds
    one; a full refresh overwrites every count with the server's value.

    Args:
        current_user_id: Id of the signed-in user.
    """

    def __init__(self, current_user_id: str) -> None:
        self._current_user_id = current_user_id
        self._conversations: dict[str, Conversation] = {}
        self._active_id: Optional[str] = None
        self._observed: dict[str, set[str]] = {}

    @property
    def current_user_id(self) -> str:
        return self._current_user_id

    @property
    def active_id(self) -> Optional[str]:
        """Id of the conversation currently open, if any."""
        return self._active_id

    @property
    def active(self) -> Optional[Conversation]:
        if self._active_id is None:
            return None
        return self._conversations.get(self._active_id)

    @property
    def conversations(self) -> list[Conversation]:
        """Conversations in server order."""
        return list(self._conversations.values())

    def __len__(self) -> int:
        return len(self._conversations)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._conversations

    def get(self, conversation_id: str) -> Optional[Conversation]:
        return self._conversations.get(conversation_id)

    # Mutation

    def replace_all(self, conversations: Iterable[Conversation]) -> None:
        """Replace the list with a fresh server fetch.

        Server unread counts are authoritative and overwrite local ones,
        including for the open conversation. The open conversation stays
        open only if it is still listed.
        """
        fresh: dict[str, Conversation] = {}
        for conversation in conversations:
            fresh.setdefault(conversation.id, conversation)
        self._conversations = fresh
        self._observed = {}

        if self._active_id is not None and self._active_id not in fresh:
            logger.info(f"Open conversation {self._active_id} is no longer listed; closing it")
            self._active_id = None
        logger.debug(f"Conversation list refreshed with {len(fresh)} conversations")

    def upsert(self, conversation: Conversation) -> None:
        """Insert a conversation or replace the stored record with the same id."""
        self._conversations[conversation.id] = conversation

    def remove(self, conversation_id: str) -> Optional[Conversation]:
        """Drop a conversation, closing it if it was open."""
        removed = self._conversations.pop(conversation_id, None)
        self._observed.pop(conversation_id, None)
        if removed is not None and self._active_id == conversation_id:
            self._active_id = None
        return removed

    def open(self, conversation_id: str) -> Conversation:
        """Make a conversation the active one and zero its unread count.

        Raises:
            KeyError: If the conversation is not in the store.
        """
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise KeyError(f"Unknown conversation: {conversation_id}")
        self._active_id = conversation_id
        conversation.mark_all_read()
        return conversation

    def close(self) -> None:
        self._active_id = None

    def observe_message(self, message: Message) -> bool:
        """Account for a message in its conversation's preview and unread count.

        A message id already observed since the last refresh is ignored, so
        redelivery never counts twice.

        Returns:
            False if the conversation is unknown (it will show up on the next
            refresh), True otherwise.
        """
        conversation = self._conversations.get(message.conversation_id)
        if conversation is None:
            return False
        seen = self._observed.setdefault(message.conversation_id, set())
        if message.id in seen:
            logger.debug(f"Ignoring redelivered message {message.id}")
            return True
        seen.add(message.id)

        current = conversation.last_message
        if current is None or message.timestamp >= current.timestamp:
            conversation.update_last_message(message.content, message.timestamp, message.sender_id)

        inbound = message.sender_id != self._current_user_id
        if inbound and message.conversation_id != self._active_id:
            conversation.increment_unread()
        return True

    def rollback_preview(
        self,
        conversation_id: str,
        previous: Optional[LastMessage],
        optimistic: Message,
    ) -> None:
        """Restore a preview replaced by an optimistic message that failed.

        Nothing changes if a newer message replaced the preview meanwhile.
        """
        conversation = self._conversations.get(conversation_id)
        if conversation is None or conversation.last_message is None:
            return
        current = conversation.last_message
        if current.timestamp == optimistic.timestamp and current.sender_id == optimistic.sender_id:
            conversation.last_message = previous

    def set_pinned(self, conversation_id: str, pinned: bool) -> bool:
        """Set the pinned flag.

        Returns:
            The previous value.

        Raises:
            KeyError: If the conversation is not in the store.
        """
        conversation = self._require(conversation_id)
        previous = conversation.is_pinned
        conversation.is_pinned = pinned
        return previous

    def set_muted(self, conversation_id: str, muted: bool) -> bool:
        """Set the muted flag.

        Returns:
            The previous value.

        Raises:
            KeyError: If the conversation is not in the store.
        """
        conversation = self._require(conversation_id)
        previous = conversation.is_muted
        conversation.is_muted = muted
        return previous

    def _require(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise KeyError(f"Unknown conversation: {conversation_id}")
        return conversation

    # Views

    def ordered(self) -> list[Conversation]:
        """Conversations ready for display (pinned first, then recency)."""
        return sort_for_display(self._conversations.values())

    def by_priority(self) -> list[Conversation]:
        """Conversations ordered for notification badges."""
        return sort_by_priority(self._conversations.values())

    def filter(self, query: str) -> list[Conversation]:
        """Display-ordered conversations matching a search query."""
        return filter_conversations(self.ordered(), query, self._current_user_id)

    def display_name(self, conversation: Conversation) -> str:
        return conversation.display_name(self._current_user_id)

    def display_avatar(self, conversation: Conversation) -> ConversationAvatar:
        return conversation.display_avatar(self._current_user_id)

    def total_unread(self) -> int:
        return sum(c.unread_count for c in self._conversations.values())

    def conversations_for_tab(self, tab: ConversationTab, query: str = "") -> list[Conversation]:
        """Display-ordered conversations of one tab, optionally filtered."""
        return [
            conversation
            for conversation in self.filter(query)
            if tab_of(conversation, self._current_user_id) == tab
        ]

    def unread_by_tab(self) -> dict[ConversationTab, int]:
        """Unread totals for each tab's badge."""
        totals = {tab: 0 for tab in ConversationTab}
        for conversation in self._conversations.values():
            tab = tab_of(conversation, self._current_user_id)
            if tab is not None:
                totals[tab] += conversation.unread_count
        return totals
