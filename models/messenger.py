"""Messaging facade binding the stores to the REST client.

Messenger is what a UI layer talks to: it exposes the ordered
conversation list, the open thread's display plan, and the imperative
actions (start conversation, send, edit, delete, react, reply, follow,
unfollow, answer requests, pin, mute).

All state transitions happen synchronously on the caller's thread.
Completion handlers check that their conversation is still the open one
before touching the thread, so a late response never refocuses or
corrupts another conversation's view.
"""

import logging
from typing import TYPE_CHECKING, Callable, Optional

from client.exceptions import MessagingClientError
from models.actions import ActionResult, ActionRunner, Notice
from models.conversation import Conversation, RequestStatus
from models.conversation_store import ConversationStore, ConversationTab
from models.directory import ContactDirectory, LoadState
from models.formatting import utc_now
from models.message import Message, MessageType, ReplySnapshot, new_temp_id
from models.mutation import MutationKind
from models.session import Session
from models.thread import MessageDisplay, MessageThread

if TYPE_CHECKING:
    from client.client import MessagingClient
    from client.models import ConversationCreated

logger = logging.getLogger(__name__)


class Messenger:
    """The messaging core for one signed-in session.

    Args:
        client: REST client authenticated for ``session``.
        session: The signed-in session.
        on_notice: Called with every user-visible failure notice.

    Attributes:
        store: Conversation list, ordering and unread counts.
        thread: Messages of the open conversation.
        directory: Contacts, following, search and selection.
        runner: Shared optimistic action runner.
        reply_target: Snapshot attached to the next sent message.

    Example:
        messenger = Messenger(client, session, on_notice=show_toast)
        messenger.refresh()
        messenger.open_conversation(messenger.conversations()[0].id)
        messenger.send_message("Hi!")
    """

    def __init__(
        self,
        client: "MessagingClient",
        session: Session,
        on_notice: Optional[Callable[[Notice], None]] = None,
    ) -> None:
        self._client = client
        self.session = session
        self.runner = ActionRunner(on_notice=on_notice)
        self.store = ConversationStore(session.user_id)
        self.thread = MessageThread()
        self.directory = ContactDirectory(client.contacts, session, self.runner)
        self.reply_target: Optional[ReplySnapshot] = None
        self.list_state = LoadState.IDLE
        self.history_state = LoadState.IDLE

    @property
    def current_user_id(self) -> str:
        return self.session.user_id

    @property
    def notices(self) -> list[Notice]:
        return self.runner.notices

    # Views

    def conversations(
        self,
        tab: Optional[ConversationTab] = None,
        query: str = "",
    ) -> list[Conversation]:
        """The display-ordered conversation list, optionally for one tab."""
        if tab is None:
            return self.store.filter(query)
        return self.store.conversations_for_tab(tab, query)

    def display_plan(self) -> list[MessageDisplay]:
        """Display flags for the open thread."""
        conversation = self.store.get(self.thread.conversation_id or "")
        return self.thread.display_plan(self.current_user_id, conversation)

    # Loading

    def refresh(self) -> list[Conversation]:
        """Reload the conversation list from the backend.

        The fetched list is authoritative: server unread counts overwrite
        local ones, and pending optimistic bookkeeping is discarded. The
        open thread is reloaded too.

        Returns:
            The display-ordered list, or an empty list if the load failed
            (the previous list stays in the store).
        """
        self.list_state = LoadState.LOADING
        try:
            conversations = self._client.conversations.list_conversations()
        except MessagingClientError as e:
            logger.warning(f"Failed to load conversations: {e}")
            self.list_state = LoadState.FAILED
            return []

        self.store.replace_all(conversations)
        discarded = self.runner.ledger.discard()
        if discarded:
            logger.debug(f"Discarded {discarded} pending mutations after refresh")
        self.list_state = LoadState.LOADED
        logger.info(f"Loaded {len(conversations)} conversations")

        active_id = self.store.active_id
        if active_id is None:
            if self.thread.conversation_id is not None:
                self.thread.clear()
        else:
            self._load_history(active_id)
        return self.store.ordered()

    def _load_history(self, conversation_id: str) -> list[Message]:
        self.history_state = LoadState.LOADING
        try:
            history = self._client.messages.history(conversation_id)
        except MessagingClientError as e:
            logger.warning(f"Failed to load messages for {conversation_id}: {e}")
            self.history_state = LoadState.FAILED
            history = []
        else:
            self.history_state = LoadState.LOADED

        if self.store.active_id != conversation_id:
            logger.debug(f"Ignoring late history for {conversation_id}")
            return history
        self.thread.load(conversation_id, history)
        return history

    # Conversations

    def open_conversation(self, conversation_id: str) -> list[Message]:
        """Open a conversation: zero its unread count, load it, mark it read.

        The unread count is zeroed before any request. A failed mark-read is
        not reverted; the next refresh brings the server's count back.

        Raises:
            KeyError: If the conversation is not in the store.
        """
        self.store.open(conversation_id)
        self.reply_target = None
        self.thread.load(conversation_id, [])
        logger.info(f"Opened conversation {conversation_id}")

        self._load_history(conversation_id)
        self.runner.run(
            MutationKind.MARK_READ,
            conversation_id,
            request=lambda: self._client.conversations.mark_read(conversation_id),
            notify=False,
        )
        return self.thread.messages

    def close_conversation(self) -> None:
        self.store.close()
        self.thread.clear()
        self.reply_target = None

    def start_conversation(self, group_name: Optional[str] = None) -> Optional[Conversation]:
        """Start a conversation with the directory's current selection.

        One selected user starts (or resolves) a direct conversation; more
        start a group under the deterministic group key, so the same member
        set always lands in the same group. The new conversation is opened
        unless the user opened another one while the request was running.

        Args:
            group_name: Optional name for a new group.

        Returns:
            The conversation, or None if the request failed.

        Raises:
            ValueError: If nothing is selected.
        """
        plan = self.directory.plan_conversation()

        if plan.is_group and plan.conversation_id in self.store:
            logger.info(f"Group {plan.conversation_id} already exists; opening it")
            self.directory.clear_selection()
            self.open_conversation(plan.conversation_id)
            return self.store.get(plan.conversation_id)

        if plan.is_group:
            request: Callable[[], "ConversationCreated"] = (
                lambda: self._client.conversations.create_group(
                    plan.conversation_id, plan.member_ids, group_name
                )
            )
        else:
            request = lambda: self._client.conversations.create_direct(plan.member_ids[0])

        active_before = self.store.active_id
        result = self.runner.run(
            MutationKind.START,
            plan.conversation_id or plan.member_ids[0],
            request=request,
            details={"member_ids": plan.member_ids},
        )
        if not result.ok:
            return None

        created: "ConversationCreated" = result.value
        self.directory.clear_selection()
        if created.conversation is not None:
            self.store.upsert(created.conversation)
        elif created.conversation_id not in self.store:
            self.refresh()

        conversation = self.store.get(created.conversation_id)
        if conversation is None:
            logger.warning(f"Conversation {created.conversation_id} was created but is not listed")
            return None

        if self.store.active_id != active_before:
            logger.info(
                f"Not opening {conversation.id}: {self.store.active_id} was opened meanwhile"
            )
            return conversation

        logger.info(f"Started conversation {conversation.id}")
        self.open_conversation(conversation.id)
        return conversation

    def accept_request(self, conversation_id: str) -> ActionResult:
        """Accept a message request, then reload the list and open it.

        Raises:
            KeyError: If the conversation is not in the store.
        """
        conversation = self.store.get(conversation_id)
        if conversation is None:
            raise KeyError(f"Unknown conversation: {conversation_id}")
        previous = conversation.request_status

        def apply() -> None:
            conversation.request_status = RequestStatus.ACCEPTED

        def confirm(_: object) -> None:
            self.refresh()
            if conversation_id in self.store:
                self.open_conversation(conversation_id)

        def revert() -> None:
            conversation.request_status = previous

        return self.runner.run(
            MutationKind.ACCEPT,
            conversation_id,
            request=lambda: self._client.conversations.accept_request(conversation_id),
            apply=apply,
            confirm=confirm,
            revert=revert,
        )

    def decline_request(self, conversation_id: str) -> ActionResult:
        """Decline a message request, removing it from the list.

        Raises:
            KeyError: If the conversation is not in the store.
        """
        conversation = self.store.get(conversation_id)
        if conversation is None:
            raise KeyError(f"Unknown conversation: {conversation_id}")
        was_open = self.store.active_id == conversation_id

        def apply() -> None:
            self.store.remove(conversation_id)
            if self.thread.conversation_id == conversation_id:
                self.thread.clear()

        def revert() -> None:
            self.store.upsert(conversation)
            if was_open and self.store.active_id is None:
                self.open_conversation(conversation_id)

        return self.runner.run(
            MutationKind.DECLINE,
            conversation_id,
            request=lambda: self._client.conversations.decline_request(conversation_id),
            apply=apply,
            revert=revert,
        )

    def set_pinned(self, conversation_id: str, pinned: bool) -> ActionResult:
        """Pin or unpin a conversation.

        Raises:
            KeyError: If the conversation is not in the store.
        """
        previous = self._require_conversation(conversation_id).is_pinned
        return self.runner.run(
            MutationKind.PIN,
            conversation_id,
            request=lambda: self._client.conversations.update(conversation_id, is_pinned=pinned),
            apply=lambda: self.store.set_pinned(conversation_id, pinned),
            revert=lambda: self._revert_flag(self.store.set_pinned, conversation_id, previous),
        )

    def set_muted(self, conversation_id: str, muted: bool) -> ActionResult:
        """Mute or unmute a conversation.

        Raises:
            KeyError: If the conversation is not in the store.
        """
        previous = self._require_conversation(conversation_id).is_muted
        return self.runner.run(
            MutationKind.MUTE,
            conversation_id,
            request=lambda: self._client.conversations.update(conversation_id, is_muted=muted),
            apply=lambda: self.store.set_muted(conversation_id, muted),
            revert=lambda: self._revert_flag(self.store.set_muted, conversation_id, previous),
        )

    def _revert_flag(
        self,
        setter: Callable[[str, bool], bool],
        conversation_id: str,
        previous: bool,
    ) -> None:
        if conversation_id in self.store:
            setter(conversation_id, previous)

    def _require_conversation(self, conversation_id: str) -> Conversation:
        conversation = self.store.get(conversation_id)
        if conversation is None:
            raise KeyError(f"Unknown conversation: {conversation_id}")
        return conversation

    # Messages

    def receive_message(self, message: Message) -> bool:
        """Account for a message delivered by polling or a push channel.

        Returns:
            False if the conversation is not known yet.
        """
        known = self.store.observe_message(message)
        if not known:
            logger.debug(f"Message {message.id} for unknown conversation {message.conversation_id}")
        if self.thread.conversation_id == message.conversation_id:
            self.thread.receive(message)
        return known

    def send_message(
        self,
        content: str,
        message_type: MessageType = MessageType.TEXT,
    ) -> Optional[ActionResult]:
        """Send a message to the open conversation.

        The message appears immediately under a temporary id. On success it
        is replaced by the server's copy; on failure it is removed, leaving
        the thread as it was before the send. A pending reply target is
        attached and then cleared.

        Returns:
            The action result, or None for blank content.

        Raises:
            ValueError: If no conversation is open.
        """
        conversation_id = self.store.active_id
        if conversation_id is None:
            raise ValueError("Open a conversation before sending")
        if not content.strip():
            return None

        conversation = self._require_conversation(conversation_id)
        previous_preview = conversation.last_message
        reply_to = self.reply_target
        self.reply_target = None

        optimistic = Message(
            id=new_temp_id(),
            conversation_id=conversation_id,
            sender_id=self.current_user_id,
            sender_name=self.session.user.name,
            content=content.strip(),
            timestamp=utc_now(),
            type=message_type,
            reply_to=reply_to,
        )

        def apply() -> None:
            self.thread.append(optimistic)
            self.store.observe_message(optimistic)

        def confirm(sent: Message) -> None:
            if self.thread.conversation_id == conversation_id:
                self.thread.replace(optimistic.id, sent)
            self.store.observe_message(sent)

        def revert() -> None:
            if self.thread.conversation_id == conversation_id:
                self.thread.remove(optimistic.id)
            self.store.rollback_preview(conversation_id, previous_preview, optimistic)

        return self.runner.run(
            MutationKind.SEND,
            optimistic.id,
            request=lambda: self._client.messages.send(
                conversation_id,
                optimistic.content,
                message_type=message_type,
                reply_to=reply_to,
                client_id=optimistic.id,
            ),
            apply=apply,
            confirm=confirm,
            revert=revert,
        )

    def edit_message(self, message_id: str, content: str) -> ActionResult:
        """Edit one of the current user's messages.

        Raises:
            ValueError: If the message is not in the open thread, belongs to
                someone else, is still sending, or the content is blank.
        """
        message = self._own_message(message_id)
        if not content.strip():
            raise ValueError("Message content cannot be empty")
        previous_content = message.content
        previous_edited = message.edited
        new_content = content.strip()

        def confirm(updated: Optional[Message]) -> None:
            if updated is not None and message_id in self.thread:
                self.thread.replace(message_id, updated)

        def revert() -> None:
            current = self.thread.get(message_id)
            if current is not None:
                current.content = previous_content
                current.edited = previous_edited

        return self.runner.run(
            MutationKind.EDIT,
            message_id,
            request=lambda: self._client.messages.edit(message_id, new_content),
            apply=lambda: message.apply_edit(new_content),
            confirm=confirm,
            revert=revert,
        )

    def delete_message(self, message_id: str) -> ActionResult:
        """Delete one of the current user's messages.

        The message is removed outright; there is no placeholder.

        Raises:
            ValueError: If the message is not in the open thread, belongs to
                someone else, or is still sending.
        """
        message = self._own_message(message_id)
        conversation_id = self.thread.conversation_id

        def revert() -> None:
            if self.thread.conversation_id == conversation_id:
                self.thread.receive(message)

        return self.runner.run(
            MutationKind.DELETE,
            message_id,
            request=lambda: self._client.messages.delete(message_id),
            apply=lambda: self.thread.remove(message_id),
            revert=revert,
        )

    def react(self, message_id: str, emoji: str) -> ActionResult:
        """Toggle the current user's ``emoji`` reaction on a message.

        Raises:
            ValueError: If the message is not in the open thread.
        """
        message = self.thread.get(message_id)
        if message is None:
            raise ValueError(f"Message {message_id} is not in the open thread")
        user_id = self.current_user_id

        def confirm(updated: Optional[Message]) -> None:
            current = self.thread.get(message_id)
            if updated is not None and current is not None:
                current.reactions = updated.reactions

        def revert() -> None:
            current = self.thread.get(message_id)
            if current is not None:
                current.toggle_reaction(emoji, user_id)

        return self.runner.run(
            MutationKind.REACT,
            message_id,
            request=lambda: self._client.messages.react(message_id, emoji),
            apply=lambda: message.toggle_reaction(emoji, user_id),
            confirm=confirm,
            revert=revert,
            details={"emoji": emoji},
        )

    def prepare_reply(self, message_id: str) -> ReplySnapshot:
        """Capture a reply snapshot for the next sent message.

        Raises:
            ValueError: If the message is not in the open thread.
        """
        message = self.thread.get(message_id)
        if message is None:
            raise ValueError(f"Message {message_id} is not in the open thread")

        if message.sender_id == self.current_user_id:
            sender_name = self.session.user.name
        else:
            sender_name = message.sender_name or self._participant_name(message.sender_id)
        self.reply_target = ReplySnapshot.capture(message, sender_name)
        return self.reply_target

    def cancel_reply(self) -> None:
        self.reply_target = None

    def _participant_name(self, user_id: str) -> str:
        conversation = self.store.get(self.thread.conversation_id or "")
        if conversation is not None:
            for participant in conversation.participants:
                if participant.id == user_id:
                    return participant.name
        return "Unknown"

    def _own_message(self, message_id: str) -> Message:
        message = self.thread.get(message_id)
        if message is None:
            raise ValueError(f"Message {message_id} is not in the open thread")
        if not message.is_from(self.current_user_id):
            raise ValueError("Only the sender can change a message")
        if message.is_temporary:
            raise ValueError("Message is still being sent")
        return message

    # Directory

    def follow(self, user_id: str) -> ActionResult:
        return self.directory.follow(user_id)

    def unfollow(self, user_id: str) -> ActionResult:
        return self.directory.unfollow(user_id)
