"""Contact discovery and follow state for starting conversations.

The ContactDirectory resolves three separate pools of people the current
user can message (existing contacts, followed users, ad-hoc search
results), lets the user change follow relationships, and keeps the
multi-select that seeds new conversations.
"""

import hashlib
import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from pydantic import BaseModel, Field

from client.exceptions import MessagingClientError
from models.actions import ActionResult, ActionRunner
from models.conversation import ConversationType
from models.mutation import MutationKind
from models.session import Session
from models.user import Contact

if TYPE_CHECKING:
    from client._contacts import ContactsClient
    from client.models import FollowResponse

logger = logging.getLogger(__name__)

GROUP_KEY_PREFIX = "group_"
GROUP_KEY_SEPARATOR = "|"
GROUP_KEY_HASH_LENGTH = 24


class DirectoryView(str, Enum):
    """The three pools of people the directory can show."""

    CONTACTS = "contacts"
    FOLLOWING = "following"
    SEARCH = "search"


class LoadState(str, Enum):
    """Load status of a list view."""

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class DirectoryListing(BaseModel):
    """Current contents of one directory view.

    ``state`` lets the caller tell "still loading" apart from "loaded and
    empty" when choosing an empty-state message.
    """

    state: LoadState = Field(default=LoadState.IDLE, description="Load status")
    items: list[Contact] = Field(default_factory=list, description="Contacts in this view")
    query: Optional[str] = Field(default=None, description="Search query, for the search view")
    error: Optional[str] = Field(default=None, description="Last load error")

    @property
    def is_loading(self) -> bool:
        return self.state == LoadState.LOADING

    @property
    def is_empty(self) -> bool:
        """True only once a load finished without results."""
        return self.state in (LoadState.LOADED, LoadState.FAILED) and not self.items


class ConversationPlan(BaseModel):
    """What starting a conversation from the current selection will do.

    Args:
        type: Direct for one selected user, group for more.
        member_ids: Selected user ids, excluding the current user.
        conversation_id: Deterministic group key (groups only).
    """

    type: ConversationType
    member_ids: list[str]
    conversation_id: Optional[str] = None

    @property
    def is_group(self) -> bool:
        return self.type == ConversationType.GROUP


def compose_group_key(member_ids: Iterable[str]) -> str:
    """Build the deterministic id of the group with these members.

    Member ids are deduplicated, sorted and joined with a fixed separator,
    then hashed into a compact id. The same set in any order yields the same
    key. This is canonicalization, not a security measure.

    Args:
        member_ids: Every member, current user included.

    Returns:
        A ``group_<hex>`` id.

    Raises:
        ValueError: If fewer than two distinct members are given.
    """
    members = sorted({str(member_id) for member_id in member_ids})
    if len(members) < 2:
        raise ValueError("A group needs at least two distinct members")
    canonical = GROUP_KEY_SEPARATOR.join(members)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{GROUP_KEY_PREFIX}{digest[:GROUP_KEY_HASH_LENGTH]}"


def _dedupe(contacts: Iterable[Contact]) -> list[Contact]:
    seen: set[str] = set()
    unique = []
    for contact in contacts:
        if contact.id not in seen:
            seen.add(contact.id)
            unique.append(contact)
    return unique


class ContactDirectory:
    """Directory of people the current user can message.

    Load failures never raise: the affected view degrades to an empty list
    in the ``failed`` state. Follow and unfollow run through the shared
    action contract but are not rolled back on failure, since retrying
    them is safe and the next reload corrects the flag.

    Args:
        contacts: The contacts sub-client.
        session: The signed-in session.
        runner: Action runner shared with the rest of the messenger.

    Example:
        directory = ContactDirectory(client.contacts, session)
        directory.search_users("sarah")
        directory.toggle_selection("user-2")
        plan = directory.plan_conversation()
    """

    def __init__(
        self,
        contacts: "ContactsClient",
        session: Session,
        runner: Optional[ActionRunner] = None,
    ) -> None:
        self._contacts = contacts
        self._session = session
        self._runner = runner if runner is not None else ActionRunner()
        self._listings = {view: DirectoryListing() for view in DirectoryView}
        # dict as an insertion-ordered set
        self._selected: dict[str, None] = {}

    @property
    def current_user_id(self) -> str:
        return self._session.user_id

    def listing(self, view: DirectoryView) -> DirectoryListing:
        return self._listings[view]

    # Loading

    def load_contacts(self) -> list[Contact]:
        """Load users the current user already has conversations with."""
        return self._load(DirectoryView.CONTACTS, self._contacts.list_contacts)

    def load_following(self) -> list[Contact]:
        """Load followed users, each tagged as followed."""

        def fetch() -> list[Contact]:
            following = self._contacts.list_following()
            for contact in following:
                contact.is_following = True
            return following

        return self._load(DirectoryView.FOLLOWING, fetch)

    def search_users(self, query: str) -> list[Contact]:
        """Search for users to message or follow.

        A blank query clears the results without a network call. The
        current user is never part of the results.

        Args:
            query: Free-text query.

        Returns:
            Matching contacts with relationship flags.
        """
        query = query.strip()
        if not query:
            self._listings[DirectoryView.SEARCH] = DirectoryListing(
                state=LoadState.LOADED, query=query
            )
            return []

        def fetch() -> list[Contact]:
            results = self._contacts.search(query)
            return [contact for contact in results if contact.id != self.current_user_id]

        return self._load(DirectoryView.SEARCH, fetch, query=query)

    def _load(
        self,
        view: DirectoryView,
        fetch: Callable[[], list[Contact]],
        query: Optional[str] = None,
    ) -> list[Contact]:
        self._listings[view] = DirectoryListing(state=LoadState.LOADING, query=query)
        try:
            items = _dedupe(fetch())
        except MessagingClientError as e:
            logger.warning(f"Failed to load {view.value}: {e}")
            self._listings[view] = DirectoryListing(
                state=LoadState.FAILED, query=query, error=str(e)
            )
            return []

        logger.debug(f"Loaded {len(items)} {view.value}")
        self._listings[view] = DirectoryListing(state=LoadState.LOADED, items=items, query=query)
        return list(items)

    # Follow state

    def follow(self, user_id: str) -> ActionResult:
        """Follow a user, flipping the flag in search results immediately.

        The following list is re-fetched afterwards, whether or not the
        backend accepted the change.
        """
        return self._set_following(user_id, True)

    def unfollow(self, user_id: str) -> ActionResult:
        """Unfollow a user, flipping the flag in search results immediately."""
        return self._set_following(user_id, False)

    def _set_following(self, user_id: str, following: bool) -> ActionResult:
        send = self._contacts.follow if following else self._contacts.unfollow

        def confirm(response: "FollowResponse") -> None:
            self._flip_following(user_id, response.is_following)

        result = self._runner.run(
            MutationKind.FOLLOW if following else MutationKind.UNFOLLOW,
            user_id,
            request=lambda: send(user_id),
            apply=lambda: self._flip_following(user_id, following),
            confirm=confirm,
        )
        self.load_following()
        return result

    def _flip_following(self, user_id: str, following: bool) -> None:
        for contact in self._listings[DirectoryView.SEARCH].items:
            if contact.id == user_id:
                contact.is_following = following

    # Selection

    @property
    def selected_ids(self) -> list[str]:
        """Selected user ids in the order they were selected."""
        return list(self._selected)

    def is_selected(self, user_id: str) -> bool:
        return user_id in self._selected

    def toggle_selection(self, user_id: str) -> bool:
        """Add or remove a user from the selection.

        Returns:
            True if the user is now selected.
        """
        if user_id in self._selected:
            del self._selected[user_id]
            return False
        self._selected[user_id] = None
        return True

    def clear_selection(self) -> None:
        self._selected.clear()

    def selected_contacts(self) -> list[Contact]:
        """Resolve the selection to contact records across all views."""
        known: dict[str, Contact] = {}
        for listing in self._listings.values():
            for contact in listing.items:
                known.setdefault(contact.id, contact)
        return [known[user_id] for user_id in self._selected if user_id in known]

    def plan_conversation(self) -> ConversationPlan:
        """Decide what "start conversation" does for the current selection.

        Raises:
            ValueError: If nothing is selected.
        """
        member_ids = [user_id for user_id in self._selected if user_id != self.current_user_id]
        if not member_ids:
            raise ValueError("Select at least one person to start a conversation")
        if len(member_ids) == 1:
            return ConversationPlan(type=ConversationType.DIRECT, member_ids=member_ids)
        return ConversationPlan(
            type=ConversationType.GROUP,
            member_ids=member_ids,
            conversation_id=compose_group_key([self.current_user_id, *member_ids]),
        )

    # Views

    def visible(self, view: DirectoryView, name_filter: str = "") -> list[Contact]:
        """Contacts to show for a view, filtered by name.

        Search results are already filtered by the backend and are returned
        as-is.
        """
        items = self._listings[view].items
        needle = name_filter.strip().lower()
        if view == DirectoryView.SEARCH or not needle:
            return list(items)
        return [contact for contact in items if needle in contact.name.lower()]
