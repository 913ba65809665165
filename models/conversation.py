"""Conversation records and their pure display derivations."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from models.formatting import ensure_utc, get_initials
from models.user import UNKNOWN_USER_NAME

GROUP_FALLBACK_NAME = "Group Chat"
GROUP_INITIALS = "GC"

# Sort key for conversations that have never carried a message
NEVER = datetime.min.replace(tzinfo=timezone.utc)


class ConversationType(str, Enum):
    """Whether a conversation is one-to-one or a group."""

    DIRECT = "direct"
    GROUP = "group"


class RequestStatus(str, Enum):
    """Acceptance state of a direct conversation started by someone else."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class Participant(BaseModel):
    """A member of a conversation as embedded in the conversation record.

    Args:
        id: User id of the participant.
        name: Display name.
        avatar_ref: Optional avatar reference.
        online: Whether the participant is online.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="User id of the participant")
    name: str = Field(default=UNKNOWN_USER_NAME, description="Display name")
    avatar_ref: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("avatar_ref", "avatarRef", "avatar_url", "avatar"),
        description="Avatar reference",
    )
    online: bool = Field(default=False, description="Whether the participant is online")

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            raise ValueError("participant id cannot be empty")
        return str(v)

    @field_validator("name", mode="before")
    @classmethod
    def default_blank_name(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            return UNKNOWN_USER_NAME
        return str(v)

    @field_validator("avatar_ref", mode="before")
    @classmethod
    def blank_avatar_is_none(cls, v: Any) -> Optional[str]:
        return v or None

    @field_validator("online", mode="before")
    @classmethod
    def default_online(cls, v: Any) -> bool:
        return bool(v)


class LastMessage(BaseModel):
    """Preview of the most recent message in a conversation.

    Args:
        content: Message text.
        timestamp: When the message was sent.
        sender_id: Who sent it.
    """

    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(default="", description="Message text")
    timestamp: datetime = Field(
        validation_alias=AliasChoices("timestamp", "created_at", "createdAt"),
        description="When the message was sent",
    )
    sender_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sender_id", "senderId"),
        description="Who sent the message",
    )

    @field_validator("content", mode="before")
    @classmethod
    def default_content(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class ConversationAvatar(BaseModel):
    """What to draw in a conversation's avatar slot."""

    initials: str
    is_online: bool = False


class Conversation(BaseModel):
    """A direct or group conversation as listed by the backend.

    Only the ConversationStore mutates ``unread_count``, ``last_message``
    and the flags; everything else in the core treats conversations as
    read-only records.

    Args:
        id: Conversation identifier.
        type: "direct" or "group".
        participants: Ordered participants, unique by id.
        last_message: Preview of the most recent message, if any.
        unread_count: Number of unread messages (never negative).
        is_pinned: Whether the conversation is pinned to the top.
        is_muted: Whether notifications are muted.
        group_name: Optional group display name.
        request_status: Message request state for direct conversations.
        requested_by: User id that started a pending request.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Conversation identifier")
    type: ConversationType = Field(
        default=ConversationType.DIRECT,
        validation_alias=AliasChoices("type", "conversation_type", "conversationType"),
        description="Conversation type",
    )
    participants: list[Participant] = Field(
        default_factory=list,
        description="Ordered participants, unique by id",
    )
    last_message: Optional[LastMessage] = Field(
        default=None,
        validation_alias=AliasChoices("last_message", "lastMessage"),
        description="Most recent message preview",
    )
    unread_count: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("unread_count", "unreadCount"),
        description="Number of unread messages",
    )
    is_pinned: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_pinned", "isPinned"),
        description="Whether the conversation is pinned",
    )
    is_muted: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_muted", "isMuted"),
        description="Whether notifications are muted",
    )
    group_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("group_name", "groupName", "name"),
        description="Group display name",
    )
    request_status: Optional[RequestStatus] = Field(
        default=None,
        validation_alias=AliasChoices("request_status", "requestStatus"),
        description="Message request state",
    )
    requested_by: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("requested_by", "requestedBy"),
        description="User id that started the request",
    )

    @model_validator(mode="before")
    @classmethod
    def expand_participant_ids(cls, data: Any) -> Any:
        """Accept participant lists given as bare ids.

        Some backend versions list participant ids and embed the other
        party's profile under ``participant``; merge it into the matching
        entry.
        """
        if not isinstance(data, dict):
            return data
        raw = data.get("participants")
        if not isinstance(raw, list) or not any(isinstance(p, (str, int)) for p in raw):
            return data

        profile = data.get("participant") if isinstance(data.get("participant"), dict) else {}
        expanded = []
        for entry in raw:
            if isinstance(entry, (str, int)):
                entry = {"id": entry}
                if profile and str(profile.get("id")) == str(entry["id"]):
                    entry = {**profile, "id": entry["id"]}
            expanded.append(entry)
        return {**data, "participants": expanded}

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            raise ValueError("conversation id cannot be empty")
        return str(v)

    @field_validator("participants")
    @classmethod
    def dedupe_participants(cls, v: list[Participant]) -> list[Participant]:
        """Drop repeated participant ids, keeping the first occurrence."""
        seen: set[str] = set()
        unique = []
        for participant in v:
            if participant.id not in seen:
                seen.add(participant.id)
                unique.append(participant)
        return unique

    @field_validator("unread_count", mode="before")
    @classmethod
    def clamp_unread(cls, v: Any) -> int:
        try:
            return max(0, int(v))
        except (TypeError, ValueError):
            return 0

    @field_validator("is_pinned", "is_muted", mode="before")
    @classmethod
    def default_flags(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("group_name", mode="before")
    @classmethod
    def blank_group_name_is_none(cls, v: Any) -> Optional[str]:
        if v is None or not str(v).strip():
            return None
        return str(v)

    @field_validator("request_status", mode="before")
    @classmethod
    def unknown_request_status_is_none(cls, v: Any) -> Optional[RequestStatus]:
        try:
            return RequestStatus(v) if v is not None else None
        except ValueError:
            return None

    @model_validator(mode="after")
    def validate_direct_participants(self) -> "Conversation":
        if self.type == ConversationType.DIRECT and len(self.participants) != 2:
            raise ValueError(
                f"direct conversation {self.id} must have exactly 2 participants, "
                f"got {len(self.participants)}"
            )
        return self

    def is_group(self) -> bool:
        """Check if conversation is a group chat."""
        return self.type == ConversationType.GROUP

    @property
    def participant_ids(self) -> list[str]:
        return [p.id for p in self.participants]

    @property
    def last_activity_at(self) -> datetime:
        """Timestamp used for recency ordering."""
        if self.last_message is None:
            return NEVER
        return self.last_message.timestamp

    def other_participant(self, current_user_id: str) -> Optional[Participant]:
        """For direct conversations, the participant who is not the current user."""
        if self.is_group():
            return None
        for participant in self.participants:
            if participant.id != current_user_id:
                return participant
        return None

    def display_name(self, current_user_id: str) -> str:
        """Derive the list title from the current participants.

        Computed on every call so a rename or profile change is picked up
        immediately.
        """
        if self.is_group():
            return self.group_name or GROUP_FALLBACK_NAME
        other = self.other_participant(current_user_id)
        return other.name if other else UNKNOWN_USER_NAME

    def display_avatar(self, current_user_id: str) -> ConversationAvatar:
        if self.is_group():
            return ConversationAvatar(initials=GROUP_INITIALS, is_online=False)
        other = self.other_participant(current_user_id)
        if other is None:
            return ConversationAvatar(initials=get_initials(UNKNOWN_USER_NAME))
        return ConversationAvatar(initials=get_initials(other.name), is_online=other.online)

    def is_pending_request_for(self, current_user_id: str) -> bool:
        """True for a direct request someone else started and nobody answered yet."""
        return (
            self.type == ConversationType.DIRECT
            and self.request_status == RequestStatus.PENDING
            and self.requested_by != current_user_id
        )

    def is_accepted_direct(self) -> bool:
        return self.type == ConversationType.DIRECT and self.request_status in (
            None,
            RequestStatus.ACCEPTED,
        )

    def update_last_message(self, content: str, timestamp: datetime, sender_id: str) -> None:
        """Replace the last-message preview."""
        self.last_message = LastMessage(
            content=content,
            timestamp=timestamp,
            sender_id=sender_id,
        )

    def increment_unread(self) -> None:
        """Increase unread count by one."""
        self.unread_count += 1

    def mark_all_read(self) -> None:
        """Reset unread_count to 0."""
        self.unread_count = 0
