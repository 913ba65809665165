"""Message records for a single conversation thread."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from models.formatting import ensure_utc, truncate_message, utc_now

TEMP_ID_PREFIX = "temp-"
REPLY_PREVIEW_LENGTH = 50


class MessageType(str, Enum):
    """Kind of message content."""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


class ReplySnapshot(BaseModel):
    """Immutable copy of the message being replied to.

    Captured at compose time and never updated, so a reply still renders
    after the original is edited or deleted.

    Args:
        id: Id of the original message (may no longer resolve).
        content: Truncated content of the original.
        sender_name: Display name of the original sender.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(description="Id of the original message")
    content: str = Field(default="", description="Truncated original content")
    sender_name: str = Field(
        default="Unknown",
        validation_alias=AliasChoices("sender_name", "senderName"),
        description="Display name of the original sender",
    )

    @classmethod
    def capture(
        cls,
        message: "Message",
        sender_name: str,
        max_length: int = REPLY_PREVIEW_LENGTH,
    ) -> "ReplySnapshot":
        """Snapshot ``message`` for use as a reply reference."""
        return cls(
            id=message.id,
            content=truncate_message(message.content, max_length),
            sender_name=sender_name,
        )


class Message(BaseModel):
    """A message within a conversation.

    Args:
        id: Server-assigned id, or a ``temp-`` id while a send is pending.
        conversation_id: Conversation the message belongs to.
        sender_id: User id of the sender.
        sender_name: Sender display name when the backend embeds it.
        content: Message text (or caption for image/file messages).
        timestamp: When the message was sent.
        type: "text", "image" or "file".
        edited: Whether the content was edited after sending.
        reply_to: Snapshot of the message this replies to.
        reactions: Emoji mapped to the set of user ids that reacted with it.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Message id")
    conversation_id: str = Field(
        validation_alias=AliasChoices("conversation_id", "conversationId"),
        description="Conversation the message belongs to",
    )
    sender_id: str = Field(
        validation_alias=AliasChoices("sender_id", "senderId"),
        description="User id of the sender",
    )
    sender_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sender_name", "senderName"),
        description="Sender display name",
    )
    content: str = Field(default="", description="Message text")
    timestamp: datetime = Field(
        default_factory=utc_now,
        validation_alias=AliasChoices("timestamp", "created_at", "createdAt"),
        description="When the message was sent",
    )
    type: MessageType = Field(
        default=MessageType.TEXT,
        validation_alias=AliasChoices("type", "message_type", "messageType"),
        description="Kind of message content",
    )
    edited: bool = Field(default=False, description="Whether the message was edited")
    reply_to: Optional[ReplySnapshot] = Field(
        default=None,
        validation_alias=AliasChoices("reply_to", "replyTo"),
        description="Snapshot of the message being replied to",
    )
    reactions: dict[str, set[str]] = Field(
        default_factory=dict,
        description="Emoji mapped to reacting user ids",
    )

    @model_validator(mode="before")
    @classmethod
    def infer_edited(cls, data: Any) -> Any:
        """Treat an ``edited_at`` timestamp as the edited flag."""
        if isinstance(data, dict) and "edited" not in data and data.get("edited_at"):
            data = {**data, "edited": True}
        return data

    @field_validator("id", "conversation_id", "sender_id", mode="before")
    @classmethod
    def validate_identifiers(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            raise ValueError("message identifiers cannot be empty")
        return str(v)

    @field_validator("content", mode="before")
    @classmethod
    def default_content(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("type", mode="before")
    @classmethod
    def default_unknown_type(cls, v: Any) -> MessageType:
        try:
            return MessageType(v)
        except ValueError:
            return MessageType.TEXT

    @field_validator("edited", mode="before")
    @classmethod
    def default_edited(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("reactions", mode="before")
    @classmethod
    def normalize_reactions(cls, v: Any) -> dict[str, set[str]]:
        """Accept the mapping form or a list of ``{emoji, userIds}`` entries.

        Repeated entries for the same emoji are merged; a user id can only
        appear once per emoji and emoji with no users are dropped.
        """
        if not v:
            return {}

        entries: list[tuple[Any, Any]]
        if isinstance(v, dict):
            entries = list(v.items())
        else:
            entries = []
            for item in v:
                if not isinstance(item, dict):
                    continue
                user_ids = item.get("user_ids", item.get("userIds", []))
                entries.append((item.get("emoji"), user_ids))

        reactions: dict[str, set[str]] = {}
        for emoji, user_ids in entries:
            if not emoji:
                continue
            members = {str(user_id) for user_id in (user_ids or [])}
            if members:
                reactions.setdefault(str(emoji), set()).update(members)
        return reactions

    @property
    def is_temporary(self) -> bool:
        """True while the message only exists locally."""
        return self.id.startswith(TEMP_ID_PREFIX)

    def is_from(self, user_id: str) -> bool:
        return self.sender_id == user_id

    def has_reacted(self, emoji: str, user_id: str) -> bool:
        return user_id in self.reactions.get(emoji, set())

    def reaction_count(self, emoji: str) -> int:
        return len(self.reactions.get(emoji, set()))

    def toggle_reaction(self, emoji: str, user_id: str) -> bool:
        """Add or remove ``user_id`` from the set for ``emoji``.

        Args:
            emoji: Emoji string.
            user_id: User toggling the reaction.

        Returns:
            True if the reaction was added, False if it was removed.
        """
        members = self.reactions.setdefault(emoji, set())
        if user_id in members:
            members.discard(user_id)
            if not members:
                del self.reactions[emoji]
            return False
        members.add(user_id)
        return True

    def apply_edit(self, content: str) -> None:
        """Replace the content in place and flag the message as edited."""
        self.content = content
        self.edited = True


def new_temp_id() -> str:
    """Generate a client-side id for an optimistic message."""
    return f"{TEMP_ID_PREFIX}{uuid4()}"
