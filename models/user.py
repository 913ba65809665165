"""User and contact records consumed from the backend."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from models.formatting import ensure_utc, get_initials, utc_now

UNKNOWN_USER_NAME = "Unknown User"


class Role(str, Enum):
    """Platform role of a user."""

    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class User(BaseModel):
    """An external identity as returned by the user endpoints.

    The messaging core only reads users; it never owns or persists them.
    Payload keys are accepted in the backend's snake_case as well as
    camelCase, and missing or malformed optional fields are defaulted.

    Args:
        id: Opaque stable identifier.
        name: Display name ("Unknown User" when blank).
        role: Platform role (unknown values fall back to student).
        avatar_ref: Optional avatar reference (URL or storage key).
        online: Whether the user is currently online.
        last_active_at: When the user was last seen.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Opaque stable identifier")
    name: str = Field(default=UNKNOWN_USER_NAME, description="Display name")
    role: Role = Field(default=Role.STUDENT, description="Platform role")
    avatar_ref: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("avatar_ref", "avatarRef", "avatar_url", "avatar"),
        description="Avatar reference",
    )
    online: bool = Field(default=False, description="Whether the user is online")
    last_active_at: datetime = Field(
        default_factory=utc_now,
        validation_alias=AliasChoices(
            "last_active_at", "lastActiveAt", "last_active", "lastActive"
        ),
        description="When the user was last seen",
    )

    @model_validator(mode="before")
    @classmethod
    def derive_online_from_status(cls, data: Any) -> Any:
        """Fill ``online`` from a ``status`` string when no flag is given."""
        if isinstance(data, dict) and data.get("online") is None and "status" in data:
            data = {**data, "online": data["status"] == "online"}
        return data

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: Any) -> str:
        """Reject missing ids; coerce numeric ids to strings."""
        if v is None or not str(v).strip():
            raise ValueError("id cannot be empty")
        return str(v)

    @field_validator("name", mode="before")
    @classmethod
    def default_blank_name(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            return UNKNOWN_USER_NAME
        return str(v)

    @field_validator("role", mode="before")
    @classmethod
    def default_unknown_role(cls, v: Any) -> Role:
        try:
            return Role(v)
        except ValueError:
            return Role.STUDENT

    @field_validator("avatar_ref", mode="before")
    @classmethod
    def blank_avatar_is_none(cls, v: Any) -> Optional[str]:
        return v or None

    @field_validator("online", mode="before")
    @classmethod
    def default_online(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("last_active_at", mode="before")
    @classmethod
    def default_last_active(cls, v: Any) -> Any:
        return utc_now() if v in (None, "") else v

    @field_validator("last_active_at")
    @classmethod
    def normalize_last_active(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def initials(self) -> str:
        """Initials used for avatar placeholders."""
        return get_initials(self.name)


class Contact(User):
    """A user augmented with relationship context for the directory.

    Relationship flags mutate in place on follow/unfollow so the view does
    not need a reload round-trip.

    Args:
        is_following: Whether the current user follows this user.
        is_follower: Whether this user follows the current user.
        mutual_connection_count: Number of shared connections.
        bio: Optional profile blurb.
    """

    is_following: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_following", "isFollowing"),
        description="Whether the current user follows this user",
    )
    is_follower: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_follower", "isFollower"),
        description="Whether this user follows the current user",
    )
    mutual_connection_count: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices(
            "mutual_connection_count",
            "mutualConnectionCount",
            "mutual_connections",
            "mutualConnections",
        ),
        description="Number of shared connections",
    )
    bio: Optional[str] = Field(default=None, description="Profile blurb")

    @field_validator("is_following", "is_follower", mode="before")
    @classmethod
    def default_flags(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("mutual_connection_count", mode="before")
    @classmethod
    def clamp_mutual_count(cls, v: Any) -> int:
        try:
            return max(0, int(v))
        except (TypeError, ValueError):
            return 0
