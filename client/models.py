"""Client response models for the messaging API client.

This module re-exports the domain records the sub-clients return and
defines client-specific response models that have no counterpart in the
domain layer.
"""

from typing import Optional

from pydantic import BaseModel, Field

from models.conversation import Conversation
from models.message import Message
from models.user import Contact, User

__all__ = [
    # Re-exported from models
    "Contact",
    "Conversation",
    "Message",
    "User",
    # Client-specific models
    "ConversationCreated",
    "FollowResponse",
]


class ConversationCreated(BaseModel):
    """Response model for conversation creation.

    Some backend versions return the full conversation, others only its
    id; callers fall back to a list refresh when ``conversation`` is None.

    Attributes:
        conversation_id: Id of the created (or existing) conversation.
        conversation: The conversation record, when the backend returned it.
    """

    conversation_id: str = Field(..., description="Id of the conversation")
    conversation: Optional[Conversation] = Field(None, description="Full record, if returned")


class FollowResponse(BaseModel):
    """Response model for follow/unfollow.

    Attributes:
        user_id: The user whose relationship changed.
        is_following: Relationship after the change.
    """

    user_id: str = Field(..., description="User whose relationship changed")
    is_following: bool = Field(..., description="Relationship after the change")
