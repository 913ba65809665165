"""Optimistic mutation bookkeeping.

This module provides models for tracking local changes that were applied
before the backend confirmed them:
- PendingMutation: One optimistic change and its lifecycle
  (pending -> confirmed | rolled_back)
- MutationLedger: The set of mutations still awaiting confirmation

A full refresh is always authoritative, so the ledger is simply discarded
when one arrives; pending entries never outlive a refresh.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from models.formatting import utc_now


class MutationStatus(str, Enum):
    """Lifecycle state of an optimistic mutation."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


class MutationKind(str, Enum):
    """User action that produced a mutation."""

    SEND = "send"
    EDIT = "edit"
    DELETE = "delete"
    REACT = "react"
    FOLLOW = "follow"
    UNFOLLOW = "unfollow"
    MARK_READ = "mark_read"
    ACCEPT = "accept"
    DECLINE = "decline"
    PIN = "pin"
    MUTE = "mute"
    START = "start"


class PendingMutation(BaseModel):
    """A local change applied ahead of server confirmation.

    Args:
        mutation_id: Unique id of this mutation.
        kind: Which action produced it.
        target_id: Id of the message, conversation or user it touches.
        status: Current lifecycle state.
        created_at: When the optimistic change was applied.
        resolved_at: When it was confirmed or rolled back.
        error_message: Why it was rolled back, if it was.
        details: Action-specific data (e.g. the emoji for a reaction).
    """

    mutation_id: str = Field(default_factory=lambda: str(uuid4()), description="Mutation id")
    kind: MutationKind = Field(description="Action that produced the mutation")
    target_id: str = Field(description="Id of the affected record")
    status: MutationStatus = Field(default=MutationStatus.PENDING, description="Lifecycle state")
    created_at: datetime = Field(default_factory=utc_now, description="When it was applied")
    resolved_at: Optional[datetime] = Field(default=None, description="When it was resolved")
    error_message: Optional[str] = Field(default=None, description="Rollback reason")
    details: dict[str, Any] = Field(default_factory=dict, description="Action-specific data")

    @field_validator("target_id")
    @classmethod
    def validate_target_id(cls, v: str) -> str:
        """Validate that target_id is non-empty.

        Raises:
            ValueError: If target_id is empty or whitespace.
        """
        if not v or not v.strip():
            raise ValueError("target_id cannot be empty")
        return v

    @property
    def is_pending(self) -> bool:
        return self.status == MutationStatus.PENDING

    def confirm(self) -> None:
        """Mark the mutation as confirmed by the backend.

        Raises:
            RuntimeError: If the mutation was already resolved.
        """
        if self.status != MutationStatus.PENDING:
            raise RuntimeError(
                f"Cannot confirm mutation {self.mutation_id} with status {self.status}"
            )
        self.status = MutationStatus.CONFIRMED
        self.resolved_at = utc_now()

    def roll_back(self, reason: str) -> None:
        """Mark the mutation as reverted.

        Args:
            reason: Why the backend did not accept it.

        Raises:
            RuntimeError: If the mutation was already resolved.
        """
        if self.status != MutationStatus.PENDING:
            raise RuntimeError(
                f"Cannot roll back mutation {self.mutation_id} with status {self.status}"
            )
        self.status = MutationStatus.ROLLED_BACK
        self.error_message = reason
        self.resolved_at = utc_now()


class MutationLedger(BaseModel):
    """Tracks mutations that are still awaiting confirmation.

    Resolved mutations leave the ledger; a refresh clears it entirely.

    Examples:
        ledger = MutationLedger()
        mutation = ledger.begin(MutationKind.SEND, "temp-1")
        ...
        ledger.resolve(mutation)
    """

    entries: dict[str, PendingMutation] = Field(
        default_factory=dict,
        description="Pending mutations keyed by mutation id",
    )

    def begin(
        self,
        kind: MutationKind,
        target_id: str,
        details: Optional[dict[str, Any]] = None,
    ) -> PendingMutation:
        """Record a new pending mutation."""
        mutation = PendingMutation(kind=kind, target_id=target_id, details=details or {})
        self.entries[mutation.mutation_id] = mutation
        return mutation

    def resolve(self, mutation: PendingMutation) -> None:
        """Drop a mutation once it is confirmed or rolled back."""
        self.entries.pop(mutation.mutation_id, None)

    def pending(self, target_id: Optional[str] = None) -> list[PendingMutation]:
        """List pending mutations, optionally only those for one target."""
        return [
            mutation
            for mutation in self.entries.values()
            if mutation.is_pending and (target_id is None or mutation.target_id == target_id)
        ]

    def has_pending(self, target_id: str) -> bool:
        return bool(self.pending(target_id))

    def discard(self) -> int:
        """Forget all pending mutations after an authoritative refresh.

        Returns:
            Number of entries discarded.
        """
        count = len(self.entries)
        self.entries.clear()
        return count

    def __len__(self) -> int:
        return len(self.entries)
