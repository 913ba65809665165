"""Shared contract for optimistic user actions.

Every user action (send, edit, delete, react, follow, ...) is run through
ActionRunner.run, which applies the local change, performs the request and
then either confirms or reverts. The three terminal outcomes are handled
the same way for every call site:

- confirmed: the ``confirm`` callback reconciles local state with the
  response
- rejected: the backend (or its response) refused the change; the local
  change is reverted and a Notice is emitted
- timed_out: same as rejected, but reported separately so the caller can
  suggest retrying

Mutations are never retried automatically; the user re-triggers them.
"""

import logging
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from client.exceptions import MessagingClientError, TimeoutError
from models.mutation import MutationKind, MutationLedger, PendingMutation

logger = logging.getLogger(__name__)

_DESCRIPTIONS = {
    MutationKind.SEND: "send message",
    MutationKind.EDIT: "edit message",
    MutationKind.DELETE: "delete message",
    MutationKind.REACT: "update reaction",
    MutationKind.FOLLOW: "follow user",
    MutationKind.UNFOLLOW: "unfollow user",
    MutationKind.MARK_READ: "mark conversation as read",
    MutationKind.ACCEPT: "accept message request",
    MutationKind.DECLINE: "decline message request",
    MutationKind.PIN: "update pinned conversation",
    MutationKind.MUTE: "update muted conversation",
    MutationKind.START: "start conversation",
}


class ActionOutcome(str, Enum):
    """Terminal outcome of an optimistic action."""

    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"


class Notice(BaseModel):
    """A user-visible, non-fatal report of a failed action.

    Args:
        kind: The action that failed.
        target_id: Id of the record the action touched.
        outcome: Whether it was rejected or timed out.
        message: Text suitable for a toast or banner.
    """

    kind: MutationKind = Field(description="Action that failed")
    target_id: str = Field(description="Id of the affected record")
    outcome: ActionOutcome = Field(description="How the action ended")
    message: str = Field(description="User-facing text")


class ActionResult(BaseModel):
    """What happened to one action.

    Args:
        outcome: Terminal outcome.
        mutation: The mutation record, already confirmed or rolled back.
        value: Response returned by the request when confirmed.
        notice: The notice emitted on failure.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    outcome: ActionOutcome
    mutation: PendingMutation
    value: Any = None
    notice: Optional[Notice] = None

    @property
    def ok(self) -> bool:
        return self.outcome == ActionOutcome.CONFIRMED


class ActionRunner:
    """Runs optimistic actions and collects failure notices.

    Attributes:
        ledger: Mutations still awaiting confirmation.
        notices: Every notice emitted so far, oldest first.

    Example:
        runner = ActionRunner(on_notice=show_toast)
        result = runner.run(
            MutationKind.REACT,
            message.id,
            request=lambda: client.messages.react(message.id, "👍"),
            apply=lambda: message.toggle_reaction("👍", user_id),
            revert=lambda: message.toggle_reaction("👍", user_id),
        )
    """

    def __init__(
        self,
        ledger: Optional[MutationLedger] = None,
        on_notice: Optional[Callable[[Notice], None]] = None,
    ) -> None:
        self.ledger = ledger if ledger is not None else MutationLedger()
        self.notices: list[Notice] = []
        self._on_notice = on_notice

    def run(
        self,
        kind: MutationKind,
        target_id: str,
        request: Callable[[], Any],
        apply: Optional[Callable[[], Any]] = None,
        confirm: Optional[Callable[[Any], Any]] = None,
        revert: Optional[Callable[[], Any]] = None,
        details: Optional[dict[str, Any]] = None,
        notify: bool = True,
    ) -> ActionResult:
        """Apply a change locally, send it, then confirm or revert it.

        Args:
            kind: Which action this is.
            target_id: Id of the message, conversation or user affected.
            request: Performs the network call; its return value is passed
                to ``confirm``.
            apply: Optimistic local change, run before the request.
            confirm: Reconciles local state with the response.
            revert: Undoes ``apply`` when the action fails.
            details: Extra data recorded on the mutation.
            notify: Whether a failure emits a Notice.

        Returns:
            The ActionResult. Client errors and malformed confirmations
            never propagate; any other exception does.
        """
        mutation = self.ledger.begin(kind, target_id, details)
        if apply is not None:
            apply()

        try:
            value = request()
            if confirm is not None:
                confirm(value)
        except TimeoutError as e:
            return self._fail(mutation, ActionOutcome.TIMED_OUT, e, revert, notify)
        except MessagingClientError as e:
            return self._fail(mutation, ActionOutcome.REJECTED, e, revert, notify)
        except ValueError as e:
            # Malformed confirmation payload (pydantic's ValidationError included)
            return self._fail(mutation, ActionOutcome.REJECTED, e, revert, notify)

        mutation.confirm()
        self.ledger.resolve(mutation)
        logger.debug(f"{kind.value} {target_id} confirmed")
        return ActionResult(outcome=ActionOutcome.CONFIRMED, mutation=mutation, value=value)

    def _fail(
        self,
        mutation: PendingMutation,
        outcome: ActionOutcome,
        error: Exception,
        revert: Optional[Callable[[], Any]],
        notify: bool,
    ) -> ActionResult:
        if revert is not None:
            revert()
        mutation.roll_back(str(error))
        self.ledger.resolve(mutation)
        logger.warning(
            f"{mutation.kind.value} {mutation.target_id} rolled back ({outcome.value}): {error}"
        )

        notice = None
        if notify:
            notice = Notice(
                kind=mutation.kind,
                target_id=mutation.target_id,
                outcome=outcome,
                message=_notice_message(mutation.kind, outcome),
            )
            self.notices.append(notice)
            if self._on_notice is not None:
                self._on_notice(notice)

        return ActionResult(outcome=outcome, mutation=mutation, notice=notice)

    def clear_notices(self) -> None:
        self.notices.clear()


def _notice_message(kind: MutationKind, outcome: ActionOutcome) -> str:
    description = _DESCRIPTIONS.get(kind, kind.value)
    if outcome == ActionOutcome.TIMED_OUT:
        return f"Timed out trying to {description}. Please try again."
    return f"Failed to {description}. Please try again."
