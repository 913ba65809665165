"""Unit tests for optimistic mutation bookkeeping and the ActionRunner.

This module tests:
- PendingMutation: lifecycle transitions and validation
- MutationLedger: begin, resolve, discard
- ActionRunner: apply/confirm/revert ordering and notice emission
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from client.exceptions import NotFoundError, ServerError, TimeoutError
from models.actions import ActionOutcome, ActionRunner
from models.mutation import MutationKind, MutationLedger, MutationStatus, PendingMutation


# =============================================================================
# PendingMutation / MutationLedger
# =============================================================================


class TestPendingMutation:
    """Test the pending -> confirmed | rolled_back lifecycle."""

    def test_confirm(self):
        mutation = PendingMutation(kind=MutationKind.SEND, target_id="temp-1")

        mutation.confirm()

        assert mutation.status == MutationStatus.CONFIRMED
        assert mutation.resolved_at is not None

    def test_roll_back_records_reason(self):
        mutation = PendingMutation(kind=MutationKind.EDIT, target_id="msg-1")

        mutation.roll_back("server error")

        assert mutation.status == MutationStatus.ROLLED_BACK
        assert mutation.error_message == "server error"

    def test_cannot_resolve_twice(self):
        mutation = PendingMutation(kind=MutationKind.REACT, target_id="msg-1")
        mutation.confirm()

        with pytest.raises(RuntimeError):
            mutation.roll_back("late failure")

    def test_empty_target_rejected(self):
        with pytest.raises(PydanticValidationError):
            PendingMutation(kind=MutationKind.SEND, target_id="  ")


class TestMutationLedger:
    """Test ledger bookkeeping."""

    def test_begin_and_resolve(self):
        ledger = MutationLedger()
        first = ledger.begin(MutationKind.SEND, "temp-1")
        ledger.begin(MutationKind.REACT, "msg-1", {"emoji": "👍"})

        assert len(ledger) == 2
        assert ledger.has_pending("temp-1")
        assert [m.details for m in ledger.pending("msg-1")] == [{"emoji": "👍"}]

        ledger.resolve(first)

        assert not ledger.has_pending("temp-1")
        assert len(ledger) == 1

    def test_discard(self):
        ledger = MutationLedger()
        ledger.begin(MutationKind.SEND, "temp-1")
        ledger.begin(MutationKind.SEND, "temp-2")

        assert ledger.discard() == 2
        assert ledger.pending() == []


# =============================================================================
# ActionRunner
# =============================================================================


class TestActionRunner:
    """Test the shared optimistic action contract."""

    def test_confirmed_action(self):
        calls = []
        runner = ActionRunner()

        result = runner.run(
            MutationKind.EDIT,
            "msg-1",
            request=lambda: calls.append("request") or "response",
            apply=lambda: calls.append("apply"),
            confirm=lambda value: calls.append(f"confirm:{value}"),
            revert=lambda: calls.append("revert"),
        )

        assert result.ok
        assert result.value == "response"
        assert calls == ["apply", "request", "confirm:response"]
        assert result.mutation.status == MutationStatus.CONFIRMED
        assert len(runner.ledger) == 0
        assert runner.notices == []

    def test_rejected_action_reverts_and_notifies(self):
        calls = []
        received = []
        runner = ActionRunner(on_notice=received.append)

        def request():
            raise ServerError("boom")

        result = runner.run(
            MutationKind.DELETE,
            "msg-1",
            request=request,
            apply=lambda: calls.append("apply"),
            revert=lambda: calls.append("revert"),
        )

        assert result.outcome == ActionOutcome.REJECTED
        assert calls == ["apply", "revert"]
        assert result.mutation.status == MutationStatus.ROLLED_BACK
        assert result.notice.message == "Failed to delete message. Please try again."
        assert received == [result.notice]
        assert len(runner.ledger) == 0

    def test_timeout_is_reported_separately(self):
        runner = ActionRunner()

        def request():
            raise TimeoutError("slow", timeout=5.0)

        result = runner.run(MutationKind.SEND, "temp-1", request=request)

        assert result.outcome == ActionOutcome.TIMED_OUT
        assert result.notice.message == "Timed out trying to send message. Please try again."

    def test_malformed_confirmation_is_rejected(self):
        """A confirm callback that cannot parse the response rolls back."""
        reverted = []
        runner = ActionRunner()

        def confirm(value):
            raise ValueError("missing id")

        result = runner.run(
            MutationKind.SEND,
            "temp-1",
            request=lambda: {},
            confirm=confirm,
            revert=lambda: reverted.append(True),
        )

        assert result.outcome == ActionOutcome.REJECTED
        assert reverted == [True]

    def test_silent_failure(self):
        runner = ActionRunner()

        def request():
            raise NotFoundError("gone")

        result = runner.run(MutationKind.MARK_READ, "conv-1", request=request, notify=False)

        assert not result.ok
        assert result.notice is None
        assert runner.notices == []

    def test_unexpected_errors_propagate(self):
        runner = ActionRunner()

        def request():
            raise KeyError("bug")

        with pytest.raises(KeyError):
            runner.run(MutationKind.PIN, "conv-1", request=request)

    def test_clear_notices(self):
        runner = ActionRunner()

        def request():
            raise ServerError("boom")

        runner.run(MutationKind.FOLLOW, "user-4", request=request)
        runner.clear_notices()

        assert runner.notices == []
