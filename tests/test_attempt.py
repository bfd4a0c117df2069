"""Tests for the booking attempt state machine."""

import pytest

from clinic_scheduler.scheduling.attempt import (
    AttemptState,
    AttemptTrigger,
    BookingAttempt,
    InvalidTransitionError,
)


@pytest.fixture
def attempt():
    return BookingAttempt()


class TestInitialState:
    def test_starts_in_draft(self, attempt):
        assert attempt.state == AttemptState.DRAFT

    def test_has_attempt_id(self, attempt):
        assert attempt.attempt_id.startswith("ATT-")

    def test_not_terminal_at_start(self, attempt):
        assert not attempt.is_terminal()

    def test_cannot_commit_from_draft(self, attempt):
        with pytest.raises(InvalidTransitionError):
            attempt.transition(AttemptTrigger.COMMIT_SUCCEEDED)


class TestOutcomes:
    def test_commit(self, attempt):
        attempt.transition(AttemptTrigger.SUBMITTED)
        assert attempt.transition(AttemptTrigger.COMMIT_SUCCEEDED) == AttemptState.COMMITTED
        assert attempt.is_terminal()

    @pytest.mark.parametrize(
        "trigger",
        [
            AttemptTrigger.REQUEST_INVALID,
            AttemptTrigger.SLOT_UNAVAILABLE,
            AttemptTrigger.SLOT_TAKEN,
        ],
    )
    def test_rejections(self, attempt, trigger):
        attempt.transition(AttemptTrigger.SUBMITTED)
        assert attempt.transition(trigger) == AttemptState.REJECTED

    def test_failure(self, attempt):
        attempt.transition(AttemptTrigger.SUBMITTED)
        assert attempt.transition(AttemptTrigger.COMMIT_FAILED) == AttemptState.FAILED

    def test_failed_attempt_cannot_be_resubmitted(self, attempt):
        attempt.transition(AttemptTrigger.SUBMITTED)
        attempt.transition(AttemptTrigger.COMMIT_FAILED)
        with pytest.raises(InvalidTransitionError):
            attempt.transition(AttemptTrigger.SUBMITTED)

    def test_trace(self, attempt):
        attempt.transition(AttemptTrigger.SUBMITTED)
        attempt.transition(AttemptTrigger.SLOT_TAKEN)
        assert attempt.get_state_trace() == ["draft", "validating", "rejected"]
        assert attempt.get_history()[-1].trigger == AttemptTrigger.SLOT_TAKEN
