"""Tests for the booking status lifecycle and the active set."""

import pytest

from clinic_scheduler.scheduling.errors import InvalidStatusTransition
from clinic_scheduler.scheduling.status import (
    ACTIVE_STATUSES,
    BookingStatus,
    allowed_targets,
    can_transition,
    is_active,
    validate_transition,
)


class TestActiveSet:
    @pytest.mark.parametrize(
        "status",
        ["scheduled", "confirmed", "checked_in", "in_progress", "completed"],
    )
    def test_occupying_statuses(self, status):
        assert is_active(BookingStatus(status))

    @pytest.mark.parametrize("status", [BookingStatus.CANCELLED, BookingStatus.NO_SHOW])
    def test_non_occupying_statuses(self, status):
        assert not is_active(status)
        assert status not in ACTIVE_STATUSES

    def test_accepts_raw_values(self):
        assert is_active("confirmed")


class TestForwardPath:
    def test_full_lifecycle(self):
        path = [
            BookingStatus.SCHEDULED,
            BookingStatus.CONFIRMED,
            BookingStatus.CHECKED_IN,
            BookingStatus.IN_PROGRESS,
            BookingStatus.COMPLETED,
        ]
        for current, target in zip(path, path[1:]):
            validate_transition(current, target)

    def test_cannot_skip_states(self):
        with pytest.raises(InvalidStatusTransition):
            validate_transition(BookingStatus.SCHEDULED, BookingStatus.IN_PROGRESS)

    def test_cannot_go_backwards(self):
        assert not can_transition(BookingStatus.CHECKED_IN, BookingStatus.CONFIRMED)


class TestTerminalAlternatives:
    @pytest.mark.parametrize(
        "status",
        [
            BookingStatus.SCHEDULED,
            BookingStatus.CONFIRMED,
            BookingStatus.CHECKED_IN,
            BookingStatus.IN_PROGRESS,
        ],
    )
    def test_cancel_and_no_show_from_non_terminal(self, status):
        assert can_transition(status, BookingStatus.CANCELLED)
        assert can_transition(status, BookingStatus.NO_SHOW)

    @pytest.mark.parametrize(
        "status", [BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW]
    )
    def test_terminal_states_have_no_exits(self, status):
        assert allowed_targets(status) == []

    def test_error_lists_valid_targets(self):
        with pytest.raises(InvalidStatusTransition, match="Valid targets"):
            validate_transition(BookingStatus.CANCELLED, BookingStatus.CONFIRMED)
