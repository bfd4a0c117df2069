"""
State machine for a single booking-creation attempt.

    DRAFT -> VALIDATING -> {COMMITTED | REJECTED | FAILED}

All three outcomes are terminal. A failed attempt is never resumed: the
caller starts a new attempt from DRAFT after re-reading availability.

Usage:
    attempt = BookingAttempt()
    attempt.transition(AttemptTrigger.SUBMITTED)
    assert attempt.state == AttemptState.VALIDATING
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from clinic_scheduler.logging_context import new_attempt_id

logger = logging.getLogger(__name__)


class AttemptState(str, Enum):
    """Lifecycle of one submit or reschedule attempt."""
    DRAFT = "draft"
    VALIDATING = "validating"
    COMMITTED = "committed"
    REJECTED = "rejected"
    FAILED = "failed"


class AttemptTrigger(str, Enum):
    """Events that move an attempt forward."""
    SUBMITTED = "submitted"
    REQUEST_INVALID = "request_invalid"
    SLOT_UNAVAILABLE = "slot_unavailable"
    SLOT_TAKEN = "slot_taken"
    COMMIT_SUCCEEDED = "commit_succeeded"
    COMMIT_FAILED = "commit_failed"


@dataclass(frozen=True)
class AttemptTransition:
    from_state: AttemptState
    to_state: AttemptState
    trigger: AttemptTrigger


@dataclass
class AttemptEntry:
    """Recorded history entry for a state visit."""
    state: AttemptState
    entered_at: datetime
    trigger: Optional[AttemptTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


TERMINAL_STATES = frozenset(
    {AttemptState.COMMITTED, AttemptState.REJECTED, AttemptState.FAILED}
)


class BookingAttempt:
    """Tracks one attempt through the commit protocol."""

    TRANSITIONS: list[AttemptTransition] = [
        AttemptTransition(AttemptState.DRAFT, AttemptState.VALIDATING,
                          AttemptTrigger.SUBMITTED),

        # --- Business rejections ---
        AttemptTransition(AttemptState.VALIDATING, AttemptState.REJECTED,
                          AttemptTrigger.REQUEST_INVALID),
        AttemptTransition(AttemptState.VALIDATING, AttemptState.REJECTED,
                          AttemptTrigger.SLOT_UNAVAILABLE),
        AttemptTransition(AttemptState.VALIDATING, AttemptState.REJECTED,
                          AttemptTrigger.SLOT_TAKEN),

        # --- Commit ---
        AttemptTransition(AttemptState.VALIDATING, AttemptState.COMMITTED,
                          AttemptTrigger.COMMIT_SUCCEEDED),
        AttemptTransition(AttemptState.VALIDATING, AttemptState.FAILED,
                          AttemptTrigger.COMMIT_FAILED),
    ]

    def __init__(self, attempt_id: Optional[str] = None) -> None:
        self.attempt_id = attempt_id or new_attempt_id()
        self._state = AttemptState.DRAFT
        self._history: list[AttemptEntry] = [
            AttemptEntry(state=AttemptState.DRAFT, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def state(self) -> AttemptState:
        return self._state

    def transition(self, trigger: AttemptTrigger) -> AttemptState:
        """
        Execute a state transition.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._state and t.trigger == trigger:
                old_state = self._state
                self._state = t.to_state
                self._history.append(AttemptEntry(
                    state=self._state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Attempt %s: %s -> %s (trigger: %s)",
                    self.attempt_id, old_state.value, self._state.value, trigger.value,
                )
                return self._state

        valid = [t.trigger.value for t in self.TRANSITIONS if t.from_state == self._state]
        raise InvalidTransitionError(
            f"No valid transition from '{self._state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_history(self) -> list[AttemptEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES
