"""
Booking status lifecycle and the shared "active" status set.

    scheduled -> confirmed -> checked_in -> in_progress -> completed

``cancelled`` and ``no_show`` are terminal alternatives reachable from any
non-terminal status. Only statuses in ``ACTIVE_STATUSES`` occupy a
resource; the availability checker, the slot grid and the store all filter
through ``is_active`` so they can never drift apart.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from clinic_scheduler.config import settings
from clinic_scheduler.scheduling.errors import InvalidStatusTransition

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Lifecycle states of a booking record."""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


ACTIVE_STATUSES: frozenset[BookingStatus] = frozenset(
    BookingStatus(s) for s in settings.booking.active_statuses
)

TERMINAL_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
)


def is_active(status: BookingStatus) -> bool:
    """True if a booking in ``status`` occupies its resource."""
    return BookingStatus(status) in ACTIVE_STATUSES


@dataclass(frozen=True)
class StatusTransition:
    """A single allowed status change."""
    from_status: BookingStatus
    to_status: BookingStatus


_FORWARD = [
    StatusTransition(BookingStatus.SCHEDULED, BookingStatus.CONFIRMED),
    StatusTransition(BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN),
    StatusTransition(BookingStatus.CHECKED_IN, BookingStatus.IN_PROGRESS),
    StatusTransition(BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED),
]

TRANSITIONS: list[StatusTransition] = _FORWARD + [
    StatusTransition(source, target)
    for source in BookingStatus
    if source not in TERMINAL_STATUSES
    for target in (BookingStatus.CANCELLED, BookingStatus.NO_SHOW)
]


def allowed_targets(current: BookingStatus) -> list[BookingStatus]:
    """Return every status reachable in one step from ``current``."""
    return [t.to_status for t in TRANSITIONS if t.from_status == current]


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return BookingStatus(target) in allowed_targets(BookingStatus(current))


def validate_transition(current: BookingStatus, target: BookingStatus) -> None:
    """
    Check a status change against the lifecycle.

    Raises:
        InvalidStatusTransition: If ``target`` is not reachable from ``current``.
    """
    current = BookingStatus(current)
    target = BookingStatus(target)
    if can_transition(current, target):
        logger.debug("Status transition allowed: %s -> %s", current.value, target.value)
        return
    valid = [s.value for s in allowed_targets(current)]
    raise InvalidStatusTransition(
        f"No transition from '{current.value}' to '{target.value}'. "
        f"Valid targets: {valid}"
    )
