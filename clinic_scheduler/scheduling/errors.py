"""Error taxonomy for the scheduling engine.

Validation errors (``InvalidInterval``, ``InvalidRange``) are raised at the
API boundary. ``SlotConflict`` and ``CommitFailure`` describe outcomes that
reach callers as ``BookingOutcome`` values rather than exceptions;
``BookingOutcome.raise_for_status`` converts them for callers that want to raise.
"""


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling engine."""


class InvalidInterval(SchedulingError, ValueError):
    """Interval bounds are malformed (start >= end, or naive timestamps)."""


class InvalidRange(SchedulingError, ValueError):
    """Slot grid configuration is malformed."""


class ResourceLookupFailed(SchedulingError):
    """The requested doctor or room does not exist."""

    def __init__(self, resource) -> None:
        super().__init__(f"Resource not found: {resource}")
        self.resource = resource


class BookingNotFound(SchedulingError):
    """No booking with the given id exists."""

    def __init__(self, booking_id: str) -> None:
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id


class InvalidStatusTransition(SchedulingError):
    """A booking status change is not allowed from its current status."""


class CancellationNotAllowed(SchedulingError):
    """The cancellation notice window has already passed."""


class SlotConflict(SchedulingError):
    """An overlapping active booking exists for the resource."""


class CommitFailure(SchedulingError):
    """The store could not complete the write (outage, timeout, partial write)."""


class OrphanedBooking(SchedulingError):
    """An active booking is missing its payment link past the grace period."""

    def __init__(self, booking_id: str, detail: str = "") -> None:
        message = f"Booking {booking_id} has no payment link"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.booking_id = booking_id
