from clinic_scheduler.scheduling.errors import (
    BookingNotFound,
    CancellationNotAllowed,
    CommitFailure,
    InvalidInterval,
    InvalidRange,
    InvalidStatusTransition,
    OrphanedBooking,
    ResourceLookupFailed,
    SchedulingError,
    SlotConflict,
)
from clinic_scheduler.scheduling.interval import Interval, contains, overlaps
from clinic_scheduler.scheduling.status import ACTIVE_STATUSES, BookingStatus, is_active

__all__ = [
    "Interval",
    "overlaps",
    "contains",
    "BookingStatus",
    "ACTIVE_STATUSES",
    "is_active",
    "SchedulingError",
    "InvalidInterval",
    "InvalidRange",
    "ResourceLookupFailed",
    "BookingNotFound",
    "InvalidStatusTransition",
    "CancellationNotAllowed",
    "SlotConflict",
    "CommitFailure",
    "OrphanedBooking",
]
