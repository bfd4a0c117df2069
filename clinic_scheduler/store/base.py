"""
Booking Store interface consumed by the scheduling engine.

The production store is the clinic's managed Postgres backend, where the
no-double-booking rule is an exclusion constraint on (resource, interval)
restricted to active statuses. Any implementation must give
``create_booking`` and ``reschedule_booking`` the same all-or-nothing
"fail if an overlapping active booking exists" semantics.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol

from clinic_scheduler.scheduling.interval import Interval
from clinic_scheduler.scheduling.status import BookingStatus
from clinic_scheduler.schemas.booking_schema import (
    BookingRecord,
    PaymentRecord,
    PaymentStatus,
)
from clinic_scheduler.schemas.resource_schema import (
    DoctorProfile,
    Resource,
    ResourceKind,
    Room,
)


class StoreError(Exception):
    """Infrastructure failure talking to the store."""


class StoreUnavailable(StoreError):
    """The store could not be reached or refused the operation."""


class StoreTimeout(StoreError):
    """The store did not finish the operation within the allotted time."""


class OverlapConflict(Exception):
    """An active booking already overlaps the interval (exclusion constraint)."""

    def __init__(self, resource: Resource, conflicting_ids: list[str]) -> None:
        super().__init__(
            f"Overlapping active booking on {resource}: {', '.join(conflicting_ids)}"
        )
        self.resource = resource
        self.conflicting_ids = conflicting_ids


class BookingStore(Protocol):
    """Operations the engine needs from durable booking storage."""

    def resource_exists(self, resource: Resource) -> bool: ...

    def get_doctor(self, doctor_id: str) -> Optional[DoctorProfile]: ...

    def get_room(self, room_id: str) -> Optional[Room]: ...

    def query_active_bookings(
        self, resource_kind: ResourceKind, resource_id: str, window: Interval
    ) -> list[BookingRecord]:
        """Active bookings occupying the resource that overlap ``window``."""
        ...

    def get_booking(self, booking_id: str) -> Optional[BookingRecord]: ...

    def create_booking(self, record: BookingRecord, timeout: float) -> BookingRecord:
        """Insert atomically; raise OverlapConflict if any occupied timeline is taken."""
        ...

    def reschedule_booking(
        self, booking_id: str, interval: Interval, timeout: float
    ) -> BookingRecord:
        """
        Move atomically, ignoring the booking itself in the overlap check.

        Raises InvalidStatusTransition if the booking is no longer movable
        when the write lands.
        """
        ...

    def update_booking_status(
        self,
        booking_id: str,
        new_status: BookingStatus,
        reason: Optional[str] = None,
        expected_status: Optional[BookingStatus] = None,
    ) -> BookingRecord:
        """
        Compare-and-set status change.

        The lifecycle transition is validated against the stored status at
        write time, and ``expected_status`` (when given) must still match it.
        A move back into an active status re-runs the overlap check.
        """
        ...

    def create_payment_link(
        self,
        booking_id: str,
        amount: Decimal,
        currency: str,
        status: PaymentStatus = PaymentStatus.PENDING,
    ) -> PaymentRecord:
        """Idempotent upsert keyed by booking id."""
        ...

    def get_payment(self, booking_id: str) -> Optional[PaymentRecord]: ...

    def update_payment_status(
        self, booking_id: str, status: PaymentStatus
    ) -> PaymentRecord: ...

    def list_unlinked_bookings(self, created_before: datetime) -> list[BookingRecord]:
        """Active bookings requiring payment that have no payment record."""
        ...
