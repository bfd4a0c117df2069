"""
In-memory Booking Store.

Emulates the backend's exclusion constraint with a single lock: the overlap
check and the insert happen while the lock is held, so two concurrent
writers can never both commit overlapping active bookings. Used by the CLI
demo and the test suite; production wires a database-backed store with the
same interface.
"""

import logging
import threading
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from clinic_scheduler.scheduling.errors import InvalidStatusTransition
from clinic_scheduler.scheduling.interval import Interval, overlaps
from clinic_scheduler.scheduling.status import BookingStatus, is_active, validate_transition
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
from clinic_scheduler.store.base import OverlapConflict, StoreTimeout
from clinic_scheduler.utils import utcnow

logger = logging.getLogger(__name__)


class InMemoryBookingStore:
    """Thread-safe dict-backed store with exclusion-constraint semantics."""

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._doctors: dict[str, DoctorProfile] = {}
        self._rooms: dict[str, Room] = {}
        self._bookings: dict[str, BookingRecord] = {}
        self._payments: dict[str, PaymentRecord] = {}

    # ------------------------------------------------------------------ #
    # Resources
    # ------------------------------------------------------------------ #

    def add_doctor(self, doctor: DoctorProfile) -> DoctorProfile:
        self._doctors[doctor.id] = doctor
        return doctor

    def add_room(self, room: Room) -> Room:
        self._rooms[room.id] = room
        return room

    def resource_exists(self, resource: Resource) -> bool:
        if resource.kind == ResourceKind.DOCTOR:
            return resource.resource_id in self._doctors
        return resource.resource_id in self._rooms

    def get_doctor(self, doctor_id: str) -> Optional[DoctorProfile]:
        return self._doctors.get(doctor_id)

    def get_room(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def query_active_bookings(
        self, resource_kind: ResourceKind, resource_id: str, window: Interval
    ) -> list[BookingRecord]:
        resource = Resource(ResourceKind(resource_kind), resource_id)
        with self._lock:
            found = [
                b for b in self._bookings.values()
                if b.is_active and b.occupies(resource) and overlaps(b.interval, window)
            ]
        return sorted(found, key=lambda b: b.start)

    def get_booking(self, booking_id: str) -> Optional[BookingRecord]:
        return self._bookings.get(booking_id)

    def all_bookings(self) -> list[BookingRecord]:
        """Every stored booking, active or not, oldest first."""
        return sorted(self._bookings.values(), key=lambda b: b.start)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def create_booking(self, record: BookingRecord, timeout: float) -> BookingRecord:
        self._acquire(timeout)
        try:
            if is_active(record.status):
                self._raise_on_overlap(record)
            stored = record.model_copy(update={
                "id": f"BK-{uuid.uuid4().hex[:8].upper()}",
                "created_at": self._clock(),
            })
            self._bookings[stored.id] = stored
        finally:
            self._lock.release()
        logger.info(
            "Booking stored: %s on %s %s", stored.id, stored.resource, stored.interval
        )
        return stored

    def reschedule_booking(
        self, booking_id: str, interval: Interval, timeout: float
    ) -> BookingRecord:
        self._acquire(timeout)
        try:
            current = self._bookings.get(booking_id)
            if current is None:
                raise KeyError(booking_id)
            if not current.is_active or current.status == BookingStatus.COMPLETED:
                raise InvalidStatusTransition(
                    f"Booking {booking_id} is {current.status.value} and cannot be moved"
                )
            moved = current.model_copy(update={"start": interval.start, "end": interval.end})
            if moved.is_active:
                self._raise_on_overlap(moved, exclude_id=booking_id)
            self._bookings[booking_id] = moved
        finally:
            self._lock.release()
        logger.info("Booking moved: %s to %s", booking_id, interval)
        return moved

    def update_booking_status(
        self,
        booking_id: str,
        new_status: BookingStatus,
        reason: Optional[str] = None,
        expected_status: Optional[BookingStatus] = None,
    ) -> BookingRecord:
        new_status = BookingStatus(new_status)
        with self._lock:
            current = self._bookings.get(booking_id)
            if current is None:
                raise KeyError(booking_id)
            if expected_status is not None and current.status != BookingStatus(expected_status):
                raise InvalidStatusTransition(
                    f"Booking {booking_id} changed to {current.status.value} "
                    f"while expecting {BookingStatus(expected_status).value}"
                )
            validate_transition(current.status, new_status)
            update: dict = {"status": new_status}
            if new_status == BookingStatus.CANCELLED:
                update["cancellation_reason"] = reason
                update["cancelled_at"] = self._clock()
            updated = current.model_copy(update=update)
            if updated.is_active and not current.is_active:
                self._raise_on_overlap(updated, exclude_id=booking_id)
            self._bookings[booking_id] = updated
        logger.info("Booking %s status -> %s", booking_id, new_status.value)
        return updated

    def create_payment_link(
        self,
        booking_id: str,
        amount: Decimal,
        currency: str,
        status: PaymentStatus = PaymentStatus.PENDING,
    ) -> PaymentRecord:
        with self._lock:
            if booking_id not in self._bookings:
                raise KeyError(booking_id)
            existing = self._payments.get(booking_id)
            now = self._clock()
            payment = PaymentRecord(
                booking_id=booking_id,
                amount=amount,
                currency=currency,
                status=status,
                created_at=existing.created_at if existing else now,
                paid_at=now if status == PaymentStatus.PAID else None,
            )
            self._payments[booking_id] = payment
        logger.debug("Payment link upserted for %s: %s %s", booking_id, amount, currency)
        return payment

    def get_payment(self, booking_id: str) -> Optional[PaymentRecord]:
        return self._payments.get(booking_id)

    def update_payment_status(self, booking_id: str, status: PaymentStatus) -> PaymentRecord:
        with self._lock:
            current = self._payments.get(booking_id)
            if current is None:
                raise KeyError(booking_id)
            update: dict = {"status": status}
            if status == PaymentStatus.PAID:
                update["paid_at"] = self._clock()
            updated = current.model_copy(update=update)
            self._payments[booking_id] = updated
        return updated

    def list_unlinked_bookings(self, created_before: datetime) -> list[BookingRecord]:
        with self._lock:
            return [
                b for b in self._bookings.values()
                if b.is_active
                and b.requires_payment
                and b.id not in self._payments
                and b.created_at is not None
                and b.created_at <= created_before
            ]

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _acquire(self, timeout: float) -> None:
        if not self._lock.acquire(timeout=timeout):
            raise StoreTimeout(f"Store lock not acquired within {timeout}s")

    def _raise_on_overlap(self, record: BookingRecord, exclude_id: Optional[str] = None) -> None:
        """Exclusion check; caller must hold the lock."""
        for resource in record.occupied_resources():
            conflicting = [
                b.id for b in self._bookings.values()
                if b.id != exclude_id
                and b.is_active
                and b.occupies(resource)
                and overlaps(b.interval, record.interval)
            ]
            if conflicting:
                raise OverlapConflict(resource, conflicting)
