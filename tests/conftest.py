"""Shared test fixtures and helpers."""

import threading
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import pytest

from clinic_scheduler.notifications import RecordingNotifier
from clinic_scheduler.scheduling.interval import Interval
from clinic_scheduler.scheduling.slot_grid import SlotGridConfig
from clinic_scheduler.scheduling.status import BookingStatus
from clinic_scheduler.schemas.booking_schema import BookingRecord, BookingSource, PaymentStatus
from clinic_scheduler.schemas.resource_schema import (
    DoctorProfile,
    Resource,
    ResourceKind,
    Room,
)
from clinic_scheduler.service import SchedulingService
from clinic_scheduler.store.base import StoreUnavailable
from clinic_scheduler.store.memory import InMemoryBookingStore

NOW = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)
DAY = date(2024, 6, 1)
DOCTOR = Resource.doctor("D1")
ROOM = Resource.room("R1")
GRID_CONFIG = SlotGridConfig(day_start_hour=7, day_end_hour=19, slot_minutes=60, timezone="UTC")


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    """Aware UTC instant on the test day."""
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc) + timedelta(
        hours=hour, minutes=minute
    )


def span(start_hour: float, end_hour: float, day: date = DAY) -> Interval:
    """Interval between two (possibly fractional) hours of the test day."""
    base = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return Interval(base + timedelta(hours=start_hour), base + timedelta(hours=end_hour))


def seed(store: InMemoryBookingStore) -> InMemoryBookingStore:
    store.add_doctor(DoctorProfile(
        id="D1", full_name="Dra. Ana Torres",
        consultation_fee=Decimal("120000"), consultation_fee_virtual=Decimal("90000"),
    ))
    store.add_doctor(DoctorProfile(id="D2", full_name="Dr. Luis Pardo", consultation_fee=Decimal("80000")))
    store.add_room(Room(id="R1", name="Consultorio 1", hourly_rate=Decimal("50000")))
    store.add_room(Room(id="R2", name="Consultorio 2"))
    store.add_room(Room(id="R9", name="Bodega", is_active=False))
    return store


def add_booking(
    store: InMemoryBookingStore,
    interval: Interval,
    resource: Resource = DOCTOR,
    status: BookingStatus = BookingStatus.CONFIRMED,
    room_id: Optional[str] = None,
    requires_payment: bool = False,
) -> BookingRecord:
    """Insert a booking directly, bypassing the commit protocol."""
    return store.create_booking(
        BookingRecord(
            resource_kind=resource.kind,
            resource_id=resource.resource_id,
            room_id=room_id,
            start=interval.start,
            end=interval.end,
            status=status,
            source=BookingSource.RENTAL if resource.kind == ResourceKind.ROOM else BookingSource.APPOINTMENT,
            requires_payment=requires_payment,
        ),
        timeout=1.0,
    )


class FlakyPaymentStore(InMemoryBookingStore):
    """Fails the first ``failures`` payment upserts."""

    def __init__(self, failures: int, **kwargs) -> None:
        super().__init__(**kwargs)
        self.failures = failures
        self.payment_calls = 0

    def create_payment_link(self, booking_id, amount, currency, status=PaymentStatus.PENDING):
        self.payment_calls += 1
        if self.payment_calls <= self.failures:
            raise StoreUnavailable("payments table unreachable")
        return super().create_payment_link(booking_id, amount, currency, status)


class RacingStore(InMemoryBookingStore):
    """Holds the first ``parties`` availability reads until all of them have read.

    Forces concurrent submitters to pass the advisory check on the same
    snapshot, so only the store's atomic insert can separate them.
    """

    def __init__(self, parties: int = 2, **kwargs) -> None:
        super().__init__(**kwargs)
        self._barrier = threading.Barrier(parties, timeout=5)
        self._gate_lock = threading.Lock()
        self._gated_reads = 0

    def query_active_bookings(self, resource_kind, resource_id, window):
        result = super().query_active_bookings(resource_kind, resource_id, window)
        with self._gate_lock:
            self._gated_reads += 1
            gated = self._gated_reads <= self._barrier.parties
        if gated:
            self._barrier.wait()
        return result


@pytest.fixture
def store():
    return seed(InMemoryBookingStore(clock=lambda: NOW))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(store, notifier):
    return SchedulingService(store, notifier=notifier, clock=lambda: NOW, grid_config=GRID_CONFIG)
