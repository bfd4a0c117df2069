"""Booking, payment, slot grid and outcome data models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from clinic_scheduler.scheduling.errors import CommitFailure, SchedulingError, SlotConflict
from clinic_scheduler.scheduling.interval import Interval
from clinic_scheduler.scheduling.status import BookingStatus, is_active
from clinic_scheduler.schemas.resource_schema import Resource, ResourceKind


class BookingSource(str, Enum):
    """Which booking flow produced the record. Display only."""
    APPOINTMENT = "appointment"
    RENTAL = "rental"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    CREDITED = "credited"


class BookingRecord(BaseModel):
    """A booking as stored in the Booking Store."""
    id: str = ""
    resource_kind: ResourceKind
    resource_id: str
    room_id: Optional[str] = None
    start: datetime
    end: datetime
    status: BookingStatus = BookingStatus.SCHEDULED
    source: BookingSource = BookingSource.APPOINTMENT
    patient_id: Optional[str] = None
    is_virtual: bool = False
    notes: Optional[str] = None
    total_price: Optional[Decimal] = None
    requires_payment: bool = False
    created_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_interval(self) -> "BookingRecord":
        Interval(self.start, self.end)
        return self

    @property
    def resource(self) -> Resource:
        return Resource(self.resource_kind, self.resource_id)

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)

    @property
    def is_active(self) -> bool:
        return is_active(self.status)

    def occupied_resources(self) -> list[Resource]:
        """Every timeline this booking blocks: its resource plus an assigned room."""
        resources = [self.resource]
        if self.room_id and self.resource_kind == ResourceKind.DOCTOR:
            resources.append(Resource.room(self.room_id))
        return resources

    def occupies(self, resource: Resource) -> bool:
        return resource in self.occupied_resources()


class PaymentRecord(BaseModel):
    """Payment linkage for a booking, upserted by booking id."""
    booking_id: str
    amount: Decimal
    currency: str = "COP"
    status: PaymentStatus = PaymentStatus.PENDING
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


class BookingMetadata(BaseModel):
    """Caller-supplied details for a booking submission."""
    source: BookingSource = BookingSource.APPOINTMENT
    patient_id: Optional[str] = None
    room_id: Optional[str] = None
    is_virtual: bool = False
    notes: Optional[str] = None
    mark_paid: bool = False


class Slot(BaseModel):
    """One fixed-width bucket of the day grid."""
    start: datetime
    end: datetime
    is_available: bool = True


class SlotGrid(BaseModel):
    """Free/occupied view of one resource over one day. Never persisted."""
    resource_kind: ResourceKind
    resource_id: str
    day: date
    slots: list[Slot] = Field(default_factory=list)

    @property
    def available_slots(self) -> list[Slot]:
        return [s for s in self.slots if s.is_available]

    @property
    def occupied_count(self) -> int:
        return sum(1 for s in self.slots if not s.is_available)


class AvailabilityResponse(BaseModel):
    """Point availability check result."""
    available: bool
    resource_kind: ResourceKind
    resource_id: str
    start: datetime
    end: datetime
    conflicting_booking_ids: list[str] = Field(default_factory=list)


class OutcomeStatus(str, Enum):
    COMMITTED = "committed"
    REJECTED = "rejected"
    FAILED = "failed"


class RejectionReason(str, Enum):
    SLOT_CONFLICT = "slot_conflict"
    SLOT_TAKEN = "slot_taken"
    OUTSIDE_WORKING_HOURS = "outside_working_hours"
    IN_PAST = "in_past"
    ROOM_REQUIRED = "room_required"
    ROOM_INACTIVE = "room_inactive"


class BookingOutcome(BaseModel):
    """Typed result of a booking submission or reschedule."""
    status: OutcomeStatus
    booking_id: Optional[str] = None
    reason: Optional[RejectionReason] = None
    message: str = ""
    error: Optional[str] = None
    retryable: bool = False
    grid: Optional[SlotGrid] = None
    attempt_id: Optional[str] = None
    trace: list[str] = Field(default_factory=list)

    @property
    def committed(self) -> bool:
        return self.status == OutcomeStatus.COMMITTED

    @property
    def is_conflict(self) -> bool:
        return self.reason in (RejectionReason.SLOT_CONFLICT, RejectionReason.SLOT_TAKEN)

    def raise_for_status(self) -> None:
        """
        Raise for callers that prefer exceptions over branching on the outcome.

        Raises:
            SlotConflict: The slot was taken by another active booking.
            CommitFailure: The store failed; the request may be retried.
            SchedulingError: Any other rejection.
        """
        if self.status == OutcomeStatus.FAILED:
            raise CommitFailure(self.error or self.message)
        if self.is_conflict:
            raise SlotConflict(self.message)
        if self.status == OutcomeStatus.REJECTED:
            raise SchedulingError(self.message)
