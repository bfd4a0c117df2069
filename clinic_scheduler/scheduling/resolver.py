"""
Booking commit protocol: every write to the Booking Store goes through here.

Submit flow:
    1. Business pre-validation (working hours, not in the past, room rules).
    2. Advisory availability check for every timeline the booking occupies.
    3. Authoritative check-and-insert inside the store (exclusion constraint).
    4. For appointments, the payment link is upserted by booking id. It is
       retried once on infrastructure errors; if it still fails the booking
       is cancelled so it never occupies a slot without its payment record.

Conflicts and infrastructure failures come back as ``BookingOutcome``
values. Booking creation itself is never retried automatically.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from clinic_scheduler.config import settings
from clinic_scheduler.logging_context import get_attempt_logger
from clinic_scheduler.notifications import LoggingNotifier, Notifier
from clinic_scheduler.scheduling.attempt import AttemptTrigger, BookingAttempt
from clinic_scheduler.scheduling.availability import AvailabilityChecker
from clinic_scheduler.scheduling.errors import (
    BookingNotFound,
    CancellationNotAllowed,
    CommitFailure,
    InvalidStatusTransition,
    ResourceLookupFailed,
)
from clinic_scheduler.scheduling.interval import Interval
from clinic_scheduler.scheduling.pricing import appointment_amount, rental_total
from clinic_scheduler.scheduling.slot_grid import SlotGridConfig, SlotGridGenerator
from clinic_scheduler.scheduling.status import BookingStatus, validate_transition
from clinic_scheduler.schemas.booking_schema import (
    BookingMetadata,
    BookingOutcome,
    BookingRecord,
    BookingSource,
    OutcomeStatus,
    PaymentRecord,
    PaymentStatus,
    RejectionReason,
    SlotGrid,
)
from clinic_scheduler.schemas.resource_schema import Resource, ResourceKind
from clinic_scheduler.store.base import BookingStore, OverlapConflict, StoreError
from clinic_scheduler.utils import local_datetime, utcnow

logger = get_attempt_logger(__name__)

PAYMENT_LINK_FAILED = "payment_link_failed"


class BookingConflictResolver:
    """Re-validates and commits bookings with defined race and failure behavior."""

    def __init__(
        self,
        store: BookingStore,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
        grid_config: Optional[SlotGridConfig] = None,
    ) -> None:
        self._store = store
        self._checker = AvailabilityChecker(store)
        self._grids = SlotGridGenerator(store)
        self._notifier = notifier or LoggingNotifier()
        self._clock = clock
        self._grid_config = grid_config or SlotGridConfig()

    # ------------------------------------------------------------------ #
    # Submit
    # ------------------------------------------------------------------ #

    def submit(
        self, resource: Resource, interval: Interval, metadata: Optional[BookingMetadata] = None
    ) -> BookingOutcome:
        """
        Run one booking attempt to a terminal state.

        Raises:
            ResourceLookupFailed: If the resource or its room does not exist.
        """
        metadata = metadata or BookingMetadata()
        attempt = BookingAttempt()
        attempt.transition(AttemptTrigger.SUBMITTED)
        logger.info("Submitting booking on %s for %s", resource, interval)

        try:
            rejection = self._validate_request(resource, interval, metadata)
            busy = None
            if rejection is None:
                busy = self._first_busy(self._occupied_resources(resource, metadata), interval)
        except StoreError as exc:
            return self._store_failure(attempt, exc, "Availability could not be checked")

        if rejection is not None:
            reason, message = rejection
            attempt.transition(AttemptTrigger.REQUEST_INVALID)
            logger.info("Booking request rejected: %s", message)
            return self._outcome(attempt, OutcomeStatus.REJECTED, reason=reason, message=message)

        if busy is not None:
            attempt.transition(AttemptTrigger.SLOT_UNAVAILABLE)
            logger.info("Advisory check found %s busy", busy)
            return self._outcome(
                attempt,
                OutcomeStatus.REJECTED,
                reason=RejectionReason.SLOT_CONFLICT,
                message=f"{busy} is not available for the selected time.",
                grid=self._fresh_grid(busy, interval),
            )

        try:
            record, amount = self._draft(resource, interval, metadata)
            stored = self._store.create_booking(record, settings.booking.commit_timeout_sec)
        except OverlapConflict as exc:
            attempt.transition(AttemptTrigger.SLOT_TAKEN)
            logger.info("Authoritative check rejected booking: %s", exc)
            return self._outcome(
                attempt,
                OutcomeStatus.REJECTED,
                reason=RejectionReason.SLOT_TAKEN,
                message="That slot was just taken. Please pick another time.",
                grid=self._fresh_grid(exc.resource, interval),
            )
        except StoreError as exc:
            return self._store_failure(attempt, exc, "Booking could not be saved")

        if stored.requires_payment:
            link_error = self._link_payment(stored, amount, metadata.mark_paid)
            if link_error is not None:
                self._compensate(stored)
                attempt.transition(AttemptTrigger.COMMIT_FAILED)
                return self._outcome(
                    attempt,
                    OutcomeStatus.FAILED,
                    error=str(CommitFailure(f"Payment link failed: {link_error}")),
                    message="The booking could not be completed. Please try again.",
                    retryable=True,
                )

        attempt.transition(AttemptTrigger.COMMIT_SUCCEEDED)
        logger.info("Booking committed: %s", stored.id)
        self._notify("booking_committed", stored)
        return self._outcome(
            attempt,
            OutcomeStatus.COMMITTED,
            booking_id=stored.id,
            message=f"Booking confirmed. Reference number: {stored.id}.",
        )

    # ------------------------------------------------------------------ #
    # Reschedule
    # ------------------------------------------------------------------ #

    def reschedule(self, booking_id: str, interval: Interval) -> BookingOutcome:
        """
        Move an active booking, ignoring its own current slot in every check.

        Raises:
            BookingNotFound: If the booking does not exist.
            InvalidStatusTransition: If the booking is no longer active,
                including when it is cancelled while the move is in flight.
        """
        attempt = BookingAttempt()
        attempt.transition(AttemptTrigger.SUBMITTED)
        logger.info("Rescheduling %s to %s", booking_id, interval)

        try:
            booking = self._get(booking_id)
            if not booking.is_active or booking.status == BookingStatus.COMPLETED:
                raise InvalidStatusTransition(
                    f"Booking {booking_id} is {booking.status.value} and cannot be moved"
                )
            rejection = self._validate_timing(interval)
            busy = None
            if rejection is None:
                busy = self._first_busy(
                    booking.occupied_resources(), interval, exclude_booking_id=booking_id
                )
        except StoreError as exc:
            return self._store_failure(
                attempt, exc, "Availability could not be checked", booking_id=booking_id
            )

        if rejection is not None:
            reason, message = rejection
            attempt.transition(AttemptTrigger.REQUEST_INVALID)
            return self._outcome(attempt, OutcomeStatus.REJECTED, reason=reason, message=message)

        if busy is not None:
            attempt.transition(AttemptTrigger.SLOT_UNAVAILABLE)
            return self._outcome(
                attempt,
                OutcomeStatus.REJECTED,
                booking_id=booking_id,
                reason=RejectionReason.SLOT_CONFLICT,
                message=f"{busy} is not available for the new time.",
                grid=self._fresh_grid(busy, interval),
            )

        try:
            moved = self._store.reschedule_booking(
                booking_id, interval, settings.booking.commit_timeout_sec
            )
        except OverlapConflict as exc:
            attempt.transition(AttemptTrigger.SLOT_TAKEN)
            return self._outcome(
                attempt,
                OutcomeStatus.REJECTED,
                booking_id=booking_id,
                reason=RejectionReason.SLOT_TAKEN,
                message="That slot was just taken. Please pick another time.",
                grid=self._fresh_grid(exc.resource, interval),
            )
        except StoreError as exc:
            return self._store_failure(
                attempt, exc, "Reschedule could not be saved", booking_id=booking_id
            )

        attempt.transition(AttemptTrigger.COMMIT_SUCCEEDED)
        self._notify("booking_rescheduled", moved)
        return self._outcome(
            attempt,
            OutcomeStatus.COMMITTED,
            booking_id=booking_id,
            message=f"Booking {booking_id} moved to {interval.start.isoformat()}.",
        )

    # ------------------------------------------------------------------ #
    # Status changes
    # ------------------------------------------------------------------ #

    def cancel(
        self, booking_id: str, reason: Optional[str] = None, enforce_notice: bool = True
    ) -> BookingRecord:
        """
        Cancel an active booking. The slot is free on the next read.

        The payment is settled afterwards in its own step: a failure there is
        logged and left for ``settle_payment`` to retry, since the booking is
        already cancelled.

        Raises:
            BookingNotFound: If the booking does not exist.
            InvalidStatusTransition: If the booking is already terminal or
                changed status concurrently.
            CancellationNotAllowed: If less than the minimum notice remains.
            CommitFailure: If the store rejects the update.
        """
        try:
            booking = self._get(booking_id)
        except StoreError as exc:
            raise CommitFailure(f"Could not load {booking_id}: {exc}") from exc
        validate_transition(booking.status, BookingStatus.CANCELLED)

        if enforce_notice:
            notice = timedelta(hours=settings.booking.min_cancellation_hours)
            if booking.start - self._clock() < notice:
                raise CancellationNotAllowed(
                    f"Cancellation requires {settings.booking.min_cancellation_hours:g} "
                    f"hours notice; booking {booking_id} starts {booking.start.isoformat()}"
                )

        try:
            cancelled = self._store.update_booking_status(
                booking_id, BookingStatus.CANCELLED, reason=reason, expected_status=booking.status
            )
        except StoreError as exc:
            raise CommitFailure(f"Could not cancel {booking_id}: {exc}") from exc

        logger.info("Booking cancelled: %s (%s)", booking_id, reason)
        try:
            self.settle_payment(booking_id)
        except CommitFailure as exc:
            logger.error("Payment for cancelled %s left unsettled: %s", booking_id, exc)
        self._notify("booking_cancelled", cancelled)
        return cancelled

    def settle_payment(self, booking_id: str) -> Optional[PaymentRecord]:
        """
        Credit a paid payment or void a pending one for a cancelled booking.

        Idempotent; safe to call again after a failed settlement.

        Raises:
            BookingNotFound: If the booking does not exist.
            InvalidStatusTransition: If the booking is not cancelled.
            CommitFailure: If the store rejects the update.
        """
        try:
            booking = self._get(booking_id)
            if booking.status != BookingStatus.CANCELLED:
                raise InvalidStatusTransition(
                    f"Booking {booking_id} is {booking.status.value}; only cancelled "
                    "bookings have their payment settled"
                )
            payment = self._store.get_payment(booking_id)
            if payment is None:
                return None
            if payment.status == PaymentStatus.PAID:
                return self._store.update_payment_status(booking_id, PaymentStatus.CREDITED)
            if payment.status == PaymentStatus.PENDING:
                return self._store.update_payment_status(booking_id, PaymentStatus.CANCELLED)
            return payment
        except StoreError as exc:
            raise CommitFailure(f"Could not settle payment for {booking_id}: {exc}") from exc

    def update_status(self, booking_id: str, new_status: BookingStatus) -> BookingRecord:
        """
        Apply a lifecycle transition.

        Confirming an appointment that requires payment needs a paid payment
        record. Cancellation goes through ``cancel`` without the notice rule.
        The write only lands if the booking still has the status it was read
        with.
        """
        new_status = BookingStatus(new_status)
        try:
            booking = self._get(booking_id)
        except StoreError as exc:
            raise CommitFailure(f"Could not load {booking_id}: {exc}") from exc
        validate_transition(booking.status, new_status)

        if new_status == BookingStatus.CANCELLED:
            return self.cancel(booking_id, reason="status_update", enforce_notice=False)

        try:
            if new_status == BookingStatus.CONFIRMED and booking.requires_payment:
                payment = self._store.get_payment(booking_id)
                if payment is None or payment.status != PaymentStatus.PAID:
                    current = payment.status.value if payment else "missing"
                    raise InvalidStatusTransition(
                        f"Booking {booking_id} cannot be confirmed without payment "
                        f"(payment status: {current})"
                    )
            return self._store.update_booking_status(
                booking_id, new_status, expected_status=booking.status
            )
        except StoreError as exc:
            raise CommitFailure(f"Could not update {booking_id}: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _get(self, booking_id: str) -> BookingRecord:
        booking = self._store.get_booking(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking

    def _validate_timing(self, interval: Interval) -> Optional[tuple[RejectionReason, str]]:
        schedule = settings.schedule
        if interval.start <= self._clock():
            return RejectionReason.IN_PAST, "Bookings cannot be created in the past."

        local_start = interval.start.astimezone(ZoneInfo(schedule.timezone))
        opens = local_datetime(local_start.date(), schedule.working_hours_start, schedule.timezone)
        closes = local_datetime(local_start.date(), schedule.working_hours_end, schedule.timezone)
        if interval.start < opens or interval.end > closes:
            return (
                RejectionReason.OUTSIDE_WORKING_HOURS,
                f"Outside working hours ({schedule.working_hours_start}:00 - "
                f"{schedule.working_hours_end}:00).",
            )
        return None

    def _validate_request(
        self, resource: Resource, interval: Interval, metadata: BookingMetadata
    ) -> Optional[tuple[RejectionReason, str]]:
        rejection = self._validate_timing(interval)
        if rejection is not None:
            return rejection

        if resource.kind == ResourceKind.DOCTOR:
            if metadata.room_id is None or metadata.is_virtual:
                if not metadata.is_virtual and settings.booking.require_room_for_in_person:
                    return RejectionReason.ROOM_REQUIRED, "In-person appointments need a room."
                return None
            room_id = metadata.room_id
        else:
            room_id = resource.resource_id

        room = self._store.get_room(room_id)
        if room is None:
            raise ResourceLookupFailed(Resource.room(room_id))
        if not room.is_active:
            return RejectionReason.ROOM_INACTIVE, f"Room {room.name} is not in service."
        return None

    @staticmethod
    def _occupied_resources(resource: Resource, metadata: BookingMetadata) -> list[Resource]:
        occupied = [resource]
        if resource.kind == ResourceKind.DOCTOR and metadata.room_id and not metadata.is_virtual:
            occupied.append(Resource.room(metadata.room_id))
        return occupied

    def _draft(
        self, resource: Resource, interval: Interval, metadata: BookingMetadata
    ) -> tuple[BookingRecord, Optional[Decimal]]:
        """Build the record to insert and the payment amount, if any."""
        status = BookingStatus.CONFIRMED if metadata.mark_paid else BookingStatus.SCHEDULED
        base = {
            "resource_kind": resource.kind,
            "resource_id": resource.resource_id,
            "start": interval.start,
            "end": interval.end,
            "status": status,
            "patient_id": metadata.patient_id,
            "is_virtual": metadata.is_virtual,
            "notes": metadata.notes,
        }

        if resource.kind == ResourceKind.ROOM:
            room = self._store.get_room(resource.resource_id)
            total = rental_total(room, interval) if room is not None else None
            record = BookingRecord(
                **base, source=BookingSource.RENTAL, total_price=total
            )
            return record, None

        amount = appointment_amount(self._store, resource.resource_id, metadata.is_virtual)
        record = BookingRecord(
            **base,
            source=metadata.source,
            room_id=None if metadata.is_virtual else metadata.room_id,
            requires_payment=metadata.source == BookingSource.APPOINTMENT,
        )
        return record, amount

    def _link_payment(
        self, booking: BookingRecord, amount: Optional[Decimal], paid: bool
    ) -> Optional[StoreError]:
        """Upsert the payment link, retrying once. Returns the last error, if any."""
        status = PaymentStatus.PAID if paid else PaymentStatus.PENDING
        attempts = 1 + settings.booking.payment_link_retries
        last_error: Optional[StoreError] = None
        for attempt in range(1, attempts + 1):
            try:
                self._store.create_payment_link(
                    booking.id, amount or Decimal("0"), settings.booking.currency, status
                )
                return None
            except StoreError as exc:
                last_error = exc
                logger.warning(
                    "Payment link for %s failed (attempt %d/%d): %s",
                    booking.id, attempt, attempts, exc,
                )
        return last_error

    def _compensate(self, booking: BookingRecord) -> None:
        """Cancel a booking whose payment link never landed."""
        try:
            self._store.update_booking_status(
                booking.id,
                BookingStatus.CANCELLED,
                reason=PAYMENT_LINK_FAILED,
                expected_status=booking.status,
            )
            logger.info("Rolled back booking %s after payment link failure", booking.id)
        except InvalidStatusTransition as exc:
            logger.warning("Booking %s changed before roll back: %s", booking.id, exc)
        except StoreError as exc:
            # Left active without a payment record; the reconciliation sweep owns it now.
            logger.error("Could not roll back %s, left for reconciliation: %s", booking.id, exc)

    def _first_busy(
        self, resources: list[Resource], interval: Interval, exclude_booking_id: Optional[str] = None
    ) -> Optional[Resource]:
        for target in resources:
            if not self._checker.is_available(target, interval, exclude_booking_id=exclude_booking_id):
                return target
        return None

    def _store_failure(
        self,
        attempt: BookingAttempt,
        exc: StoreError,
        what: str,
        booking_id: Optional[str] = None,
    ) -> BookingOutcome:
        attempt.transition(AttemptTrigger.COMMIT_FAILED)
        logger.error("%s: %s", what, exc)
        return self._outcome(
            attempt,
            OutcomeStatus.FAILED,
            booking_id=booking_id,
            error=str(CommitFailure(f"{what}: {exc}")),
            message="The booking could not be saved. Check availability and try again.",
            retryable=True,
        )

    def _fresh_grid(self, resource: Resource, interval: Interval) -> Optional[SlotGrid]:
        day = interval.start.astimezone(ZoneInfo(self._grid_config.timezone)).date()
        try:
            return self._grids.get_slot_grid(resource, day, self._grid_config)
        except StoreError as exc:
            logger.warning("Could not refresh grid for %s: %s", resource, exc)
            return None

    def _notify(self, event: str, booking: BookingRecord) -> None:
        try:
            getattr(self._notifier, event)(booking)
        except Exception:
            # The booking is already committed; a failed hand-off must not undo it.
            logger.exception("Notifier failed on %s for %s", event, booking.id)

    @staticmethod
    def _outcome(attempt: BookingAttempt, status: OutcomeStatus, **fields) -> BookingOutcome:
        return BookingOutcome(
            status=status,
            attempt_id=attempt.attempt_id,
            trace=attempt.get_state_trace(),
            **fields,
        )
