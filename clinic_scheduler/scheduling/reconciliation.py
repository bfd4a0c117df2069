"""
Background sweep for bookings left active without a payment link.

A process can die between the booking insert and the payment upsert. Such
an orphan occupies its slot, so once it is older than the grace period the
sweep tries the (idempotent) payment link once more and cancels the booking
if that fails too. Scheduling the sweep is the host's job.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from clinic_scheduler.config import settings
from clinic_scheduler.scheduling.errors import (
    InvalidStatusTransition,
    OrphanedBooking,
    ResourceLookupFailed,
)
from clinic_scheduler.scheduling.pricing import appointment_amount
from clinic_scheduler.scheduling.status import BookingStatus
from clinic_scheduler.schemas.booking_schema import BookingRecord, PaymentStatus
from clinic_scheduler.store.base import BookingStore, StoreError
from clinic_scheduler.utils import utcnow

logger = logging.getLogger(__name__)

ORPHAN_CANCEL_REASON = "orphaned_booking"


@dataclass
class ReconciliationReport:
    """What one sweep did."""

    healed: list[str] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    errors: list[OrphanedBooking] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.healed) + len(self.cancelled) + len(self.errors)


class OrphanReconciler:
    """Heals or cancels active bookings missing their payment link."""

    def __init__(
        self,
        store: BookingStore,
        clock: Callable[[], datetime] = utcnow,
        grace: Optional[timedelta] = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._grace = grace if grace is not None else timedelta(
            minutes=settings.booking.orphan_grace_minutes
        )

    def sweep(self, now: Optional[datetime] = None) -> ReconciliationReport:
        """Process every orphan older than the grace period."""
        now = now or self._clock()
        report = ReconciliationReport()
        orphans = self._store.list_unlinked_bookings(created_before=now - self._grace)
        if orphans:
            logger.warning("Found %d orphaned booking(s)", len(orphans))

        for booking in orphans:
            self._reconcile(booking, report)

        logger.info(
            "Reconciliation done: %d healed, %d cancelled, %d errors",
            len(report.healed), len(report.cancelled), len(report.errors),
        )
        return report

    def _reconcile(self, booking: BookingRecord, report: ReconciliationReport) -> None:
        try:
            amount = appointment_amount(self._store, booking.resource_id, booking.is_virtual)
            self._store.create_payment_link(
                booking.id, amount, settings.booking.currency, PaymentStatus.PENDING
            )
            report.healed.append(booking.id)
            logger.info("Orphan %s healed with payment link", booking.id)
            return
        except (StoreError, ResourceLookupFailed) as exc:
            logger.warning("Payment link retry for orphan %s failed: %s", booking.id, exc)

        try:
            self._store.update_booking_status(
                booking.id,
                BookingStatus.CANCELLED,
                reason=ORPHAN_CANCEL_REASON,
                expected_status=booking.status,
            )
            report.cancelled.append(booking.id)
            logger.info("Orphan %s cancelled", booking.id)
        except InvalidStatusTransition as exc:
            logger.info("Orphan %s changed status during the sweep, skipped: %s", booking.id, exc)
        except StoreError as exc:
            logger.error("Could not cancel orphan %s: %s", booking.id, exc)
            report.errors.append(OrphanedBooking(booking.id, str(exc)))
