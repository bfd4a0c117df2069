"""
Caller-facing scheduling API.

Screens (booking form, receptionist agenda, room calendar, rental booking)
call this facade instead of re-deriving availability themselves, so every
one of them applies the same active-status set and overlap policy.

Usage:
    service = SchedulingService(store)
    grid = service.get_slot_grid(Resource.room("R1"), date(2024, 6, 2))
    outcome = service.submit_booking(Resource.doctor("D1"), interval)
    if outcome.is_conflict:
        show(outcome.grid)
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Callable, Optional

from clinic_scheduler.notifications import Notifier
from clinic_scheduler.scheduling.availability import AvailabilityChecker
from clinic_scheduler.scheduling.errors import BookingNotFound, CommitFailure
from clinic_scheduler.scheduling.interval import Interval
from clinic_scheduler.scheduling.reconciliation import OrphanReconciler, ReconciliationReport
from clinic_scheduler.scheduling.resolver import BookingConflictResolver
from clinic_scheduler.scheduling.slot_grid import SlotGridConfig, SlotGridGenerator
from clinic_scheduler.scheduling.status import BookingStatus
from clinic_scheduler.schemas.booking_schema import (
    AvailabilityResponse,
    BookingMetadata,
    BookingOutcome,
    BookingRecord,
    PaymentRecord,
    PaymentStatus,
    SlotGrid,
)
from clinic_scheduler.schemas.resource_schema import Resource
from clinic_scheduler.store.base import BookingStore, StoreError
from clinic_scheduler.utils import utcnow

logger = logging.getLogger(__name__)


class SchedulingService:
    """Synchronous entry points. Safe to share across threads."""

    def __init__(
        self,
        store: BookingStore,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
        grid_config: Optional[SlotGridConfig] = None,
    ) -> None:
        self.store = store
        self.grid_config = grid_config or SlotGridConfig()
        self._checker = AvailabilityChecker(store)
        self._grids = SlotGridGenerator(store)
        self._resolver = BookingConflictResolver(
            store, notifier=notifier, clock=clock, grid_config=self.grid_config
        )
        self._reconciler = OrphanReconciler(store, clock=clock)

    def check_availability(
        self,
        resource: Resource,
        interval: Interval,
        exclude_booking_id: Optional[str] = None,
    ) -> AvailabilityResponse:
        return self._checker.check(resource, interval, exclude_booking_id)

    def get_slot_grid(
        self, resource: Resource, day: date, config: Optional[SlotGridConfig] = None
    ) -> SlotGrid:
        return self._grids.get_slot_grid(resource, day, config or self.grid_config)

    def submit_booking(
        self,
        resource: Resource,
        interval: Interval,
        metadata: Optional[BookingMetadata] = None,
    ) -> BookingOutcome:
        return self._resolver.submit(resource, interval, metadata)

    def reschedule_booking(self, booking_id: str, interval: Interval) -> BookingOutcome:
        return self._resolver.reschedule(booking_id, interval)

    def cancel_booking(
        self, booking_id: str, reason: Optional[str] = None, enforce_notice: bool = True
    ) -> BookingRecord:
        return self._resolver.cancel(booking_id, reason, enforce_notice=enforce_notice)

    def update_status(self, booking_id: str, new_status: BookingStatus) -> BookingRecord:
        return self._resolver.update_status(booking_id, new_status)

    def settle_payment(self, booking_id: str) -> Optional[PaymentRecord]:
        """Credit or void the payment of a cancelled booking. Idempotent."""
        return self._resolver.settle_payment(booking_id)

    def record_payment(self, booking_id: str) -> PaymentRecord:
        """Mark a booking's payment as paid."""
        if self.store.get_payment(booking_id) is None:
            raise BookingNotFound(booking_id)
        try:
            payment = self.store.update_payment_status(booking_id, PaymentStatus.PAID)
        except StoreError as exc:
            raise CommitFailure(f"Could not record payment for {booking_id}: {exc}") from exc
        logger.info("Payment recorded for %s", booking_id)
        return payment

    def reconcile(self, now: Optional[datetime] = None) -> ReconciliationReport:
        return self._reconciler.sweep(now)


class AsyncSchedulingService:
    """
    Event-loop wrapper around ``SchedulingService``.

    Each call runs in a worker thread, so a slow store never blocks the
    loop. Race safety still comes from the store's atomic create.
    """

    def __init__(self, service: SchedulingService) -> None:
        self._service = service

    async def check_availability(
        self,
        resource: Resource,
        interval: Interval,
        exclude_booking_id: Optional[str] = None,
    ) -> AvailabilityResponse:
        return await asyncio.to_thread(
            self._service.check_availability, resource, interval, exclude_booking_id
        )

    async def get_slot_grid(
        self, resource: Resource, day: date, config: Optional[SlotGridConfig] = None
    ) -> SlotGrid:
        return await asyncio.to_thread(self._service.get_slot_grid, resource, day, config)

    async def submit_booking(
        self,
        resource: Resource,
        interval: Interval,
        metadata: Optional[BookingMetadata] = None,
    ) -> BookingOutcome:
        return await asyncio.to_thread(
            self._service.submit_booking, resource, interval, metadata
        )

    async def reschedule_booking(self, booking_id: str, interval: Interval) -> BookingOutcome:
        return await asyncio.to_thread(self._service.reschedule_booking, booking_id, interval)

    async def cancel_booking(
        self, booking_id: str, reason: Optional[str] = None, enforce_notice: bool = True
    ) -> BookingRecord:
        return await asyncio.to_thread(
            self._service.cancel_booking, booking_id, reason, enforce_notice
        )
