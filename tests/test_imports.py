"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors and
that re-exports from __init__.py files work correctly.
"""


class TestSchemaImports:
    def test_import_booking_schema(self):
        from clinic_scheduler.schemas.booking_schema import (
            BookingOutcome, OutcomeStatus, RejectionReason,
        )
        assert OutcomeStatus.REJECTED == "rejected"
        assert RejectionReason.SLOT_TAKEN == "slot_taken"
        assert BookingOutcome(status=OutcomeStatus.FAILED).is_conflict is False

    def test_import_resource_schema(self):
        from clinic_scheduler.schemas.resource_schema import Resource, ResourceKind
        assert str(Resource.room("R1")) == "room:R1"
        assert ResourceKind.DOCTOR == "doctor"


class TestSchedulingImports:
    def test_package_reexports(self):
        from clinic_scheduler.scheduling import (
            ACTIVE_STATUSES, BookingStatus, Interval, SchedulingError, SlotConflict, is_active,
        )
        assert issubclass(SlotConflict, SchedulingError)
        assert BookingStatus.CONFIRMED in ACTIVE_STATUSES
        assert is_active("scheduled")
        assert Interval is not None

    def test_import_engine_modules(self):
        from clinic_scheduler.scheduling.availability import AvailabilityChecker
        from clinic_scheduler.scheduling.reconciliation import OrphanReconciler
        from clinic_scheduler.scheduling.resolver import BookingConflictResolver
        from clinic_scheduler.scheduling.slot_grid import SlotGridGenerator
        assert all([AvailabilityChecker, OrphanReconciler, BookingConflictResolver, SlotGridGenerator])


class TestServiceImports:
    def test_import_service(self):
        from clinic_scheduler.service import AsyncSchedulingService, SchedulingService
        assert SchedulingService is not None
        assert AsyncSchedulingService is not None

    def test_import_store(self):
        from clinic_scheduler.store.base import StoreError, StoreTimeout
        from clinic_scheduler.store.memory import InMemoryBookingStore
        assert issubclass(StoreTimeout, StoreError)
        assert InMemoryBookingStore().all_bookings() == []

    def test_settings_singleton(self):
        from clinic_scheduler.config import settings
        assert settings.booking.commit_timeout_sec > 0
