"""Race tests: concurrent submitters for the same slot."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from clinic_scheduler.schemas.booking_schema import (
    BookingMetadata,
    OutcomeStatus,
    RejectionReason,
)
from clinic_scheduler.service import AsyncSchedulingService, SchedulingService
from clinic_scheduler.store.memory import InMemoryBookingStore
from tests.conftest import DOCTOR, GRID_CONFIG, NOW, ROOM, RacingStore, seed, span


def _racing_service(parties: int = 2) -> tuple[RacingStore, SchedulingService]:
    store = seed(RacingStore(parties=parties, clock=lambda: NOW))
    return store, SchedulingService(store, clock=lambda: NOW, grid_config=GRID_CONFIG)


def _statuses(outcomes):
    return sorted(o.status.value for o in outcomes)


class TestThreadedRace:
    def test_exactly_one_of_two_commits(self):
        store, service = _racing_service()
        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [
                pool.submit(service.submit_booking, DOCTOR, span(9, 10), BookingMetadata(patient_id=p))
                for p in ("P1", "P2")
            ]
            outcomes = [f.result() for f in futures]

        assert _statuses(outcomes) == ["committed", "rejected"]
        loser = next(o for o in outcomes if not o.committed)
        assert loser.reason == RejectionReason.SLOT_TAKEN
        assert loser.grid is not None
        assert len(store.query_active_bookings(DOCTOR.kind, "D1", span(7, 19))) == 1

    def test_overlapping_not_identical_intervals(self):
        store, service = _racing_service()
        with ThreadPoolExecutor(max_workers=2) as pool:
            first = pool.submit(service.submit_booking, DOCTOR, span(9, 10))
            second = pool.submit(service.submit_booking, DOCTOR, span(9.5, 10.5))
            outcomes = [first.result(), second.result()]

        assert _statuses(outcomes) == ["committed", "rejected"]

    def test_back_to_back_racers_both_commit(self):
        _, service = _racing_service()
        with ThreadPoolExecutor(max_workers=2) as pool:
            first = pool.submit(service.submit_booking, DOCTOR, span(9, 10))
            second = pool.submit(service.submit_booking, DOCTOR, span(10, 11))
            outcomes = [first.result(), second.result()]

        assert all(o.committed for o in outcomes)

    def test_rental_races_appointment_for_room(self):
        store, service = _racing_service()
        with ThreadPoolExecutor(max_workers=2) as pool:
            rental = pool.submit(service.submit_booking, ROOM, span(9, 10))
            appointment = pool.submit(
                service.submit_booking, DOCTOR, span(9, 10), BookingMetadata(room_id="R1")
            )
            outcomes = [rental.result(), appointment.result()]

        assert [o.status for o in outcomes].count(OutcomeStatus.COMMITTED) == 1
        assert len(store.query_active_bookings(ROOM.kind, "R1", span(7, 19))) == 1


class TestManySubmitters:
    def test_ten_threads_one_winner(self):
        store = seed(InMemoryBookingStore(clock=lambda: NOW))
        service = SchedulingService(store, clock=lambda: NOW, grid_config=GRID_CONFIG)
        with ThreadPoolExecutor(max_workers=10) as pool:
            outcomes = list(pool.map(lambda _: service.submit_booking(DOCTOR, span(9, 10)), range(10)))

        committed = [o for o in outcomes if o.committed]
        assert len(committed) == 1
        assert all(o.is_conflict for o in outcomes if not o.committed)
        assert not any(o.status == OutcomeStatus.FAILED for o in outcomes)


class TestAsyncRace:
    @pytest.mark.asyncio
    async def test_gathered_submissions(self):
        _, service = _racing_service()
        async_service = AsyncSchedulingService(service)

        outcomes = await asyncio.gather(
            async_service.submit_booking(DOCTOR, span(14, 15)),
            async_service.submit_booking(DOCTOR, span(14, 15)),
        )

        assert _statuses(outcomes) == ["committed", "rejected"]
        grid = await async_service.get_slot_grid(DOCTOR, span(14, 15).start.date())
        assert [s.start.hour for s in grid.slots if not s.is_available] == [14]

    @pytest.mark.asyncio
    async def test_async_cancel_frees_slot(self):
        _, service = _racing_service(parties=1)
        async_service = AsyncSchedulingService(service)
        outcome = await async_service.submit_booking(DOCTOR, span(9, 10))
        await async_service.cancel_booking(outcome.booking_id)
        result = await async_service.check_availability(DOCTOR, span(9, 10))
        assert result.available
