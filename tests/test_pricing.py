"""Tests for consultation fees and rental totals."""

from datetime import timedelta
from decimal import Decimal

import pytest

from clinic_scheduler.scheduling.errors import ResourceLookupFailed
from clinic_scheduler.scheduling.interval import Interval
from clinic_scheduler.scheduling.pricing import appointment_amount, consultation_fee, rental_total
from clinic_scheduler.schemas.resource_schema import DoctorProfile, Room
from tests.conftest import at, span


class TestConsultationFee:
    doctor = DoctorProfile(
        id="D1", full_name="Dra. Ana Torres",
        consultation_fee=Decimal("120000"), consultation_fee_virtual=Decimal("90000"),
    )

    def test_in_person(self):
        assert consultation_fee(self.doctor, is_virtual=False) == Decimal("120000")

    def test_virtual(self):
        assert consultation_fee(self.doctor, is_virtual=True) == Decimal("90000")

    def test_virtual_without_virtual_fee(self):
        doctor = DoctorProfile(id="D2", full_name="Dr. Luis Pardo", consultation_fee=Decimal("80000"))
        assert consultation_fee(doctor, is_virtual=True) == Decimal("80000")

    def test_lookup_through_store(self, store):
        assert appointment_amount(store, "D1", is_virtual=True) == Decimal("90000")

    def test_unknown_doctor(self, store):
        with pytest.raises(ResourceLookupFailed):
            appointment_amount(store, "ghost", is_virtual=False)


class TestRentalTotal:
    def test_whole_hours(self):
        room = Room(id="R1", name="Consultorio 1", hourly_rate=Decimal("50000"))
        assert rental_total(room, span(9, 11)) == Decimal("100000.00")

    def test_partial_hour_is_prorated(self):
        room = Room(id="R1", name="Consultorio 1", hourly_rate=Decimal("60000"))
        interval = Interval(at(9), at(9) + timedelta(minutes=20))
        assert rental_total(room, interval) == Decimal("20000.00")

    def test_default_rate(self):
        assert rental_total(Room(id="R2", name="Consultorio 2"), span(9, 10)) == Decimal("50000.00")
