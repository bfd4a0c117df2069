"""Fee lookup for payment links and rental totals."""

import logging
from decimal import Decimal

from clinic_scheduler.config import settings
from clinic_scheduler.scheduling.errors import ResourceLookupFailed
from clinic_scheduler.scheduling.interval import Interval
from clinic_scheduler.schemas.resource_schema import DoctorProfile, Resource, Room

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = Decimal(3600)


def consultation_fee(doctor: DoctorProfile, is_virtual: bool) -> Decimal:
    """Virtual appointments use the virtual fee, falling back to the in-person fee."""
    if is_virtual and doctor.consultation_fee_virtual:
        return doctor.consultation_fee_virtual
    return doctor.consultation_fee


def rental_total(room: Room, interval: Interval) -> Decimal:
    """Hourly rate times the rented duration, prorated for partial hours."""
    rate = room.hourly_rate or Decimal(settings.booking.default_room_hourly_rate)
    hours = Decimal(int(interval.duration.total_seconds())) / SECONDS_PER_HOUR
    return (rate * hours).quantize(Decimal("0.01"))


def appointment_amount(store, doctor_id: str, is_virtual: bool) -> Decimal:
    """Look up the doctor's fee for a new appointment."""
    doctor = store.get_doctor(doctor_id)
    if doctor is None:
        raise ResourceLookupFailed(Resource.doctor(doctor_id))
    amount = consultation_fee(doctor, is_virtual)
    logger.debug("Fee for %s (virtual=%s): %s", doctor_id, is_virtual, amount)
    return amount
