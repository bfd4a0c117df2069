"""
Command-line entry point for the clinic scheduler.

Runs against a seeded in-memory store so the engine can be explored
without a backend.

Usage:
    python main.py grid --resource room:R1 --date 2024-06-02
    python main.py check --resource doctor:D1 --start 2024-06-01T14:30+00:00 --minutes 60
    python main.py demo
"""

import argparse
import logging
import sys
from datetime import date, datetime, timezone
from decimal import Decimal

from clinic_scheduler.config import settings
from clinic_scheduler.scheduling.errors import SchedulingError
from clinic_scheduler.scheduling.interval import Interval
from clinic_scheduler.scheduling.status import BookingStatus
from clinic_scheduler.schemas.booking_schema import (
    BookingMetadata,
    BookingRecord,
    BookingSource,
    SlotGrid,
)
from clinic_scheduler.schemas.resource_schema import (
    DoctorProfile,
    Resource,
    ResourceKind,
    Room,
)
from clinic_scheduler.service import SchedulingService
from clinic_scheduler.store.memory import InMemoryBookingStore

logger = logging.getLogger(__name__)

DEMO_DAY = date(2024, 6, 1)
DEMO_NOW = datetime(2024, 5, 31, 12, 0, tzinfo=timezone.utc)


def _at(hour: int, day: date = DEMO_DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc)


def build_demo_store() -> InMemoryBookingStore:
    """A doctor with a confirmed 14:00 appointment and two rooms."""
    store = InMemoryBookingStore(clock=lambda: DEMO_NOW)
    store.add_doctor(DoctorProfile(
        id="D1", full_name="Dra. Ana Torres",
        consultation_fee=Decimal("120000"), consultation_fee_virtual=Decimal("90000"),
    ))
    store.add_room(Room(id="R1", name="Consultorio 1", hourly_rate=Decimal("50000")))
    store.add_room(Room(id="R2", name="Consultorio 2"))
    store.create_booking(
        BookingRecord(
            resource_kind=ResourceKind.DOCTOR, resource_id="D1",
            start=_at(14), end=_at(15), status=BookingStatus.CONFIRMED,
        ),
        timeout=settings.booking.commit_timeout_sec,
    )
    store.create_booking(
        BookingRecord(
            resource_kind=ResourceKind.ROOM, resource_id="R1",
            start=_at(9), end=_at(11), status=BookingStatus.CONFIRMED,
            source=BookingSource.RENTAL,
        ),
        timeout=settings.booking.commit_timeout_sec,
    )
    return store


def _parse_resource(value: str) -> Resource:
    kind, _, resource_id = value.partition(":")
    try:
        return Resource(ResourceKind(kind.lower()), resource_id)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Resource must look like doctor:ID or room:ID, got {value!r}"
        ) from None


def _parse_instant(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid ISO timestamp: {value!r}") from None
    if parsed.tzinfo is None:
        raise argparse.ArgumentTypeError(f"Timestamp needs a UTC offset: {value!r}")
    return parsed


def format_grid(grid: SlotGrid) -> str:
    lines = [f"{grid.resource_kind.value}:{grid.resource_id} on {grid.day.isoformat()}"]
    for slot in grid.slots:
        mark = "free" if slot.is_available else "BUSY"
        lines.append(f"  {slot.start:%H:%M}-{slot.end:%H:%M}  {mark}")
    lines.append(f"  {len(grid.available_slots)}/{len(grid.slots)} slots free")
    return "\n".join(lines)


def _run_demo(service: SchedulingService) -> None:
    doctor = Resource.doctor("D1")
    sys.stdout.write(format_grid(service.get_slot_grid(doctor, DEMO_DAY)) + "\n\n")

    for start in (14, 15):
        outcome = service.submit_booking(
            doctor,
            Interval(_at(start), _at(start + 1)),
            BookingMetadata(patient_id="P1", room_id="R2"),
        )
        reason = f" ({outcome.reason.value})" if outcome.reason else ""
        sys.stdout.write(
            f"Submit {start}:00 -> {outcome.status.value}{reason}: {outcome.message}\n"
        )

    sys.stdout.write("\n" + format_grid(service.get_slot_grid(doctor, DEMO_DAY)) + "\n")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Inspect availability against a seeded in-memory clinic store."
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    grid = sub.add_parser("grid", help="Print the slot grid of a resource for a day.")
    grid.add_argument("--resource", type=_parse_resource, required=True)
    grid.add_argument("--date", type=date.fromisoformat, default=DEMO_DAY)

    check = sub.add_parser("check", help="Check whether an interval is free.")
    check.add_argument("--resource", type=_parse_resource, required=True)
    check.add_argument("--start", type=_parse_instant, required=True)
    check.add_argument("--minutes", type=int, default=settings.schedule.appointment_duration_minutes)

    sub.add_parser("demo", help="Book around an existing appointment and show the grid.")

    args = parser.parse_args()
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    service = SchedulingService(build_demo_store(), clock=lambda: DEMO_NOW)
    try:
        if args.command == "grid":
            sys.stdout.write(format_grid(service.get_slot_grid(args.resource, args.date)) + "\n")
        elif args.command == "check":
            interval = Interval.from_duration(args.start, args.minutes)
            result = service.check_availability(args.resource, interval)
            verdict = "available" if result.available else "NOT available"
            sys.stdout.write(f"{args.resource} {interval}: {verdict}\n")
            for booking_id in result.conflicting_booking_ids:
                sys.stdout.write(f"  conflicts with {booking_id}\n")
        else:
            _run_demo(service)
    except SchedulingError as exc:
        logger.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
