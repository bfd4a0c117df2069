"""
Hand-off point to notification collaborators (WhatsApp links, email).

Dispatch itself lives outside this service; the scheduler only tells a
``Notifier`` that a booking was committed, moved or cancelled.
"""

import logging
from typing import Protocol

from clinic_scheduler.schemas.booking_schema import BookingRecord

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def booking_committed(self, booking: BookingRecord) -> None: ...

    def booking_rescheduled(self, booking: BookingRecord) -> None: ...

    def booking_cancelled(self, booking: BookingRecord) -> None: ...


class LoggingNotifier:
    """Default notifier: records the events in the application log."""

    def booking_committed(self, booking: BookingRecord) -> None:
        logger.info(
            "Notify: booking %s committed for %s at %s",
            booking.id, booking.resource, booking.start.isoformat(),
        )

    def booking_rescheduled(self, booking: BookingRecord) -> None:
        logger.info(
            "Notify: booking %s moved to %s", booking.id, booking.start.isoformat()
        )

    def booking_cancelled(self, booking: BookingRecord) -> None:
        logger.info(
            "Notify: booking %s cancelled (%s)", booking.id, booking.cancellation_reason
        )


class RecordingNotifier:
    """Keeps events in memory. Handy for demos and tests."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def booking_committed(self, booking: BookingRecord) -> None:
        self.events.append(("committed", booking.id))

    def booking_rescheduled(self, booking: BookingRecord) -> None:
        self.events.append(("rescheduled", booking.id))

    def booking_cancelled(self, booking: BookingRecord) -> None:
        self.events.append(("cancelled", booking.id))
