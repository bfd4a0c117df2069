"""
Fixed-width availability grid for one resource over one day.

Every slot starts free; any active booking overlapping a slot marks the
whole slot occupied, however small the overlap. Slots are never merged.
Grids are rebuilt from a fresh store read on every call.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional

from clinic_scheduler.config import settings
from clinic_scheduler.scheduling.errors import InvalidRange, ResourceLookupFailed
from clinic_scheduler.scheduling.interval import Interval, overlaps
from clinic_scheduler.scheduling.status import is_active
from clinic_scheduler.schemas.booking_schema import BookingRecord, Slot, SlotGrid
from clinic_scheduler.schemas.resource_schema import Resource
from clinic_scheduler.store.base import BookingStore
from clinic_scheduler.utils import local_datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotGridConfig:
    """Day window and slot width, expressed in the clinic's display timezone."""

    day_start_hour: int = field(default_factory=lambda: settings.schedule.day_start_hour)
    day_end_hour: int = field(default_factory=lambda: settings.schedule.day_end_hour)
    slot_minutes: int = field(default_factory=lambda: settings.schedule.slot_minutes)
    timezone: str = field(default_factory=lambda: settings.schedule.timezone)

    def validate(self) -> None:
        if not 0 <= self.day_start_hour <= 24 or not 0 <= self.day_end_hour <= 24:
            raise InvalidRange(
                f"Day hours must be within 0-24, got {self.day_start_hour}-{self.day_end_hour}"
            )
        if self.day_end_hour <= self.day_start_hour:
            raise InvalidRange(
                f"Day end ({self.day_end_hour}) must be after day start ({self.day_start_hour})"
            )
        if self.slot_minutes <= 0:
            raise InvalidRange(f"Slot width must be positive, got {self.slot_minutes}")

    def day_interval(self, day: date) -> Interval:
        return Interval(
            local_datetime(day, self.day_start_hour, self.timezone),
            local_datetime(day, self.day_end_hour, self.timezone),
        )


def slot_intervals(day: date, config: SlotGridConfig) -> list[Interval]:
    """Consecutive slot intervals covering the configured day window."""
    config.validate()
    window = config.day_interval(day)
    width = timedelta(minutes=config.slot_minutes)
    intervals = []
    cursor = window.start
    while cursor < window.end:
        intervals.append(Interval(cursor, min(cursor + width, window.end)))
        cursor += width
    return intervals


def build_slot_grid(
    resource: Resource,
    day: date,
    bookings: Iterable[BookingRecord],
    config: SlotGridConfig,
) -> SlotGrid:
    """
    Compute the grid from a snapshot of bookings.

    Inactive bookings and bookings for other timelines are ignored, so
    callers may pass an unfiltered list.
    """
    blocking = [
        b.interval for b in bookings
        if is_active(b.status) and b.occupies(resource)
    ]
    slots = [
        Slot(
            start=interval.start,
            end=interval.end,
            is_available=not any(overlaps(interval, busy) for busy in blocking),
        )
        for interval in slot_intervals(day, config)
    ]
    return SlotGrid(
        resource_kind=resource.kind,
        resource_id=resource.resource_id,
        day=day,
        slots=slots,
    )


class SlotGridGenerator:
    """Builds grids from fresh store reads."""

    def __init__(self, store: BookingStore) -> None:
        self._store = store

    def get_slot_grid(
        self, resource: Resource, day: date, config: Optional[SlotGridConfig] = None
    ) -> SlotGrid:
        """
        Build the day grid for ``resource``.

        Raises:
            InvalidRange: If the grid configuration is malformed.
            ResourceLookupFailed: If the resource does not exist.
        """
        config = config or SlotGridConfig()
        config.validate()
        if not self._store.resource_exists(resource):
            raise ResourceLookupFailed(resource)

        window = config.day_interval(day)
        bookings = self._store.query_active_bookings(
            resource.kind, resource.resource_id, window
        )
        grid = build_slot_grid(resource, day, bookings, config)
        logger.debug(
            "Slot grid for %s on %s: %d/%d occupied",
            resource, day, grid.occupied_count, len(grid.slots),
        )
        return grid
