"""
Point availability check: is a resource free for a proposed interval?

Advisory only. Two callers can both see a slot as free before either
commits; the store's atomic create closes that race (see resolver.py).
"""

import logging
from datetime import timedelta
from typing import Optional

from clinic_scheduler.scheduling.errors import ResourceLookupFailed
from clinic_scheduler.scheduling.interval import Interval, overlaps
from clinic_scheduler.scheduling.status import is_active
from clinic_scheduler.schemas.booking_schema import AvailabilityResponse, BookingRecord
from clinic_scheduler.schemas.resource_schema import Resource
from clinic_scheduler.store.base import BookingStore

logger = logging.getLogger(__name__)

# Pre-filter margin around the proposed interval. Narrows the read only.
PREFILTER_MARGIN = timedelta(days=1)


class AvailabilityChecker:
    """Read-only overlap check against a store snapshot."""

    def __init__(self, store: BookingStore) -> None:
        self._store = store

    def conflicts(
        self,
        resource: Resource,
        interval: Interval,
        exclude_booking_id: Optional[str] = None,
    ) -> list[BookingRecord]:
        """Return the active bookings that overlap ``interval`` on ``resource``."""
        if not self._store.resource_exists(resource):
            raise ResourceLookupFailed(resource)

        window = Interval(interval.start - PREFILTER_MARGIN, interval.end + PREFILTER_MARGIN)
        candidates = self._store.query_active_bookings(
            resource.kind, resource.resource_id, window
        )
        return [
            b for b in candidates
            if b.id != exclude_booking_id
            and is_active(b.status)
            and overlaps(b.interval, interval)
        ]

    def is_available(
        self,
        resource: Resource,
        interval: Interval,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        """
        True iff no active booking on ``resource`` overlaps ``interval``.

        Args:
            exclude_booking_id: Booking to ignore, for reschedule flows.

        Raises:
            ResourceLookupFailed: If the resource does not exist.
        """
        found = self.conflicts(resource, interval, exclude_booking_id)
        if found:
            logger.debug(
                "%s busy for %s (conflicts: %s)",
                resource, interval, [b.id for b in found],
            )
        return not found

    def check(
        self,
        resource: Resource,
        interval: Interval,
        exclude_booking_id: Optional[str] = None,
    ) -> AvailabilityResponse:
        """Availability plus the ids of the conflicting bookings."""
        found = self.conflicts(resource, interval, exclude_booking_id)
        return AvailabilityResponse(
            available=not found,
            resource_kind=resource.kind,
            resource_id=resource.resource_id,
            start=interval.start,
            end=interval.end,
            conflicting_booking_ids=[b.id for b in found],
        )
