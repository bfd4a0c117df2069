"""
Half-open time interval ``[start, end)`` over timezone-aware instants.

Every overlap decision in the engine goes through ``overlaps`` so the
adjacency policy is defined in exactly one place: an interval that ends
when another begins does not overlap it, so back-to-back bookings are legal.

Usage:
    a = Interval(nine, ten)
    b = Interval(ten, eleven)
    assert not overlaps(a, b)
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from clinic_scheduler.scheduling.errors import InvalidInterval
from clinic_scheduler.utils import is_aware


@dataclass(frozen=True)
class Interval:
    """A non-empty half-open interval of aware instants."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if not isinstance(self.start, datetime) or not isinstance(self.end, datetime):
            raise InvalidInterval("Interval bounds must be datetimes")
        if not is_aware(self.start) or not is_aware(self.end):
            raise InvalidInterval(
                f"Interval bounds must be timezone-aware: {self.start!r}, {self.end!r}"
            )
        if self.start >= self.end:
            raise InvalidInterval(
                f"Interval start must be before end: {self.start.isoformat()} >= "
                f"{self.end.isoformat()}"
            )

    @classmethod
    def from_duration(cls, start: datetime, minutes: int) -> "Interval":
        return cls(start, start + timedelta(minutes=minutes))

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self, other)

    def contains(self, instant: datetime) -> bool:
        return contains(self, instant)

    def clip(self, other: "Interval") -> Optional["Interval"]:
        """Return the intersection with ``other``, or None when disjoint."""
        if not overlaps(self, other):
            return None
        return Interval(max(self.start, other.start), min(self.end, other.end))

    def __str__(self) -> str:
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"


def overlaps(a: Interval, b: Interval) -> bool:
    """True iff the half-open intervals share at least one instant."""
    return a.start < b.end and b.start < a.end


def contains(interval: Interval, instant: datetime) -> bool:
    """True iff ``instant`` falls inside the half-open interval."""
    return interval.start <= instant < interval.end
