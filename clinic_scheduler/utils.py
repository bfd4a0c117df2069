"""Shared time helpers used across the scheduler."""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Timezone-aware current time. Injected as the default clock."""
    return datetime.now(timezone.utc)


def is_aware(value: datetime) -> bool:
    return value.tzinfo is not None and value.tzinfo.utcoffset(value) is not None


def local_datetime(day: date, hour: int, tz_name: str, minute: int = 0) -> datetime:
    """Build an aware instant for ``hour:minute`` on ``day`` in ``tz_name``.

    Hour 24 means midnight at the end of ``day``.

    Examples:
        >>> local_datetime(date(2024, 6, 1), 7, "UTC").isoformat()
        '2024-06-01T07:00:00+00:00'
        >>> local_datetime(date(2024, 6, 1), 24, "UTC").isoformat()
        '2024-06-02T00:00:00+00:00'
    """
    tz = ZoneInfo(tz_name)
    if hour == 24:
        return datetime.combine(day + timedelta(days=1), time(0, minute), tzinfo=tz)
    return datetime.combine(day, time(hour, minute), tzinfo=tz)
