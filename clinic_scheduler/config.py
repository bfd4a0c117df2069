"""
Centralized configuration with environment variable overrides.

Schedule windows, commit-protocol timeouts, payment defaults and the
active booking status set are configurable here. Nothing is hardcoded in
the scheduling or store logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from clinic_scheduler.logging_context import install_attempt_id_filter

load_dotenv()

logger = logging.getLogger(__name__)

# Statuses that can never occupy a resource, whatever the configuration says.
NON_OCCUPYING_STATUSES = frozenset({"cancelled", "no_show"})
KNOWN_STATUSES = frozenset(
    {"scheduled", "confirmed", "checked_in", "in_progress", "completed"}
) | NON_OCCUPYING_STATUSES


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


def _csv(env_var: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(env_var, default)
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class ScheduleConfig:
    """Day grid and working-hours settings."""

    day_start_hour: int = _safe_int("DAY_START_HOUR", "7")
    day_end_hour: int = _safe_int("DAY_END_HOUR", "19")
    slot_minutes: int = _safe_int("SLOT_MINUTES", "60")
    timezone: str = os.getenv("CLINIC_TIMEZONE", "UTC")
    appointment_duration_minutes: int = _safe_int("APPOINTMENT_DURATION_MINUTES", "60")
    working_hours_start: int = _safe_int("WORKING_HOURS_START", "7")
    working_hours_end: int = _safe_int("WORKING_HOURS_END", "21")


@dataclass(frozen=True)
class BookingConfig:
    """Commit protocol, payment and cancellation policy."""

    commit_timeout_sec: float = _safe_float("COMMIT_TIMEOUT_SECONDS", "5.0")
    payment_link_retries: int = _safe_int("PAYMENT_LINK_RETRIES", "1")
    orphan_grace_minutes: int = _safe_int("ORPHAN_GRACE_MINUTES", "15")
    min_cancellation_hours: float = _safe_float("MIN_CANCELLATION_HOURS", "3")
    currency: str = os.getenv("PAYMENT_CURRENCY", "COP")
    default_room_hourly_rate: int = _safe_int("DEFAULT_ROOM_HOURLY_RATE", "50000")
    require_room_for_in_person: bool = _safe_bool("REQUIRE_ROOM_FOR_IN_PERSON", "false")
    active_statuses: tuple[str, ...] = _csv(
        "ACTIVE_BOOKING_STATUSES",
        "scheduled,confirmed,checked_in,in_progress,completed",
    )


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    booking: BookingConfig = field(default_factory=BookingConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "clinic-scheduler")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    schedule = config.schedule
    for name, hour in [
        ("DAY_START_HOUR", schedule.day_start_hour),
        ("DAY_END_HOUR", schedule.day_end_hour),
        ("WORKING_HOURS_START", schedule.working_hours_start),
        ("WORKING_HOURS_END", schedule.working_hours_end),
    ]:
        if not 0 <= hour <= 24:
            raise ValueError(f"{name} must be between 0 and 24, got {hour}")

    if schedule.day_end_hour <= schedule.day_start_hour:
        raise ValueError(
            "DAY_END_HOUR must be after DAY_START_HOUR, "
            f"got {schedule.day_start_hour}-{schedule.day_end_hour}"
        )
    if schedule.working_hours_end <= schedule.working_hours_start:
        raise ValueError(
            "WORKING_HOURS_END must be after WORKING_HOURS_START, "
            f"got {schedule.working_hours_start}-{schedule.working_hours_end}"
        )
    if schedule.slot_minutes < 1:
        raise ValueError(f"SLOT_MINUTES must be >= 1, got {schedule.slot_minutes}")
    if schedule.appointment_duration_minutes < 1:
        raise ValueError(
            "APPOINTMENT_DURATION_MINUTES must be >= 1, "
            f"got {schedule.appointment_duration_minutes}"
        )

    booking = config.booking
    if booking.commit_timeout_sec <= 0:
        raise ValueError(
            f"COMMIT_TIMEOUT_SECONDS must be > 0, got {booking.commit_timeout_sec}"
        )
    if booking.payment_link_retries < 0:
        raise ValueError(
            f"PAYMENT_LINK_RETRIES must be >= 0, got {booking.payment_link_retries}"
        )
    if booking.orphan_grace_minutes < 0:
        raise ValueError(
            f"ORPHAN_GRACE_MINUTES must be >= 0, got {booking.orphan_grace_minutes}"
        )
    if booking.min_cancellation_hours < 0:
        raise ValueError(
            f"MIN_CANCELLATION_HOURS must be >= 0, got {booking.min_cancellation_hours}"
        )
    if booking.default_room_hourly_rate < 0:
        raise ValueError(
            "DEFAULT_ROOM_HOURLY_RATE must be >= 0, "
            f"got {booking.default_room_hourly_rate}"
        )

    if not booking.active_statuses:
        raise ValueError("ACTIVE_BOOKING_STATUSES must name at least one status")
    unknown = set(booking.active_statuses) - KNOWN_STATUSES
    if unknown:
        raise ValueError(f"ACTIVE_BOOKING_STATUSES has unknown statuses: {sorted(unknown)}")
    blocked = set(booking.active_statuses) & NON_OCCUPYING_STATUSES
    if blocked:
        raise ValueError(
            f"ACTIVE_BOOKING_STATUSES cannot include {sorted(blocked)}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s [%(attempt_id)s]: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_attempt_id_filter()
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()
