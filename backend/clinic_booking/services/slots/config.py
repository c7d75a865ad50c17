# backend/clinic_booking/services/slots/config.py
"""
Booking configuration and time helpers for slots calculation.

Times of day are handled as minutes since midnight internally and as
"HH:MM" strings at the storage and API boundaries.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from functools import lru_cache

from ...exceptions import ValidationError

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the availability/booking engine.

    Attributes:
        buffer_minutes: Minimum gap kept around existing bookings
        recheck_with_buffer: Apply buffer_minutes in the commit-time recheck too
        past_cutoff_minutes: Today's slots starting before now + cutoff are hidden
        timezone: Clinic timezone used to decide what "today" and "now" are
        cache_ttl_seconds: Redis TTL for cached base candidates
    """
    buffer_minutes: int = 5
    recheck_with_buffer: bool = True
    past_cutoff_minutes: int = 5
    timezone: str = "Europe/Madrid"
    cache_ttl_seconds: int = 300  # 5 minutes

    def __post_init__(self):
        """Validate configuration."""
        if self.buffer_minutes < 0:
            raise ValueError(f"buffer_minutes must be >= 0, got {self.buffer_minutes}")
        if self.past_cutoff_minutes < 0:
            raise ValueError(f"past_cutoff_minutes must be >= 0, got {self.past_cutoff_minutes}")

    @property
    def recheck_buffer_minutes(self) -> int:
        return self.buffer_minutes if self.recheck_with_buffer else 0


@lru_cache
def get_booking_config() -> BookingConfig:
    """Booking configuration built from process settings (singleton)."""
    from ...config import settings

    return BookingConfig(
        buffer_minutes=settings.booking_buffer_minutes,
        recheck_with_buffer=settings.recheck_with_buffer,
        past_cutoff_minutes=settings.past_cutoff_minutes,
        timezone=settings.clinic_timezone,
        cache_ttl_seconds=settings.slots_cache_ttl_seconds,
    )


# ── Time helpers ─────────────────────────────────────────────────────────


def time_str_to_minutes(value: str) -> int:
    """
    Convert "HH:MM" (or "HH:MM:SS") to minutes since midnight.

    "24:00" is accepted as end of day. Seconds are ignored.
    """
    match = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Invalid time: {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59 or hours > 24 or (hours == 24 and minutes):
        raise ValidationError(f"Invalid time: {value!r}")
    return hours * 60 + minutes


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def schedule_weekday(value: date) -> int:
    """Stored day_of_week of a date: 0 = Sunday, 1 = Monday .. 6 = Saturday."""
    return (value.weekday() + 1) % 7


def parse_date(value) -> date:
    """Parse an ISO "YYYY-MM-DD" string (dates pass through)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}, expected YYYY-MM-DD")
