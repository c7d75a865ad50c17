# backend/clinic_booking/services/slots/conflicts.py
"""
Conflict filtering for candidate slots.

Breaks use a plain half-open overlap test. Bookings are padded by the
buffer on both sides, so a candidate identical to a booking, or one ending
less than `buffer` minutes before it starts, is excluded too.
"""

from dataclasses import dataclass
from typing import Iterable, Sequence

from .generator import BreakWindow, Slot

LIVE_STATUSES = ("pending", "confirmed")


@dataclass(frozen=True)
class BookedInterval:
    """
    An occupied interval on a professional's day.

    Individual appointments and group activity occurrences share this shape;
    `kind` tells them apart.
    """
    professional_id: int
    date: str
    start: int
    end: int
    status: str = "confirmed"
    kind: str = "individual"  # individual | group
    source_id: int | None = None


def filter_slots(
    candidates: Iterable[Slot],
    breaks: Sequence[BreakWindow],
    bookings: Sequence[BookedInterval],
    buffer: int = 5,
) -> list[Slot]:
    """
    Drop candidates that hit a break or a buffered booking.

    Inactive breaks are ignored. Bookings are taken as given: callers pass
    only live intervals.
    """
    active_breaks = [b for b in breaks if b.is_active]
    result = []
    for slot in candidates:
        if any(slot.overlaps(b.start, b.end) for b in active_breaks):
            continue
        if any(slot.overlaps(bk.start, bk.end, buffer) for bk in bookings):
            continue
        result.append(slot)
    return result


def remove_breaks(candidates: Iterable[Slot], breaks: Sequence[BreakWindow]) -> list[Slot]:
    """Break-only pass (the schedule-derived part, safe to cache)."""
    return filter_slots(candidates, breaks, (), buffer=0)


def find_conflicts(
    start: int,
    end: int,
    bookings: Iterable[BookedInterval],
    buffer: int = 0,
) -> list[BookedInterval]:
    """Intervals overlapping [start, end) once padded by `buffer`."""
    return [
        bk for bk in bookings
        if bk.start < end + buffer and bk.end + buffer > start
    ]
