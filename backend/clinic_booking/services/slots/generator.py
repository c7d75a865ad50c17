# backend/clinic_booking/services/slots/generator.py
"""
Candidate slot generation.

A schedule window is cut into back-to-back slots of exactly the service
duration, starting at the window start. A trailing remainder shorter than
the duration is dropped.
"""

from dataclasses import dataclass, field

from .config import minutes_to_time_str


@dataclass(frozen=True, order=True)
class Slot:
    """Half-open [start, end) window, in minutes since midnight."""
    start: int
    end: int

    @property
    def start_time(self) -> str:
        return minutes_to_time_str(self.start)

    @property
    def end_time(self) -> str:
        return minutes_to_time_str(self.end)

    @property
    def label(self) -> str:
        return f"{self.start_time}-{self.end_time}"

    def overlaps(self, start: int, end: int, padding: int = 0) -> bool:
        return self.start < end + padding and self.end + padding > start


@dataclass(frozen=True)
class BreakWindow:
    start: int
    end: int
    is_active: bool = True
    name: str | None = None


@dataclass(frozen=True)
class ScheduleWindow:
    professional_id: int
    start: int
    end: int
    id: int | None = None
    weekday: int | None = None
    is_active: bool = True
    breaks: tuple[BreakWindow, ...] = field(default_factory=tuple)


def generate(window: ScheduleWindow, duration: int) -> list[Slot]:
    """
    Generate candidate slots for a schedule window.

    Args:
        window: Schedule window to cut
        duration: Service duration in minutes (must be > 0)

    Returns:
        Slots [t, t+duration) for t = start, start+duration, ... while
        t + duration <= window.end
    """
    if duration <= 0:
        raise ValueError(f"duration must be positive, got {duration}")

    slots: list[Slot] = []
    t = window.start
    while t + duration <= window.end:
        slots.append(Slot(t, t + duration))
        t += duration
    return slots
