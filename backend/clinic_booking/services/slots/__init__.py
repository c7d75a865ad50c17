# backend/clinic_booking/services/slots/__init__.py
"""
Slots calculation module.

Base candidates: work windows cut into slots, breaks removed (cacheable in Redis)
Availability: base candidates minus absences and buffered bookings (always live)
"""

from .config import BookingConfig, get_booking_config
from .generator import BreakWindow, ScheduleWindow, Slot, generate
from .conflicts import BookedInterval, filter_slots, find_conflicts
from .redis_store import SlotsRedisStore
from .invalidator import invalidate_professional_cache
from .availability import AnyAvailabilityResult, AvailabilityResult, AvailabilityService, ProfessionalSlot

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "BreakWindow",
    "ScheduleWindow",
    "Slot",
    "generate",
    "BookedInterval",
    "filter_slots",
    "find_conflicts",
    "SlotsRedisStore",
    "invalidate_professional_cache",
    "AnyAvailabilityResult",
    "AvailabilityResult",
    "AvailabilityService",
    "ProfessionalSlot",
]
