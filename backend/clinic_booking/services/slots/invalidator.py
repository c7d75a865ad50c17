# backend/clinic_booking/services/slots/invalidator.py
"""
Cache invalidation for base candidates.

Triggers:
✓ Work schedule or break changed → invalidate all dates of the professional
✓ Exception schedule created/deleted → invalidate that date

Does NOT trigger:
✗ Booking created/cancelled (read live)
✗ Vacation approved/rejected (read live)
"""

from datetime import date

from redis import Redis

from .redis_store import SlotsRedisStore


def invalidate_professional_cache(
    redis: Redis,
    professional_id: int,
    dates: list[date] | None = None,
) -> int:
    """
    Invalidate cached base candidates for a professional.

    Returns:
        Number of deleted cache keys
    """
    store = SlotsRedisStore(redis)
    return store.delete_base_slots(professional_id, dates)
