# backend/clinic_booking/services/slots/redis_store.py
"""
Redis storage for base candidates.

Key format: slots:base:{professional_id}:{date}:{duration}:{fingerprint}
Value: JSON {"windows": <int>, "slots": [[start_min, end_min], ...]}

Only the schedule-derived part is stored here (windows cut into slots,
breaks removed). Bookings and absences are always read live. The
fingerprint is a digest of the professional's schedule rows, so an edited
schedule or break reads a new key instead of a stale entry.
"""

import json
import logging
from datetime import date

from redis import Redis
from redis.exceptions import RedisError

from .config import BookingConfig, get_booking_config
from .generator import Slot

logger = logging.getLogger(__name__)


class SlotsRedisStore:
    """Redis storage wrapper for base candidates."""

    KEY_PREFIX = "slots:base"

    def __init__(self, redis: Redis, config: BookingConfig | None = None):
        self.redis = redis
        self.config = config or get_booking_config()

    def _key(self, professional_id: int, dt: date, duration: int, fingerprint: str) -> str:
        return f"{self.KEY_PREFIX}:{professional_id}:{dt.isoformat()}:{duration}:{fingerprint}"

    # ── Read ─────────────────────────────────────────────────────────────

    def get_base_slots(
        self,
        professional_id: int,
        dt: date,
        duration: int,
        fingerprint: str,
    ) -> tuple[int, list[Slot]] | None:
        """
        Cached (window_count, slots), or None on cache miss.

        Redis failures are treated as a miss.
        """
        try:
            raw = self.redis.get(self._key(professional_id, dt, duration, fingerprint))
        except RedisError as e:
            logger.warning(f"Slots cache read failed for professional={professional_id}: {e}")
            return None
        if raw is None:
            return None

        try:
            data = json.loads(raw)
            slots = [Slot(int(s), int(e)) for s, e in data["slots"]]
            return int(data["windows"]), slots
        except (ValueError, KeyError, TypeError):
            logger.warning(f"Discarding malformed slots cache entry for professional={professional_id}")
            return None

    # ── Write ────────────────────────────────────────────────────────────

    def store_base_slots(
        self,
        professional_id: int,
        dt: date,
        duration: int,
        fingerprint: str,
        window_count: int,
        slots: list[Slot],
    ) -> None:
        payload = json.dumps({
            "windows": window_count,
            "slots": [[s.start, s.end] for s in slots],
        })
        try:
            self.redis.setex(
                self._key(professional_id, dt, duration, fingerprint),
                self.config.cache_ttl_seconds,
                payload,
            )
        except RedisError as e:
            logger.warning(f"Slots cache write failed for professional={professional_id}: {e}")

    # ── Delete ───────────────────────────────────────────────────────────

    def delete_base_slots(
        self,
        professional_id: int,
        dates: list[date] | None = None,
    ) -> int:
        """
        Delete cached entries for a professional.

        Args:
            dates: Specific dates, or None for every cached date

        Returns:
            Number of deleted keys
        """
        if dates:
            patterns = [f"{self.KEY_PREFIX}:{professional_id}:{d.isoformat()}:*" for d in dates]
        else:
            patterns = [f"{self.KEY_PREFIX}:{professional_id}:*"]

        keys = []
        for pattern in patterns:
            keys.extend(self.redis.scan_iter(match=pattern))

        if not keys:
            return 0
        return self.redis.delete(*keys)
