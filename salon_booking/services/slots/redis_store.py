# salon_booking/services/slots/redis_store.py
"""
Redis cache for month availability counts.

Key format: slots:month:{staff_id}:{YYYY-MM}:{duration_min}
Value: Hash where field = "YYYY-MM-DD", value = free slot count.

Entries live month_cache_ttl_seconds and are dropped on every write
(booking, reservation) for the staff member. A stale read is harmless:
the write path always re-validates under the staff lock.
"""

import logging

from redis import Redis
from redis.exceptions import RedisError

from .config import BookingConfig, get_booking_config

logger = logging.getLogger(__name__)


class SlotsRedisStore:
    """Redis storage wrapper for per-day slot counts of a month."""

    KEY_PREFIX = "slots:month"

    def __init__(self, redis: Redis, config: BookingConfig | None = None):
        self.redis = redis
        self.config = config or get_booking_config()

    def _key(self, staff_id: int, month: str, duration_min: int) -> str:
        return f"{self.KEY_PREFIX}:{staff_id}:{month}:{duration_min}"

    # ── Write ────────────────────────────────────────────────────────────

    def store_month_counts(
        self,
        staff_id: int,
        month: str,
        duration_min: int,
        counts: dict[str, int],
    ) -> None:
        """Replace cached counts for a month."""
        if not counts:
            return

        key = self._key(staff_id, month, duration_min)
        try:
            pipe = self.redis.pipeline()
            pipe.delete(key)
            pipe.hset(key, mapping=counts)
            pipe.expire(key, self.config.month_cache_ttl_seconds)
            pipe.execute()
        except RedisError as e:
            logger.warning(f"Failed to cache month counts {key}: {e}")

    # ── Read ─────────────────────────────────────────────────────────────

    def get_month_counts(
        self,
        staff_id: int,
        month: str,
        duration_min: int,
    ) -> dict[str, int] | None:
        """
        Get cached counts.

        Returns:
            Dict date_iso → count, or None on cache miss / Redis failure.
        """
        key = self._key(staff_id, month, duration_min)
        try:
            raw = self.redis.hgetall(key)
        except RedisError as e:
            logger.warning(f"Month counts cache read failed {key}: {e}")
            return None

        if not raw:
            return None

        return {
            (k.decode() if isinstance(k, bytes) else k): int(v)
            for k, v in sorted(raw.items())
        }

    # ── Delete ───────────────────────────────────────────────────────────

    def delete_staff(self, staff_id: int) -> int:
        """
        Drop every cached month for a staff member.

        Returns:
            Number of deleted keys.
        """
        pattern = f"{self.KEY_PREFIX}:{staff_id}:*"
        try:
            keys = list(self.redis.scan_iter(pattern))
            if not keys:
                return 0
            return self.redis.delete(*keys)
        except RedisError as e:
            logger.warning(f"Failed to invalidate month counts for staff {staff_id}: {e}")
            return 0
