# salon_booking/services/slots/invalidator.py
"""
Cache invalidation for month availability counts.

Triggers:
✓ Appointment committed / restored / deleted / status changed
✓ Temporary reservation created, renewed or released

Does NOT trigger:
✗ Reservation expiry (TTL of the cache is shorter than a reservation)
"""

from redis import Redis

from .redis_store import SlotsRedisStore


def invalidate_staff_cache(
    redis: Redis | None,
    staff_id: int,
) -> int:
    """
    Invalidate cached month counts for a staff member.

    Args:
        redis: Redis client, or None when caching is disabled
        staff_id: Staff ID

    Returns:
        Number of deleted cache keys
    """
    if redis is None:
        return 0
    store = SlotsRedisStore(redis)
    return store.delete_staff(staff_id)
