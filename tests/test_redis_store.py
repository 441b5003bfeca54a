"""
Tests for the month counts Redis cache.
"""

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from salon_booking.services.slots.config import BookingConfig
from salon_booking.services.slots.invalidator import invalidate_staff_cache
from salon_booking.services.slots.redis_store import SlotsRedisStore


@pytest.fixture
def redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def store(redis):
    return SlotsRedisStore(redis, BookingConfig(month_cache_ttl_seconds=30))


class BrokenRedis:
    """Every command fails like an unreachable server."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise RedisConnectionError("connection refused")
        return fail


class TestSlotsRedisStore:
    def test_store_and_read(self, store, redis):
        store.store_month_counts(1, "2030-06", 30, {"2030-06-03": 18, "2030-06-04": 0})

        assert store.get_month_counts(1, "2030-06", 30) == {"2030-06-03": 18, "2030-06-04": 0}
        assert 0 < redis.ttl("slots:month:1:2030-06:30") <= 30

    def test_duration_is_part_of_key(self, store):
        store.store_month_counts(1, "2030-06", 30, {"2030-06-03": 18})

        assert store.get_month_counts(1, "2030-06", 60) is None

    def test_miss(self, store):
        assert store.get_month_counts(1, "2030-06", 30) is None

    def test_delete_staff_only_touches_that_staff(self, store, redis):
        store.store_month_counts(1, "2030-06", 30, {"2030-06-03": 18})
        store.store_month_counts(1, "2030-07", 30, {"2030-07-01": 18})
        store.store_month_counts(2, "2030-06", 30, {"2030-06-03": 18})

        assert invalidate_staff_cache(redis, 1) == 2
        assert store.get_month_counts(2, "2030-06", 30) == {"2030-06-03": 18}

    def test_invalidate_without_redis(self):
        assert invalidate_staff_cache(None, 1) == 0

    def test_redis_failure_fails_open(self):
        store = SlotsRedisStore(BrokenRedis(), BookingConfig())

        store.store_month_counts(1, "2030-06", 30, {"2030-06-03": 18})
        assert store.get_month_counts(1, "2030-06", 30) is None
        assert store.delete_staff(1) == 0
