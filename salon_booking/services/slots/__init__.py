# salon_booking/services/slots/__init__.py
"""
Slots calculation module.

Pure core: intervals (algebra) + grid (discretization).
Query layer: availability (loads busy sources, day and month views).
Month counts are optionally cached in Redis hashes.
"""

from .config import BookingConfig, get_booking_config
from .clock import OrgClock, get_org_clock
from .intervals import BusyKind, BusyWindow, Interval, normalize, subtract, union
from .grid import align_up, generate_slots, slot_starts
from .redis_store import SlotsRedisStore
from .invalidator import invalidate_staff_cache
from .availability import (
    DurationResolution,
    compute_day_slots,
    day_availability,
    free_slot_counts_for_month,
    free_slots_for_day,
    month_availability,
    resolve_duration,
)

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "OrgClock",
    "get_org_clock",
    "BusyKind",
    "BusyWindow",
    "Interval",
    "normalize",
    "subtract",
    "union",
    "align_up",
    "generate_slots",
    "slot_starts",
    "SlotsRedisStore",
    "invalidate_staff_cache",
    "DurationResolution",
    "compute_day_slots",
    "day_availability",
    "free_slot_counts_for_month",
    "free_slots_for_day",
    "month_availability",
    "resolve_duration",
]
