# salon_booking/services/slots/config.py
"""
Booking configuration for availability and reservations.
"""

from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from ...config import settings


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the slots / booking core.

    Attributes:
        slot_step_minutes: Grid step; None means "step = requested duration"
        lead_time_minutes: Day view: earliest start on the current day is now + this
        today_buffer_minutes: Month view: today's slots earlier than now + this are not counted
        booking_lead_time_minutes: Commit rejects starts earlier than now + this (0 = off)
        rest_buffer_minutes: Busy appointments are extended by this before overlap checks
        reservation_ttl_seconds: Lifetime of a temporary slot hold
        month_cache_ttl_seconds: Redis TTL for cached month counts
    """
    slot_step_minutes: int | None = None
    lead_time_minutes: int = 0
    today_buffer_minutes: int = 60
    booking_lead_time_minutes: int = 0
    rest_buffer_minutes: int = 0
    reservation_ttl_seconds: int = 300
    month_cache_ttl_seconds: int = 30

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes is not None and self.slot_step_minutes <= 0:
            raise ValueError(f"slot_step_minutes must be positive, got {self.slot_step_minutes}")
        for name in (
            "lead_time_minutes",
            "today_buffer_minutes",
            "booking_lead_time_minutes",
            "rest_buffer_minutes",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.reservation_ttl_seconds <= 0:
            raise ValueError("reservation_ttl_seconds must be positive")

    def step_for(self, duration_min: int) -> timedelta:
        """Grid step for a requested duration."""
        return timedelta(minutes=self.slot_step_minutes or duration_min)

    @property
    def lead_time(self) -> timedelta:
        return timedelta(minutes=self.lead_time_minutes)

    @property
    def today_buffer(self) -> timedelta:
        return timedelta(minutes=self.today_buffer_minutes)

    @property
    def booking_lead_time(self) -> timedelta:
        return timedelta(minutes=self.booking_lead_time_minutes)

    @property
    def rest_buffer(self) -> timedelta:
        return timedelta(minutes=self.rest_buffer_minutes)

    @property
    def reservation_ttl(self) -> timedelta:
        return timedelta(seconds=self.reservation_ttl_seconds)


@lru_cache
def get_booking_config() -> BookingConfig:
    """Get booking configuration (singleton), read from settings."""
    return BookingConfig(
        slot_step_minutes=settings.slot_step_min,
        lead_time_minutes=settings.lead_time_min,
        today_buffer_minutes=settings.today_buffer_min,
        booking_lead_time_minutes=settings.booking_lead_time_min,
        rest_buffer_minutes=settings.rest_buffer_min,
        reservation_ttl_seconds=settings.reservation_ttl_sec,
        month_cache_ttl_seconds=settings.month_cache_ttl_sec,
    )
