# salon_booking/services/slots/clock.py
"""
Organization clock: the only place wall-clock minutes become instants.

Working hours and time-off are stored as minutes from local midnight
in the organization time zone. Everything past this module works on
aware UTC instants, so interval arithmetic never sees a time zone.
"""

from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from ...config import settings

MINUTES_PER_DAY = 24 * 60


class OrgClock:
    """Wall-clock ↔ instant conversion for one fixed time zone."""

    def __init__(self, tz: str, now: Optional[Callable[[], datetime]] = None):
        self.zone = ZoneInfo(tz)
        self._now = now

    def now(self) -> datetime:
        """Current instant (aware, UTC)."""
        if self._now is not None:
            return self._now().astimezone(timezone.utc)
        return datetime.now(timezone.utc)

    def today(self) -> date:
        """Current org-local calendar date."""
        return self.local_date(self.now())

    def local_date(self, instant: datetime) -> date:
        return instant.astimezone(self.zone).date()

    def wall_to_instant(self, day: date, minutes: int) -> datetime:
        """
        Local wall clock (day + minutes from midnight) → UTC instant.

        minutes == 1440 is the next local midnight.
        """
        if minutes == MINUTES_PER_DAY:
            day, minutes = day + timedelta(days=1), 0
        local = datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=self.zone)
        return local.astimezone(timezone.utc)

    def day_range(self, day: date) -> tuple[datetime, datetime]:
        """[local midnight, next local midnight) as UTC instants."""
        return self.wall_to_instant(day, 0), self.wall_to_instant(day, MINUTES_PER_DAY)

    @staticmethod
    def weekday(day: date) -> int:
        """0 = Sunday … 6 = Saturday."""
        return day.isoweekday() % 7


@lru_cache
def get_org_clock() -> OrgClock:
    """Get the organization clock (singleton)."""
    return OrgClock(settings.org_tz)
