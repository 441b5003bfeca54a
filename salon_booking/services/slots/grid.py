# salon_booking/services/slots/grid.py
"""
Slot grid: allowed intervals → discrete candidate starts.

A start t is offered when:
- t is on the step grid anchored at the local day start (ceiling rounding),
- t >= max(allowed.start, earliest),
- t + duration <= allowed.end.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from ...errors import ValidationError
from .intervals import Interval


def align_up(instant: datetime, origin: datetime, step: timedelta) -> datetime:
    """Round instant up to the next point of the step grid anchored at origin."""
    offset = instant - origin
    steps = -((-offset) // step)
    return origin + steps * step


def slot_starts(
    allowed: Interval,
    day_start: datetime,
    duration: timedelta,
    step: timedelta,
    earliest: Optional[datetime] = None,
) -> list[datetime]:
    """Ascending candidate starts inside one allowed interval."""
    if duration <= timedelta(0):
        raise ValidationError("Duration must be positive")
    if step <= timedelta(0):
        raise ValidationError("Step must be positive")

    lower = allowed.start if earliest is None else max(allowed.start, earliest)
    t = align_up(lower, day_start, step)

    starts: list[datetime] = []
    while t + duration <= allowed.end:
        starts.append(t)
        t += step
    return starts


def generate_slots(
    allowed: Iterable[Interval],
    day_start: datetime,
    duration: timedelta,
    step: timedelta,
    earliest: Optional[datetime] = None,
) -> list[Interval]:
    """Slots [t, t + duration) over every allowed sub-interval."""
    slots: list[Interval] = []
    for window in allowed:
        for t in slot_starts(window, day_start, duration, step, earliest):
            slots.append(Interval(t, t + duration))
    return slots
