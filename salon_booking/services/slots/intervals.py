# salon_booking/services/slots/intervals.py
"""
Interval algebra on half-open [start, end) instants.

Pure, synchronous, I/O-free. Two overlap rules live in this package:

- union() merges touching intervals (busy-window consolidation);
- Interval.overlaps() treats touching as NOT overlapping (slot conflicts),
  so back-to-back bookings are allowed.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, NamedTuple, Optional


class Interval(NamedTuple):
    start: datetime
    end: datetime

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start


class BusyKind(str, Enum):
    APPOINTMENT = "appointment"
    RESERVATION = "reservation"
    TIME_OFF = "time_off"


@dataclass(frozen=True)
class BusyWindow:
    """One blocked interval, tagged with where it came from."""
    kind: BusyKind
    interval: Interval
    source_id: Optional[int] = None


def normalize(
    windows: Iterable[Interval],
    day_start: datetime,
    day_end: datetime,
) -> list[Interval]:
    """Clip windows to [day_start, day_end), drop empty ones, sort by start."""
    out: list[Interval] = []
    for start, end in windows:
        s = max(day_start, start)
        e = min(day_end, end)
        if e > s:
            out.append(Interval(s, e))
    out.sort()
    return out


def union(intervals: Iterable[Interval]) -> list[Interval]:
    """Merge overlapping or touching intervals into a sorted disjoint list."""
    ordered = sorted(iv for iv in intervals if not iv.is_empty)
    if not ordered:
        return []

    merged: list[Interval] = []
    cur_start, cur_end = ordered[0]
    for start, end in ordered[1:]:
        if start <= cur_end:
            cur_end = max(cur_end, end)
        else:
            merged.append(Interval(cur_start, cur_end))
            cur_start, cur_end = start, end
    merged.append(Interval(cur_start, cur_end))
    return merged


def subtract(
    positives: Iterable[Interval],
    negatives: Iterable[Interval],
) -> list[Interval]:
    """
    Remove every negative interval from the positive ones.

    Negatives are expected pre-merged; unmerged or unsorted input is still
    handled correctly (it is sorted here), only with more passes.
    """
    blocks = sorted(iv for iv in negatives if not iv.is_empty)
    out: list[Interval] = []

    for p_start, p_end in positives:
        if p_end <= p_start:
            continue
        cursor = p_start
        for n_start, n_end in blocks:
            if n_end <= cursor:
                continue
            if n_start >= p_end:
                break
            if n_start > cursor:
                out.append(Interval(cursor, n_start))
            cursor = max(cursor, n_end)
            if cursor >= p_end:
                break
        if cursor < p_end:
            out.append(Interval(cursor, p_end))

    return out
