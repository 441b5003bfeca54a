# salon_booking/services/slots/availability.py
"""
Availability query service.

Calculates bookable slots for one staff member and a requested duration.

Takes into account:
- Staff working hours for the weekday (absent / closed row = closed day)
- Time-off on the date (staff-specific and org-wide)
- PENDING / CONFIRMED appointments (end extended by the rest buffer)
- Live temporary reservations (expires_at > now)

All sources become BusyWindow values, are unioned, subtracted from the
working window and discretized by the slot grid. Read path only: no locks,
brief staleness is acceptable because commits re-check under the lock.
"""

import calendar
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from redis import Redis
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...errors import NotFoundError, ValidationError
from ...models.tables import (
    BUSY_STATUSES,
    Appointments,
    Services,
    Staff,
    TemporarySlotReservations,
    TimeOff,
    WorkingHours,
    t_staff_services,
)
from .clock import OrgClock, get_org_clock
from .config import BookingConfig, get_booking_config
from .grid import generate_slots
from .intervals import BusyKind, BusyWindow, Interval, normalize, subtract, union
from .redis_store import SlotsRedisStore

logger = logging.getLogger(__name__)

MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True)
class DurationResolution:
    """Total duration of a request and whether one staff can serve it."""
    total_min: int
    split_required: bool = False


# ── Pure engine ──────────────────────────────────────────────────────────


def compute_day_slots(
    working: Optional[Interval],
    busy: Iterable[BusyWindow],
    day_start: datetime,
    day_end: datetime,
    duration: timedelta,
    step: timedelta,
    earliest: Optional[datetime] = None,
) -> list[Interval]:
    """
    Free slots of one day.

    working minus union(busy), clipped to the day, then discretized.
    """
    if working is None:
        return []

    work = normalize([working], day_start, day_end)
    blocked = union(normalize((b.interval for b in busy), day_start, day_end))
    allowed = subtract(work, blocked)
    return generate_slots(allowed, day_start, duration, step, earliest)


def working_window(
    row: Optional[WorkingHours],
    day: date,
    clock: OrgClock,
) -> Optional[Interval]:
    """Working hours row → one absolute window, or None if closed."""
    if row is None or row.is_closed:
        return None
    if row.start_minutes >= row.end_minutes:
        return None
    return Interval(
        clock.wall_to_instant(day, row.start_minutes),
        clock.wall_to_instant(day, row.end_minutes),
    )


# ── Day view ─────────────────────────────────────────────────────────────


def free_slots_for_day(
    db: Session,
    staff_id: int,
    duration_min: int,
    target_date: date,
    *,
    config: BookingConfig | None = None,
    clock: OrgClock | None = None,
    exclude_session_id: Optional[str] = None,
) -> list[Interval]:
    """
    Free slots for a staff member on a date.

    Args:
        exclude_session_id: Reservation of this session is not treated as busy
            (lets a client see the slot it is currently holding).

    Returns:
        Ascending slots [start, start + duration). Empty list = no slots.
    """
    config = config or get_booking_config()
    clock = clock or get_org_clock()
    _require_positive_duration(duration_min)
    _get_staff(db, staff_id)

    now = clock.now()
    today = clock.today()
    if target_date < today:
        return []

    day_start, day_end = clock.day_range(target_date)

    try:
        row = (
            db.query(WorkingHours)
            .filter(
                WorkingHours.staff_id == staff_id,
                WorkingHours.weekday == clock.weekday(target_date),
            )
            .first()
        )
        working = working_window(row, target_date, clock)
        if working is None:
            return []

        busy = load_busy_windows(
            db,
            staff_id,
            day_start,
            day_end,
            target_date,
            target_date,
            clock=clock,
            now=now,
            rest_buffer=config.rest_buffer,
            exclude_session_id=exclude_session_id,
        )
    except SQLAlchemyError:
        logger.exception(
            f"Availability lookup failed for staff {staff_id} on {target_date}, "
            f"returning no slots"
        )
        return []

    # Lead time only constrains the current day
    earliest = now + config.lead_time if target_date == today else None

    return compute_day_slots(
        working,
        busy,
        day_start,
        day_end,
        timedelta(minutes=duration_min),
        config.step_for(duration_min),
        earliest,
    )


# ── Month view ───────────────────────────────────────────────────────────


def free_slot_counts_for_month(
    db: Session,
    staff_id: int,
    duration_min: int,
    month: str,
    *,
    config: BookingConfig | None = None,
    clock: OrgClock | None = None,
    redis: Redis | None = None,
) -> dict[str, int]:
    """
    Count free slots per day of a month.

    Days before today are 0 without querying. Today additionally drops
    slots earlier than now + today_buffer. Each day is computed
    independently with the same engine as the day view.

    Returns:
        Dict "YYYY-MM-DD" → slot count for every day of the month.
    """
    config = config or get_booking_config()
    clock = clock or get_org_clock()
    _require_positive_duration(duration_min)
    year, month_num = parse_month(month)
    _get_staff(db, staff_id)

    now = clock.now()
    today = clock.today()
    days = [
        date(year, month_num, d)
        for d in range(1, calendar.monthrange(year, month_num)[1] + 1)
    ]
    counts = {d.isoformat(): 0 for d in days}
    open_days = [d for d in days if d >= today]
    if not open_days:
        return counts

    store = SlotsRedisStore(redis, config) if redis is not None else None
    if store is not None:
        cached = store.get_month_counts(staff_id, month, duration_min)
        if cached is not None:
            return {**counts, **cached}

    range_start = clock.day_range(open_days[0])[0]
    range_end = clock.day_range(open_days[-1])[1]

    try:
        hours_by_weekday = {
            row.weekday: row
            for row in db.query(WorkingHours).filter(WorkingHours.staff_id == staff_id).all()
        }
        busy = load_busy_windows(
            db,
            staff_id,
            range_start,
            range_end,
            open_days[0],
            open_days[-1],
            clock=clock,
            now=now,
            rest_buffer=config.rest_buffer,
        )
    except SQLAlchemyError:
        logger.exception(
            f"Month availability lookup failed for staff {staff_id} ({month}), "
            f"returning zero counts"
        )
        return counts

    duration = timedelta(minutes=duration_min)
    step = config.step_for(duration_min)

    for day in open_days:
        working = working_window(hours_by_weekday.get(clock.weekday(day)), day, clock)
        if working is None:
            continue

        day_start, day_end = clock.day_range(day)
        is_today = day == today
        slots = compute_day_slots(
            working,
            busy,
            day_start,
            day_end,
            duration,
            step,
            now + config.lead_time if is_today else None,
        )
        if is_today:
            cutoff = now + config.today_buffer
            slots = [s for s in slots if s.start >= cutoff]

        counts[day.isoformat()] = len(slots)

    if store is not None:
        store.store_month_counts(staff_id, month, duration_min, counts)

    return counts


# ── Boundary operations ──────────────────────────────────────────────────


def resolve_duration(
    db: Session,
    staff_id: int,
    service_ids: Optional[list[int]] = None,
    duration_min: Optional[int] = None,
) -> DurationResolution:
    """
    Total requested duration.

    service_ids wins over duration_min. Unknown or inactive services are
    rejected; a staff member not qualified for every service yields
    split_required=True.
    """
    if service_ids:
        unique_ids = sorted(set(service_ids))
        services = (
            db.query(Services)
            .filter(Services.id.in_(unique_ids), Services.is_active == 1)
            .all()
        )
        found = {s.id for s in services}
        missing = [sid for sid in unique_ids if sid not in found]
        if missing:
            raise NotFoundError(f"Service not found or inactive: {missing}")

        total = sum(s.duration_min for s in services)
        _require_positive_duration(total)

        qualified = (
            db.query(t_staff_services.c.service_id)
            .filter(
                t_staff_services.c.staff_id == staff_id,
                t_staff_services.c.service_id.in_(unique_ids),
                t_staff_services.c.is_active == 1,
            )
            .count()
        )
        return DurationResolution(
            total_min=total,
            split_required=qualified != len(unique_ids),
        )

    if duration_min is None:
        raise ValidationError("service_ids or duration_min is required")
    _require_positive_duration(duration_min)
    return DurationResolution(total_min=duration_min)


def day_availability(
    db: Session,
    staff_id: int,
    target_date: date,
    *,
    service_ids: Optional[list[int]] = None,
    duration_min: Optional[int] = None,
    session_id: Optional[str] = None,
    config: BookingConfig | None = None,
    clock: OrgClock | None = None,
) -> dict:
    """
    Day availability read.

    Returns:
        Dict with ordered {start, end} slots (for SlotsDayResponse),
        or split_required=True with no slots.
    """
    _get_staff(db, staff_id)
    resolution = resolve_duration(db, staff_id, service_ids, duration_min)
    result = {
        "staff_id": staff_id,
        "date": target_date,
        "duration_min": resolution.total_min,
        "split_required": resolution.split_required,
        "slots": [],
    }
    if resolution.split_required:
        return result

    slots = free_slots_for_day(
        db,
        staff_id,
        resolution.total_min,
        target_date,
        config=config,
        clock=clock,
        exclude_session_id=session_id,
    )
    result["slots"] = [{"start": s.start, "end": s.end} for s in slots]
    return result


def month_availability(
    db: Session,
    staff_id: int,
    month: str,
    *,
    service_ids: Optional[list[int]] = None,
    duration_min: Optional[int] = None,
    config: BookingConfig | None = None,
    clock: OrgClock | None = None,
    redis: Redis | None = None,
) -> dict:
    """
    Month availability read.

    Returns:
        Dict with "days" (date → count), or split_required=True with no days.
    """
    parse_month(month)
    _get_staff(db, staff_id)
    resolution = resolve_duration(db, staff_id, service_ids, duration_min)
    result = {
        "staff_id": staff_id,
        "month": month,
        "duration_min": resolution.total_min,
        "split_required": resolution.split_required,
        "days": {},
    }
    if resolution.split_required:
        return result

    result["days"] = free_slot_counts_for_month(
        db,
        staff_id,
        resolution.total_min,
        month,
        config=config,
        clock=clock,
        redis=redis,
    )
    return result


# ── Busy sources ─────────────────────────────────────────────────────────


def load_busy_windows(
    db: Session,
    staff_id: int,
    range_start: datetime,
    range_end: datetime,
    first_day: date,
    last_day: date,
    *,
    clock: OrgClock,
    now: datetime,
    rest_buffer: timedelta = timedelta(0),
    exclude_session_id: Optional[str] = None,
) -> list[BusyWindow]:
    """
    Every busy window of a staff member touching [range_start, range_end).

    Time-off rows are taken for local dates first_day..last_day.
    """
    windows: list[BusyWindow] = []

    appointments = (
        db.query(Appointments)
        .filter(
            Appointments.staff_id == staff_id,
            Appointments.status.in_(BUSY_STATUSES),
            Appointments.deleted_at.is_(None),
            Appointments.start_at < range_end,
            Appointments.end_at > range_start - rest_buffer,
        )
        .all()
    )
    for appt in appointments:
        windows.append(BusyWindow(
            BusyKind.APPOINTMENT,
            Interval(appt.start_at, appt.end_at + rest_buffer),
            appt.id,
        ))

    reservations_q = db.query(TemporarySlotReservations).filter(
        TemporarySlotReservations.staff_id == staff_id,
        TemporarySlotReservations.expires_at > now,
        TemporarySlotReservations.start_at < range_end,
        TemporarySlotReservations.end_at > range_start,
    )
    if exclude_session_id:
        reservations_q = reservations_q.filter(
            TemporarySlotReservations.session_id != exclude_session_id
        )
    for res in reservations_q.all():
        windows.append(BusyWindow(
            BusyKind.RESERVATION,
            Interval(res.start_at, res.end_at),
            res.id,
        ))

    time_off = (
        db.query(TimeOff)
        .filter(
            or_(TimeOff.staff_id == staff_id, TimeOff.staff_id.is_(None)),
            TimeOff.date >= first_day.isoformat(),
            TimeOff.date <= last_day.isoformat(),
        )
        .all()
    )
    for off in time_off:
        try:
            off_day = date.fromisoformat(off.date)
        except ValueError:
            logger.warning(f"Skipping time-off {off.id} with bad date {off.date!r}")
            continue
        start_min = max(0, off.start_minutes)
        end_min = min(24 * 60, off.end_minutes)
        if start_min >= end_min:
            continue
        windows.append(BusyWindow(
            BusyKind.TIME_OFF,
            Interval(
                clock.wall_to_instant(off_day, start_min),
                clock.wall_to_instant(off_day, end_min),
            ),
            off.id,
        ))

    return windows


# ── Helpers ──────────────────────────────────────────────────────────────


def parse_month(month: str) -> tuple[int, int]:
    """'YYYY-MM' → (year, month)."""
    match = MONTH_RE.match(month or "")
    if not match:
        raise ValidationError("month must be in YYYY-MM format")
    year, month_num = int(match.group(1)), int(match.group(2))
    if not 1 <= month_num <= 12:
        raise ValidationError(f"Invalid month: {month}")
    return year, month_num


def _require_positive_duration(duration_min: int) -> None:
    if duration_min is None or duration_min <= 0:
        raise ValidationError(f"Duration must be positive, got {duration_min}")


def _get_staff(db: Session, staff_id: int) -> Staff:
    """Get active staff member by ID."""
    staff = db.query(Staff).filter(Staff.id == staff_id, Staff.is_active == 1).first()
    if not staff:
        raise NotFoundError(f"Staff {staff_id} not found")
    return staff
