# salon_booking/services/reservations.py
"""
Temporary slot reservations (checkout holds).

A reservation keeps a slot out of everyone else's availability while a
client finishes checkout. One live hold per session_id; reserving again
from the same session moves / renews the hold instead of conflicting.

Expiry is lazy: every overlap query filters on expires_at > now, so an
expired row is invisible even before it is purged. Purging happens at the
start of each reserve() and in the background sweeper.
"""

import logging
from datetime import datetime

from redis import Redis
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..errors import BookingError, ConflictError, TransientStoreError, ValidationError
from ..models.tables import TemporarySlotReservations as DBReservations
from .booking import find_conflicting_appointment, validate_interval
from .locking import lock_staff
from .slots.clock import OrgClock, get_org_clock
from .slots.config import BookingConfig, get_booking_config
from .slots.intervals import Interval
from .slots.invalidator import invalidate_staff_cache

logger = logging.getLogger(__name__)


def reserve_slot(
    db: Session,
    staff_id: int,
    start: datetime,
    end: datetime,
    session_id: str,
    *,
    config: BookingConfig | None = None,
    clock: OrgClock | None = None,
    redis: Redis | None = None,
) -> DBReservations:
    """
    Hold [start, end) for a checkout session.

    Raises:
        ValidationError: malformed interval / empty session id
        NotFoundError: unknown staff
        ConflictError: SLOT_TAKEN by an appointment or another session's hold
        TransientStoreError: lock timeout / store failure
    """
    config = config or get_booking_config()
    clock = clock or get_org_clock()

    candidate = validate_interval(start, end)
    if not session_id:
        raise ValidationError("session_id is required")

    now = clock.now()
    expires_at = now + config.reservation_ttl

    try:
        purged = purge_expired_reservations(db, now, commit=False)
        if purged:
            logger.debug(f"Purged {purged} expired reservations")

        lock_staff(db, staff_id)

        conflicting = find_conflicting_appointment(
            db, staff_id, candidate, config.rest_buffer
        )
        if conflicting:
            logger.warning(
                f"SLOT_TAKEN on reserve: staff={staff_id} session={session_id} "
                f"overlaps appointment {conflicting.id}"
            )
            raise ConflictError()

        held = _find_other_session_hold(db, staff_id, candidate, session_id, now)
        if held:
            logger.warning(
                f"SLOT_TAKEN on reserve: staff={staff_id} session={session_id} "
                f"overlaps reservation {held.id}"
            )
            raise ConflictError()

        reservation = (
            db.query(DBReservations)
            .filter(DBReservations.session_id == session_id)
            .first()
        )
        previous_staff_id = None
        if reservation:
            previous_staff_id = reservation.staff_id
            reservation.staff_id = staff_id
            reservation.start_at = candidate.start
            reservation.end_at = candidate.end
            reservation.expires_at = expires_at
        else:
            reservation = DBReservations(
                staff_id=staff_id,
                start_at=candidate.start,
                end_at=candidate.end,
                session_id=session_id,
                expires_at=expires_at,
            )
            db.add(reservation)

        db.commit()
    except BookingError:
        db.rollback()
        raise
    except (IntegrityError, OperationalError) as e:
        db.rollback()
        logger.error(f"Reservation failed for staff {staff_id}, session {session_id}: {e}")
        raise TransientStoreError("Reservation could not be stored, retry later") from e

    db.refresh(reservation)
    invalidate_staff_cache(redis, staff_id)
    if previous_staff_id is not None and previous_staff_id != staff_id:
        invalidate_staff_cache(redis, previous_staff_id)

    logger.info(
        f"Slot reserved: reservation_id={reservation.id}, staff_id={staff_id}, "
        f"session={session_id}, start={candidate.start.isoformat()}, "
        f"expires_at={expires_at.isoformat()}"
    )
    return reservation


def release_reservation(
    db: Session,
    session_id: str,
    *,
    redis: Redis | None = None,
) -> bool:
    """Drop a session's hold explicitly. Returns False if the session held nothing."""
    reservation = (
        db.query(DBReservations)
        .filter(DBReservations.session_id == session_id)
        .first()
    )
    if not reservation:
        return False

    staff_id = reservation.staff_id
    db.delete(reservation)
    try:
        db.commit()
    except OperationalError as e:
        db.rollback()
        raise TransientStoreError("Reservation could not be released, retry later") from e

    invalidate_staff_cache(redis, staff_id)
    logger.info(f"Reservation released: session={session_id}, staff_id={staff_id}")
    return True


def purge_expired_reservations(db: Session, now: datetime, commit: bool = True) -> int:
    """Delete every reservation with expires_at <= now. Returns deleted row count."""
    deleted = (
        db.query(DBReservations)
        .filter(DBReservations.expires_at <= now)
        .delete(synchronize_session=False)
    )
    if commit:
        db.commit()
    return deleted


def _find_other_session_hold(
    db: Session,
    staff_id: int,
    candidate: Interval,
    session_id: str,
    now: datetime,
):
    """Live hold of another session overlapping the candidate."""
    return (
        db.query(DBReservations)
        .filter(
            DBReservations.staff_id == staff_id,
            DBReservations.session_id != session_id,
            DBReservations.expires_at > now,
            DBReservations.start_at < candidate.end,
            DBReservations.end_at > candidate.start,
        )
        .first()
    )
