# salon_booking/services/booking.py
"""
Conflict-safe booking transaction.

State machine:

    validate → lock(staff) → check overlap → commit | reject(SLOT_TAKEN)

- Validation (interval, lead time, service, qualification) happens before
  the lock and raises ValidationError / NotFoundError.
- The overlap check re-reads PENDING/CONFIRMED appointments after the
  staff lock is held, so it observes every earlier commit for that staff.
- A conflict rolls the whole transaction back; nothing is written.

Not idempotent: a caller whose request timed out must re-query state
(the booking may have committed) instead of blindly retrying.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from redis import Redis
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..errors import (
    BookingError,
    ConflictError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from ..models.tables import (
    APPOINTMENT_STATUSES,
    BUSY_STATUSES,
    STATUS_PENDING,
    Appointments as DBAppointments,
    Clients as DBClients,
    Services as DBServices,
    Staff as DBStaff,
    TemporarySlotReservations as DBReservations,
    t_staff_services,
)
from ..schemas.appointments import AppointmentCreate
from .locking import lock_staff
from .slots.clock import OrgClock, get_org_clock
from .slots.config import BookingConfig, get_booking_config
from .slots.intervals import Interval
from .slots.invalidator import invalidate_staff_cache

logger = logging.getLogger(__name__)


def commit_booking(
    db: Session,
    data: AppointmentCreate,
    *,
    config: BookingConfig | None = None,
    clock: OrgClock | None = None,
    redis: Redis | None = None,
) -> DBAppointments:
    """
    Create a PENDING appointment if the staff member is free.

    Steps:
    1. Validate interval, lead time, service and staff qualification
    2. Lock the staff row
    3. Re-check overlap with busy appointments (rest buffer applied)
    4. Resolve or create the client
    5. Create the appointment, drop the session's reservation, commit

    Raises:
        ValidationError, NotFoundError: before any write
        ConflictError: SLOT_TAKEN, transaction rolled back
        TransientStoreError: lock timeout / store failure, rolled back
    """
    config = config or get_booking_config()
    clock = clock or get_org_clock()
    now = clock.now()

    candidate = validate_interval(data.start, data.end)
    if config.booking_lead_time_minutes > 0 and candidate.start < now + config.booking_lead_time:
        raise ValidationError(
            f"Booking must start at least {config.booking_lead_time_minutes} minutes from now"
        )

    staff = db.get(DBStaff, data.staff_id)
    if not staff or not staff.is_active:
        raise NotFoundError(f"Staff {data.staff_id} not found")
    service = db.get(DBServices, data.service_id)
    if not service or not service.is_active:
        raise NotFoundError(f"Service {data.service_id} not found or inactive")
    if not _staff_provides_service(db, data.staff_id, data.service_id):
        raise ValidationError(
            f"Staff {data.staff_id} does not provide service {data.service_id}"
        )

    try:
        lock_staff(db, data.staff_id)

        conflicting = find_conflicting_appointment(
            db, data.staff_id, candidate, config.rest_buffer
        )
        if conflicting:
            logger.warning(
                f"SLOT_TAKEN: staff={data.staff_id} "
                f"{candidate.start.isoformat()}–{candidate.end.isoformat()} "
                f"overlaps appointment {conflicting.id}"
            )
            raise ConflictError()

        client = _resolve_client(db, data)

        appointment = DBAppointments(
            staff_id=data.staff_id,
            service_id=data.service_id,
            client_id=client.id,
            start_at=candidate.start,
            end_at=candidate.end,
            status=STATUS_PENDING,
            customer_name=data.customer_name,
            phone=data.phone,
            email=data.email,
            notes=data.notes,
        )
        db.add(appointment)

        if data.session_id:
            # The hold is superseded by the appointment
            db.query(DBReservations).filter(
                DBReservations.session_id == data.session_id
            ).delete(synchronize_session=False)

        db.commit()
    except BookingError:
        db.rollback()
        raise
    except (IntegrityError, OperationalError) as e:
        db.rollback()
        logger.error(f"Booking transaction failed for staff {data.staff_id}: {e}")
        raise TransientStoreError("Booking could not be stored, retry later") from e

    db.refresh(appointment)
    invalidate_staff_cache(redis, data.staff_id)

    logger.info(
        f"Appointment committed: appointment_id={appointment.id}, "
        f"staff_id={appointment.staff_id}, service_id={appointment.service_id}, "
        f"client_id={appointment.client_id}, start={candidate.start.isoformat()}"
    )
    return appointment


def validate_interval(start: datetime, end: datetime) -> Interval:
    """Well-formed [start, end) of aware instants."""
    if start is None or end is None:
        raise ValidationError("start and end are required")
    if start.tzinfo is None or end.tzinfo is None:
        raise ValidationError("start and end must be timezone-aware")
    if end <= start:
        raise ValidationError("end must be after start")
    return Interval(start, end)


def find_conflicting_appointment(
    db: Session,
    staff_id: int,
    candidate: Interval,
    rest_buffer: timedelta = timedelta(0),
    exclude_id: Optional[int] = None,
) -> Optional[DBAppointments]:
    """
    First busy appointment overlapping the candidate.

    existing.start < candidate.end AND candidate.start < existing.end + rest_buffer
    """
    query = db.query(DBAppointments).filter(
        DBAppointments.staff_id == staff_id,
        DBAppointments.status.in_(BUSY_STATUSES),
        DBAppointments.deleted_at.is_(None),
        DBAppointments.start_at < candidate.end,
        DBAppointments.end_at > candidate.start - rest_buffer,
    )
    if exclude_id is not None:
        query = query.filter(DBAppointments.id != exclude_id)
    return query.order_by(DBAppointments.start_at).first()


# ── Lifecycle ────────────────────────────────────────────────────────────


def get_appointment(db: Session, appointment_id: int) -> DBAppointments:
    appointment = db.get(DBAppointments, appointment_id)
    if not appointment:
        raise NotFoundError(f"Appointment {appointment_id} not found")
    return appointment


def set_appointment_status(
    db: Session,
    appointment_id: int,
    status: str,
    *,
    config: BookingConfig | None = None,
    clock: OrgClock | None = None,
    redis: Redis | None = None,
) -> DBAppointments:
    """
    Change status.

    Re-activating a live CANCELED / DONE appointment re-checks overlap under the lock.
    """
    config = config or get_booking_config()
    clock = clock or get_org_clock()

    status = (status or "").upper()
    if status not in APPOINTMENT_STATUSES:
        raise ValidationError(f"Unknown status {status!r}")

    appointment = get_appointment(db, appointment_id)
    # Archived rows block nothing; restore_appointment re-checks them
    reactivating = (
        status in BUSY_STATUSES
        and appointment.status not in BUSY_STATUSES
        and appointment.deleted_at is None
    )

    def apply():
        appointment.status = status

    _mutate_appointment(db, appointment, apply, config, clock, recheck=reactivating)
    invalidate_staff_cache(redis, appointment.staff_id)
    logger.info(f"Appointment {appointment_id} status → {status}")
    return appointment


def soft_delete_appointment(
    db: Session,
    appointment_id: int,
    *,
    clock: OrgClock | None = None,
    redis: Redis | None = None,
) -> DBAppointments:
    """Archive an appointment; it stops counting as busy."""
    clock = clock or get_org_clock()
    appointment = get_appointment(db, appointment_id)
    if appointment.deleted_at is not None:
        return appointment

    now = clock.now()
    appointment.deleted_at = now
    appointment.updated_at = _timestamp(now)
    _commit(db, f"soft delete appointment {appointment_id}")

    invalidate_staff_cache(redis, appointment.staff_id)
    logger.info(f"Appointment {appointment_id} archived")
    return appointment


def restore_appointment(
    db: Session,
    appointment_id: int,
    *,
    config: BookingConfig | None = None,
    clock: OrgClock | None = None,
    redis: Redis | None = None,
) -> DBAppointments:
    """Un-archive an appointment; its slot must still be free."""
    config = config or get_booking_config()
    clock = clock or get_org_clock()

    appointment = get_appointment(db, appointment_id)
    if appointment.deleted_at is None:
        return appointment

    def apply():
        appointment.deleted_at = None

    _mutate_appointment(
        db,
        appointment,
        apply,
        config,
        clock,
        recheck=appointment.status in BUSY_STATUSES,
    )
    invalidate_staff_cache(redis, appointment.staff_id)
    logger.info(f"Appointment {appointment_id} restored")
    return appointment


def hard_delete_appointment(
    db: Session,
    appointment_id: int,
    *,
    redis: Redis | None = None,
) -> None:
    """Permanently delete an appointment."""
    appointment = get_appointment(db, appointment_id)
    staff_id = appointment.staff_id
    db.delete(appointment)
    _commit(db, f"hard delete appointment {appointment_id}")

    invalidate_staff_cache(redis, staff_id)
    logger.info(f"Appointment {appointment_id} permanently deleted")


# ── Helpers ──────────────────────────────────────────────────────────────


def _mutate_appointment(db, appointment, apply, config, clock, recheck: bool) -> None:
    """Apply a change in one transaction, re-checking overlap under the lock when asked."""
    try:
        if recheck:
            lock_staff(db, appointment.staff_id)
            db.refresh(appointment)
            conflicting = find_conflicting_appointment(
                db,
                appointment.staff_id,
                Interval(appointment.start_at, appointment.end_at),
                config.rest_buffer,
                exclude_id=appointment.id,
            )
            if conflicting:
                logger.warning(
                    f"SLOT_TAKEN: appointment {appointment.id} overlaps {conflicting.id}"
                )
                raise ConflictError()
        apply()
        appointment.updated_at = _timestamp(clock.now())
        db.commit()
    except BookingError:
        db.rollback()
        raise
    except (IntegrityError, OperationalError) as e:
        db.rollback()
        raise TransientStoreError("Appointment could not be updated, retry later") from e


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except (IntegrityError, OperationalError) as e:
        db.rollback()
        logger.error(f"Failed to {action}: {e}")
        raise TransientStoreError(f"Could not {action}, retry later") from e


def _staff_provides_service(db: Session, staff_id: int, service_id: int) -> bool:
    row = (
        db.query(t_staff_services.c.staff_id)
        .filter(
            t_staff_services.c.staff_id == staff_id,
            t_staff_services.c.service_id == service_id,
            t_staff_services.c.is_active == 1,
        )
        .first()
    )
    return row is not None


def _resolve_client(db: Session, data: AppointmentCreate) -> DBClients:
    """Find an active client by phone or e-mail, or create one."""
    matchers = []
    if data.phone:
        matchers.append(DBClients.phone == data.phone)
    if data.email:
        matchers.append(DBClients.email == data.email)

    client = (
        db.query(DBClients)
        .filter(DBClients.deleted_at.is_(None), or_(*matchers))
        .order_by(DBClients.id)
        .first()
    )
    if client:
        return client

    client = DBClients(
        name=data.customer_name,
        phone=data.phone,
        email=data.email,
        notes=data.notes,
    )
    db.add(client)
    db.flush()
    logger.info(f"Created client {client.id} for {data.phone or data.email}")
    return client


def _timestamp(now: datetime) -> str:
    return now.strftime("%Y-%m-%d %H:%M:%S")
