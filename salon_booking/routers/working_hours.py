# salon_booking/routers/working_hours.py
# PUT upserts one weekday; every change drops the staff member's cached months

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import NotFoundError, ValidationError
from ..models.tables import Staff as DBStaff, WorkingHours as DBWorkingHours
from ..redis_client import redis_client
from ..schemas.working_hours import WorkingHoursIn, WorkingHoursRead
from ..services.slots.invalidator import invalidate_staff_cache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/staff", tags=["working-hours"])


def _get_staff_or_404(db: Session, staff_id: int) -> DBStaff:
    staff = db.get(DBStaff, staff_id)
    if not staff or not staff.is_active:
        raise NotFoundError(f"Staff {staff_id} not found")
    return staff


@router.get("/{staff_id}/working-hours", response_model=list[WorkingHoursRead])
def list_working_hours(staff_id: int, db: Session = Depends(get_db)):
    _get_staff_or_404(db, staff_id)
    return (
        db.query(DBWorkingHours)
        .filter(DBWorkingHours.staff_id == staff_id)
        .order_by(DBWorkingHours.weekday)
        .all()
    )


@router.put("/{staff_id}/working-hours", response_model=WorkingHoursRead)
def put_working_hours(
    staff_id: int,
    data: WorkingHoursIn,
    db: Session = Depends(get_db),
):
    _get_staff_or_404(db, staff_id)

    obj = (
        db.query(DBWorkingHours)
        .filter(
            DBWorkingHours.staff_id == staff_id,
            DBWorkingHours.weekday == data.weekday,
        )
        .first()
    )
    if not obj:
        obj = DBWorkingHours(staff_id=staff_id, weekday=data.weekday)
        db.add(obj)

    obj.start_minutes = data.start_minutes
    obj.end_minutes = data.end_minutes
    obj.is_closed = int(data.is_closed)

    try:
        db.commit()
    except IntegrityError as e:
        # CHECK constraints reject what slipped past the schema
        db.rollback()
        raise ValidationError(f"Invalid working hours: {e.orig}") from e
    db.refresh(obj)

    invalidate_staff_cache(redis_client, staff_id)
    logger.info(
        f"Working hours set: staff_id={staff_id}, weekday={data.weekday}, "
        f"{data.start_minutes}-{data.end_minutes}, closed={data.is_closed}"
    )
    return obj
