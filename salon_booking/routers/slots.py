# salon_booking/routers/slots.py
"""
Slots API endpoints.

GET /slots/month - Free slot count per day of a month
GET /slots/day   - Free slots of one day

Duration comes from service_ids (comma-separated, summed) or duration_min.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import ValidationError
from ..redis_client import redis_client
from ..schemas.slots import SlotsDayResponse, SlotsMonthResponse
from ..services.slots import day_availability, month_availability

router = APIRouter(prefix="/slots", tags=["slots"])


def parse_service_ids(raw: str | None) -> list[int] | None:
    """'1,2,3' → [1, 2, 3]."""
    if not raw:
        return None
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise ValidationError("service_ids must be a comma-separated list of integers")


@router.get("/day", response_model=SlotsDayResponse)
def get_day_slots(
    staff_id: int,
    date: date,
    service_ids: str | None = Query(None, description="Comma-separated service IDs"),
    duration_min: int | None = None,
    session_id: str | None = Query(None, description="Own reservation is shown as free"),
    db: Session = Depends(get_db),
):
    """Bookable slots of a staff member on one day."""
    return day_availability(
        db,
        staff_id,
        date,
        service_ids=parse_service_ids(service_ids),
        duration_min=duration_min,
        session_id=session_id,
    )


@router.get("/month", response_model=SlotsMonthResponse)
def get_month_slots(
    staff_id: int,
    month: str = Query(..., description="YYYY-MM"),
    service_ids: str | None = Query(None, description="Comma-separated service IDs"),
    duration_min: int | None = None,
    db: Session = Depends(get_db),
):
    """Free slot count per day of a month (calendar view)."""
    return month_availability(
        db,
        staff_id,
        month,
        service_ids=parse_service_ids(service_ids),
        duration_min=duration_min,
        redis=redis_client,
    )
