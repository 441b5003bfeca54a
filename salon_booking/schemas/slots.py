# salon_booking/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field


class SlotInfo(BaseModel):
    """One bookable slot [start, end)."""
    start: datetime
    end: datetime

    model_config = {"from_attributes": True}


class SlotsDayResponse(BaseModel):
    """Free slots of one staff member on one day."""
    staff_id: int
    date: date
    duration_min: int
    slots: list[SlotInfo] = []
    split_required: bool = Field(
        False,
        description="True when the staff member does not provide every requested service",
    )

    model_config = {"from_attributes": True}


class SlotsMonthResponse(BaseModel):
    """Free slot count per day of a month."""
    staff_id: int
    month: str = Field(description="YYYY-MM")
    duration_min: int
    days: dict[str, int] = {}
    split_required: bool = False

    model_config = {"from_attributes": True}
