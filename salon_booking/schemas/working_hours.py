# salon_booking/schemas/working_hours.py

from pydantic import BaseModel, field_validator, model_validator

from ..services.slots.clock import MINUTES_PER_DAY


class WorkingHoursIn(BaseModel):
    """One weekday of a staff member's weekly schedule."""
    weekday: int  # 0 = Sunday … 6 = Saturday
    start_minutes: int = 0
    end_minutes: int = 0
    is_closed: bool = False

    @field_validator("weekday")
    @classmethod
    def check_weekday(cls, v: int) -> int:
        if not 0 <= v <= 6:
            raise ValueError("weekday must be between 0 (Sunday) and 6 (Saturday)")
        return v

    @field_validator("start_minutes", "end_minutes")
    @classmethod
    def check_minutes(cls, v: int) -> int:
        if not 0 <= v <= MINUTES_PER_DAY:
            raise ValueError(f"minutes must be between 0 and {MINUTES_PER_DAY}")
        return v

    @model_validator(mode="after")
    def check_order(self):
        if not self.is_closed and self.start_minutes > self.end_minutes:
            raise ValueError("start_minutes must not be after end_minutes")
        return self


class WorkingHoursRead(BaseModel):
    id: int
    staff_id: int
    weekday: int
    start_minutes: int
    end_minutes: int
    is_closed: bool

    model_config = {"from_attributes": True}
