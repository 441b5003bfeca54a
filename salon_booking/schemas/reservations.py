# salon_booking/schemas/reservations.py

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .appointments import _as_utc


class SlotReserveRequest(BaseModel):
    staff_id: int
    start: datetime
    end: datetime
    session_id: str = Field(min_length=1, description="Client checkout session id")

    @field_validator("start", "end")
    @classmethod
    def normalize_instant(cls, v: datetime) -> datetime:
        return _as_utc(v)


class SlotReserveResponse(BaseModel):
    reservation_id: int
    expires_at: datetime

    model_config = {"from_attributes": True}
