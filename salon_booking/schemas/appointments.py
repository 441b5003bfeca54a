# salon_booking/schemas/appointments.py

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


def _as_utc(v: datetime) -> datetime:
    # Instants without an offset are taken as UTC
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


class AppointmentCreate(BaseModel):
    staff_id: int
    service_id: int

    start: datetime
    end: datetime

    customer_name: str = Field(min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None

    # Checkout session whose temporary reservation this booking supersedes
    session_id: Optional[str] = None

    model_config = {"from_attributes": True}

    @field_validator("start", "end")
    @classmethod
    def normalize_instant(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @field_validator("customer_name", "phone", "email")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def require_contact(self):
        if not self.customer_name:
            raise ValueError("customer_name is required")
        if not self.phone and not self.email:
            raise ValueError("phone or email is required")
        return self


class AppointmentCommitResponse(BaseModel):
    appointment_id: int
    client_id: Optional[int] = None
    status: str


class AppointmentStatusUpdate(BaseModel):
    status: str


class AppointmentRead(BaseModel):
    id: int

    staff_id: int
    service_id: int
    client_id: Optional[int] = None

    start_at: datetime
    end_at: datetime

    status: str
    customer_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None

    deleted_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
