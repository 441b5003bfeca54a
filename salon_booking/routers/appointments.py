# salon_booking/routers/appointments.py
# DELETE /{id} archives (soft delete); DELETE /{id}/permanent removes the row

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import redis_client
from ..schemas.appointments import (
    AppointmentCommitResponse,
    AppointmentCreate,
    AppointmentRead,
    AppointmentStatusUpdate,
)
from ..services.booking import (
    commit_booking,
    get_appointment,
    hard_delete_appointment,
    restore_appointment,
    set_appointment_status,
    soft_delete_appointment,
)

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post("/", response_model=AppointmentCommitResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: AppointmentCreate,
    db: Session = Depends(get_db),
):
    appointment = commit_booking(db, data, redis=redis_client)
    return AppointmentCommitResponse(
        appointment_id=appointment.id,
        client_id=appointment.client_id,
        status=appointment.status,
    )


@router.get("/{id}", response_model=AppointmentRead)
def read_appointment(id: int, db: Session = Depends(get_db)):
    return get_appointment(db, id)


@router.patch("/{id}/status", response_model=AppointmentRead)
def update_appointment_status(
    id: int,
    data: AppointmentStatusUpdate,
    db: Session = Depends(get_db),
):
    return set_appointment_status(db, id, data.status, redis=redis_client)


@router.delete("/{id}", response_model=AppointmentRead)
def archive_appointment(id: int, db: Session = Depends(get_db)):
    return soft_delete_appointment(db, id, redis=redis_client)


@router.post("/{id}/restore", response_model=AppointmentRead)
def restore_archived_appointment(id: int, db: Session = Depends(get_db)):
    return restore_appointment(db, id, redis=redis_client)


@router.delete("/{id}/permanent", status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment_permanently(id: int, db: Session = Depends(get_db)):
    hard_delete_appointment(db, id, redis=redis_client)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
