# salon_booking/routers/reservations.py

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import NotFoundError
from ..redis_client import redis_client
from ..schemas.reservations import SlotReserveRequest, SlotReserveResponse
from ..services.reservations import release_reservation, reserve_slot

router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post("/", response_model=SlotReserveResponse, status_code=status.HTTP_201_CREATED)
def create_reservation(
    data: SlotReserveRequest,
    db: Session = Depends(get_db),
):
    """Hold a slot for a checkout session (renews the session's previous hold)."""
    reservation = reserve_slot(
        db,
        data.staff_id,
        data.start,
        data.end,
        data.session_id,
        redis=redis_client,
    )
    return SlotReserveResponse(
        reservation_id=reservation.id,
        expires_at=reservation.expires_at,
    )


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reservation(session_id: str, db: Session = Depends(get_db)):
    if not release_reservation(db, session_id, redis=redis_client):
        raise NotFoundError(f"No reservation for session {session_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
