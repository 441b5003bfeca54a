import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from .config import settings
from .database import init_db
from .errors import (
    BookingError,
    ConflictError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from .redis_client import redis_client
from .routers import appointments, reservations, slots, working_hours
from .services.reservation_sweeper import reservation_sweeper_loop

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    sweeper = asyncio.create_task(reservation_sweeper_loop())
    try:
        yield
    finally:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass


app = FastAPI(title="Salon Booking API", lifespan=lifespan)

app.include_router(slots.router)
app.include_router(reservations.router)
app.include_router(appointments.router)
app.include_router(working_hours.router)


# ===== Domain errors → HTTP =====
ERROR_STATUS = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (ConflictError, 409),
    (TransientStoreError, 503),
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    status_code = 400
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break
    if status_code == 503:
        logger.warning(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "detail": exc.message},
    )


@app.get("/health")
def health():
    result = {"status": "ok"}
    if redis_client is not None:
        try:
            result["redis"] = redis_client.ping()
        except RedisError:
            result["redis"] = False
    return result
