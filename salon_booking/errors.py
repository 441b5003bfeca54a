# salon_booking/errors.py
"""
Domain errors raised by the availability / booking core.

HTTP mapping lives in main.py:
- ValidationError      → 422 (fix the input, then retry)
- NotFoundError        → 404
- ConflictError        → 409 (re-fetch availability, do not retry the same instant)
- TransientStoreError  → 503 (safe to retry the whole operation)
"""

SLOT_TAKEN = "SLOT_TAKEN"


class BookingError(Exception):
    code = "BOOKING_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(BookingError):
    code = "VALIDATION_ERROR"


class NotFoundError(BookingError):
    code = "NOT_FOUND"


class ConflictError(BookingError):
    code = SLOT_TAKEN

    def __init__(self, message: str = "Slot already taken", code: str = SLOT_TAKEN):
        super().__init__(message, code)


class TransientStoreError(BookingError):
    code = "STORE_UNAVAILABLE"
