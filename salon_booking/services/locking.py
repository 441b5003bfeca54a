# salon_booking/services/locking.py
"""
Per-staff exclusive lock held for the rest of the current transaction.

The lock is a write to the staff row:

    UPDATE staff SET lock_version = lock_version + 1 WHERE id = :staff_id

- PostgreSQL / MySQL: row lock, same as SELECT ... FOR UPDATE; other staff
  members never contend.
- SQLite: the first write takes the database write lock, so it must be the
  first write of the transaction (callers lock before reading the overlap set).

Concurrent transactions for one staff member are thereby totally ordered:
the later one re-reads after the earlier one committed or rolled back.
"""

import logging

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ..errors import NotFoundError, TransientStoreError
from ..models.tables import Staff

logger = logging.getLogger(__name__)


def lock_staff(db: Session, staff_id: int) -> None:
    """
    Acquire the staff lock inside the session's current transaction.

    The caller owns the transaction and rolls back on any raised error.

    Raises:
        NotFoundError: staff row does not exist or is inactive
        TransientStoreError: lock wait timed out / store unavailable
    """
    try:
        result = db.execute(
            update(Staff)
            .where(Staff.id == staff_id, Staff.is_active == 1)
            .values(lock_version=Staff.lock_version + 1)
            .execution_options(synchronize_session=False)
        )
    except OperationalError as e:
        logger.warning(f"Staff lock failed for staff {staff_id}: {e}")
        raise TransientStoreError(f"Could not lock staff {staff_id}, retry later") from e

    if result.rowcount == 0:
        raise NotFoundError(f"Staff {staff_id} not found")
