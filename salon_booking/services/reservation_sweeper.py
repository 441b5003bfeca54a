"""
Expired reservation sweeper.

Periodically deletes temporary reservations whose expires_at has passed.
Purely compaction: expired holds are already invisible to every overlap
query, so a stopped sweeper never affects correctness.

Runs as an asyncio task in app lifespan.
Uses the synchronous DB session (via asyncio.to_thread).
"""

import asyncio
import logging

from ..config import settings
from ..database import SessionLocal
from .reservations import purge_expired_reservations
from .slots.clock import OrgClock, get_org_clock

logger = logging.getLogger(__name__)


async def reservation_sweeper_loop(interval: int | None = None) -> None:
    """Periodic loop purging expired reservations."""
    interval = interval or settings.reservation_sweep_interval_sec
    logger.info("reservation_sweeper_loop started")

    try:
        while True:
            try:
                await asyncio.to_thread(sweep_expired_reservations)
            except asyncio.CancelledError:
                logger.info("reservation_sweeper_loop cancelled")
                raise
            except Exception:
                logger.exception("reservation_sweeper_loop error")

            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        pass


def sweep_expired_reservations(
    session_factory=SessionLocal,
    clock: OrgClock | None = None,
) -> int:
    """Purge expired reservations once (synchronous)."""
    clock = clock or get_org_clock()

    db = session_factory()
    try:
        deleted = purge_expired_reservations(db, clock.now())
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    if deleted:
        logger.info(f"Swept {deleted} expired reservations")
    return deleted
