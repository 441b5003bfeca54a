"""
Shared fixtures: file-backed SQLite store and a frozen organization clock.

All scenarios use Europe/Berlin in June 2030 (UTC+2).
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from salon_booking.database import init_db, make_engine
from salon_booking.services.slots.clock import OrgClock
from salon_booking.services.slots.config import BookingConfig

from .factories import TZ, FrozenNow


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'booking.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now():
    # Saturday 2030-06-01, before every scenario day
    return FrozenNow(datetime(2030, 6, 1, 6, 0, tzinfo=timezone.utc))


@pytest.fixture
def clock(now):
    return OrgClock(TZ, now=now)


@pytest.fixture
def config():
    return BookingConfig()
