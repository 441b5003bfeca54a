from datetime import timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Table,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import TypeDecorator

Base = declarative_base()
metadata = Base.metadata


# Appointment statuses; only the first two block a staff member's time
STATUS_PENDING = "PENDING"
STATUS_CONFIRMED = "CONFIRMED"
STATUS_CANCELED = "CANCELED"
STATUS_DONE = "DONE"

BUSY_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)
APPOINTMENT_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_CANCELED, STATUS_DONE)


class UtcDateTime(TypeDecorator):
    """
    Absolute instant column.

    Stored as naive UTC (portable across SQLite / PostgreSQL),
    always returned as an aware UTC datetime.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("UtcDateTime requires an aware datetime")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


t_staff_services = Table(
    'staff_services', metadata,
    Column('staff_id', ForeignKey('staff.id', ondelete='CASCADE'), nullable=False),
    Column('service_id', ForeignKey('services.id', ondelete='CASCADE'), nullable=False),
    Column('is_active', Integer, nullable=False, server_default=text('1')),
    UniqueConstraint('staff_id', 'service_id')
)


class Services(Base):
    __tablename__ = 'services'
    __table_args__ = (
        CheckConstraint('duration_min > 0', name='ck_services_duration_positive'),
    )

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    duration_min = Column(Integer, nullable=False)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    category = Column(Text)

    appointments = relationship('Appointments', back_populates='service')


class Staff(Base):
    __tablename__ = 'staff'

    id = Column(Integer, primary_key=True)
    display_name = Column(Text, nullable=False)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    # Bumped by services.locking.lock_staff; the row write is the lock
    lock_version = Column(Integer, nullable=False, server_default=text('0'))

    working_hours = relationship('WorkingHours', back_populates='staff')
    appointments = relationship('Appointments', back_populates='staff')
    services = relationship('Services', secondary=t_staff_services)


class WorkingHours(Base):
    __tablename__ = 'working_hours'
    __table_args__ = (
        UniqueConstraint('staff_id', 'weekday'),
        CheckConstraint('weekday BETWEEN 0 AND 6', name='ck_working_hours_weekday'),
        CheckConstraint(
            'start_minutes BETWEEN 0 AND 1440 AND end_minutes BETWEEN 0 AND 1440',
            name='ck_working_hours_minutes',
        ),
        CheckConstraint(
            'is_closed = 1 OR start_minutes <= end_minutes',
            name='ck_working_hours_order',
        ),
    )

    id = Column(Integer, primary_key=True)
    staff_id = Column(ForeignKey('staff.id', ondelete='CASCADE'), nullable=False)
    weekday = Column(Integer, nullable=False)  # 0 = Sunday
    start_minutes = Column(Integer, nullable=False, server_default=text('0'))
    end_minutes = Column(Integer, nullable=False, server_default=text('0'))
    is_closed = Column(Integer, nullable=False, server_default=text('0'))

    staff = relationship('Staff', back_populates='working_hours')


class TimeOff(Base):
    __tablename__ = 'time_off'
    __table_args__ = (
        Index('ix_time_off_staff_date', 'staff_id', 'date'),
    )

    id = Column(Integer, primary_key=True)
    staff_id = Column(ForeignKey('staff.id', ondelete='CASCADE'))  # NULL = org-wide
    date = Column(Text, nullable=False)  # YYYY-MM-DD, org-local
    start_minutes = Column(Integer, nullable=False)
    end_minutes = Column(Integer, nullable=False)
    reason = Column(Text)


class Clients(Base):
    __tablename__ = 'clients'

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    phone = Column(Text, index=True)
    email = Column(Text, index=True)
    notes = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))
    deleted_at = Column(UtcDateTime)

    appointments = relationship('Appointments', back_populates='client')


class Appointments(Base):
    __tablename__ = 'appointments'
    __table_args__ = (
        Index('ix_appointments_staff_range', 'staff_id', 'start_at', 'end_at'),
        CheckConstraint('end_at > start_at', name='ck_appointments_range'),
    )

    id = Column(Integer, primary_key=True)
    staff_id = Column(ForeignKey('staff.id', ondelete='CASCADE'), nullable=False)
    service_id = Column(ForeignKey('services.id'), nullable=False)
    client_id = Column(ForeignKey('clients.id', ondelete='SET NULL'))
    start_at = Column(UtcDateTime, nullable=False)
    end_at = Column(UtcDateTime, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'PENDING'"))
    customer_name = Column(Text, nullable=False)
    phone = Column(Text)
    email = Column(Text)
    notes = Column(Text)
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    deleted_at = Column(UtcDateTime)

    staff = relationship('Staff', back_populates='appointments')
    service = relationship('Services', back_populates='appointments')
    client = relationship('Clients', back_populates='appointments')


class TemporarySlotReservations(Base):
    __tablename__ = 'temporary_slot_reservations'
    __table_args__ = (
        Index('ix_reservations_staff_range', 'staff_id', 'start_at', 'end_at'),
        Index('ix_reservations_expires_at', 'expires_at'),
    )

    id = Column(Integer, primary_key=True)
    staff_id = Column(ForeignKey('staff.id', ondelete='CASCADE'), nullable=False)
    start_at = Column(UtcDateTime, nullable=False)
    end_at = Column(UtcDateTime, nullable=False)
    session_id = Column(Text, nullable=False, unique=True)
    expires_at = Column(UtcDateTime, nullable=False)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))
