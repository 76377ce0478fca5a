"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time, text
from clinic.database import Base
from clinic.models.enums import AppointmentStatus


_ACTIVE_STATUS_CLAUSE = "status IN ('pending', 'confirmed')"


class Appointment(Base):
    """Represents a booked visit occupying one slot."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            'uq_appointments_active_patient_slot',
            'date',
            'slot_time',
            'patient_id',
            unique=True,
            postgresql_where=text(_ACTIVE_STATUS_CLAUSE),
            sqlite_where=text(_ACTIVE_STATUS_CLAUSE),
        ),
        Index('idx_appointments_date_slot', 'date', 'slot_time'),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    slot_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(String, nullable=False, default=AppointmentStatus.PENDING.value)
    reason = Column(String)
    notes = Column(Text)
    admin_notes = Column(Text)
    cancellation_reason = Column(Text)
    cancelled_by = Column(String)
    cancelled_at = Column(DateTime)
    confirmed_at = Column(DateTime)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.now)

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.slot_time)
