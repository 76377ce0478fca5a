"""Clinic settings model definitions."""

from sqlalchemy import Column, Integer, String
from clinic.database import Base


class ClinicSetting(Base):
    """Singleton row holding the booking rules of the clinic."""
    __tablename__ = "clinic_settings"

    id = Column(Integer, primary_key=True)
    clinic_name = Column(String)
    doctor_name = Column(String)
    phone = Column(String)
    address = Column(String)
    slot_duration = Column(Integer, nullable=False, default=30)
    max_patients_per_slot = Column(Integer, nullable=False, default=1)
    advance_booking_days = Column(Integer, nullable=False, default=30)
    cancellation_hours = Column(Integer, nullable=False, default=24)
    version = Column(Integer, nullable=False, default=1)
