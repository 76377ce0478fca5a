"""Vacation model definitions."""

from datetime import date

from sqlalchemy import Column, Date, Integer, String
from clinic.database import Base


class Vacation(Base):
    """A closed, inclusive date range during which no slots are offered."""
    __tablename__ = "vacations"

    id = Column(Integer, primary_key=True)
    title = Column(String)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)
    reason = Column(String)

    def includes(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    @property
    def days_count(self) -> int:
        return (self.end_date - self.start_date).days + 1
