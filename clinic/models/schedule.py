"""Weekly schedule model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, Time
from clinic.database import Base


DAY_NAMES = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')


class Schedule(Base):
    """Working hours for one day of the week (0 = Monday, as ``date.weekday()``)."""
    __tablename__ = "schedules"
    __table_args__ = (
        CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_schedules_day_of_week'),
    )

    id = Column(Integer, primary_key=True)
    day_of_week = Column(Integer, unique=True, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    break_start = Column(Time)
    break_end = Column(Time)
    is_active = Column(Boolean, nullable=False, default=True)

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_of_week]

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None
