"""Value objects for slot computation and the pure window generator."""

import datetime as dt
from datetime import date, datetime, time, timedelta

from pydantic import BaseModel, ConfigDict, computed_field

from clinic.core import config


class ClinicSettingsSnapshot(BaseModel):
    """Immutable copy of the clinic settings row handed to the scheduling core."""

    model_config = ConfigDict(frozen=True)

    slot_duration: int = config.CLINIC_SLOT_DURATION
    max_patients_per_slot: int = config.CLINIC_MAX_PATIENTS_PER_SLOT
    advance_booking_days: int = config.CLINIC_ADVANCE_BOOKING_DAYS
    cancellation_hours: int = config.CLINIC_CANCELLATION_HOURS
    version: int = 1

    @classmethod
    def from_model(cls, setting) -> 'ClinicSettingsSnapshot':
        return cls(
            slot_duration=setting.slot_duration,
            max_patients_per_slot=setting.max_patients_per_slot,
            advance_booking_days=setting.advance_booking_days,
            cancellation_hours=setting.cancellation_hours,
            version=setting.version or 1,
        )


class TimeWindow(BaseModel):
    """Half-open interval ``[start, end)`` within a single day."""

    model_config = ConfigDict(frozen=True)

    start: time
    end: time

    def overlaps(self, other_start: time, other_end: time) -> bool:
        return self.start < other_end and self.end > other_start


class Slot(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_time: time
    end_time: time
    available: bool
    remaining_capacity: int


class AvailableDate(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: dt.date
    slots_count: int
    total_slots: int

    @computed_field
    @property
    def day_name(self) -> str:
        return self.date.strftime('%A')


class NextAvailableSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: dt.date
    slot: Slot


class SlotsSummary(BaseModel):
    total_days: int
    available_dates: int
    total_slots: int
    available_slots: int
    next_available: NextAvailableSlot | None = None


def _add_minutes(value: time, minutes: int) -> datetime:
    return datetime.combine(date.min, value) + timedelta(minutes=minutes)


def generate_windows(
    start_time: time,
    end_time: time,
    slot_duration: int,
    break_start: time | None = None,
    break_end: time | None = None,
) -> list[TimeWindow]:
    """Cut a working day into ``slot_duration`` windows.

    Windows that would run past ``end_time`` are dropped rather than
    truncated, and any window touching the break is skipped. Stepping stays on
    the grid anchored at ``start_time``.
    """
    if slot_duration <= 0:
        raise ValueError('slot_duration must be positive.')

    has_break = break_start is not None and break_end is not None
    day_end = datetime.combine(date.min, end_time)
    current = datetime.combine(date.min, start_time)
    windows: list[TimeWindow] = []

    while True:
        window_end = current + timedelta(minutes=slot_duration)
        if window_end > day_end:
            break

        window = TimeWindow(start=current.time(), end=window_end.time())
        if not (has_break and window.overlaps(break_start, break_end)):
            windows.append(window)

        current = window_end

    return windows


def slot_end_time(slot_time: time, slot_duration: int) -> time:
    return _add_minutes(slot_time, slot_duration).time()
