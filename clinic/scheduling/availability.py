"""Availability calculator.

Turns the weekly schedule, vacations, clinic settings and the appointments
already on the books into bookable slots for a date and into the list of
dates that still have room inside the booking horizon.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Callable

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic.core.errors import OUTSIDE_HOURS, PAST_TIME, SLOT_TAKEN, VACATION, SlotNotAvailable
from clinic.models.appointment import Appointment
from clinic.models.enums import AppointmentStatus
from clinic.models.schedule import Schedule
from clinic.models.vacation import Vacation
from clinic.scheduling.cache import SlotCache, dates_key, slots_key
from clinic.scheduling.slots import (
    AvailableDate,
    ClinicSettingsSnapshot,
    NextAvailableSlot,
    Slot,
    SlotsSummary,
    generate_windows,
)

logger = logging.getLogger(__name__)


class AvailabilityCalculator:
    def __init__(
        self,
        db: Session,
        settings: ClinicSettingsSnapshot,
        cache: SlotCache | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db = db
        self.settings = settings
        self.cache = cache
        self._clock = clock

    def now(self) -> datetime:
        return self._clock().replace(tzinfo=None)

    def today(self) -> date:
        return self.now().date()

    # ==================== Store access ====================

    def get_schedule(self, day_of_week: int, for_update: bool = False) -> Schedule | None:
        query = self.db.query(Schedule).filter(Schedule.day_of_week == day_of_week)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def is_vacation_day(self, slot_date: date) -> bool:
        return self.db.query(Vacation.id).filter(
            Vacation.start_date <= slot_date,
            Vacation.end_date >= slot_date,
        ).first() is not None

    def get_booked_counts(self, slot_date: date) -> dict[time, int]:
        rows = self.db.query(Appointment.slot_time, func.count(Appointment.id)).filter(
            Appointment.date == slot_date,
            Appointment.status != AppointmentStatus.CANCELLED.value,
        ).group_by(Appointment.slot_time).all()

        return {slot_time.replace(second=0, microsecond=0): count for slot_time, count in rows}

    def count_booked(self, slot_date: date, slot_time: time) -> int:
        return self.db.query(func.count(Appointment.id)).filter(
            Appointment.date == slot_date,
            Appointment.slot_time == slot_time,
            Appointment.status != AppointmentStatus.CANCELLED.value,
        ).scalar() or 0

    # ==================== Slots ====================

    def _compute_slots(self, slot_date: date, schedule: Schedule | None) -> list[Slot]:
        if schedule is None or not schedule.is_active:
            return []

        if self.is_vacation_day(slot_date):
            return []

        windows = generate_windows(
            schedule.start_time,
            schedule.end_time,
            self.settings.slot_duration,
            schedule.break_start,
            schedule.break_end,
        )
        booked_counts = self.get_booked_counts(slot_date)
        capacity = self.settings.max_patients_per_slot

        slots: list[Slot] = []
        for window in windows:
            remaining = max(0, capacity - booked_counts.get(window.start, 0))
            slots.append(
                Slot(
                    start_time=window.start,
                    end_time=window.end,
                    available=remaining > 0,
                    remaining_capacity=remaining,
                )
            )

        return slots

    def _load_slots(self, slot_date: date) -> list[Slot]:
        key = slots_key(self.settings.version, slot_date)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return [Slot.model_validate(item) for item in cached]

        slots = self._compute_slots(slot_date, self.get_schedule(slot_date.weekday()))

        if self.cache is not None:
            self.cache.set(key, [slot.model_dump(mode='json') for slot in slots])

        return slots

    def _mask_elapsed(self, slot_date: date, slots: list[Slot]) -> list[Slot]:
        now = self.now()
        if slot_date != now.date():
            return slots

        current_time = now.time()
        return [
            slot.model_copy(update={'available': False}) if slot.start_time <= current_time else slot
            for slot in slots
        ]

    def get_slots_for_date(self, slot_date: date) -> list[Slot]:
        return self._mask_elapsed(slot_date, self._load_slots(slot_date))

    def find_slot(self, slot_date: date, slot_time: time) -> Slot | None:
        for slot in self.get_slots_for_date(slot_date):
            if slot.start_time == slot_time:
                return slot
        return None

    def check_slot(self, slot_date: date, slot_time: time, lock: bool = False) -> Slot:
        """Re-validate a requested slot against the store, bypassing the cache.

        With ``lock`` the weekday's schedule row is locked for the rest of the
        transaction so concurrent bookings for that weekday run one at a time.
        """
        if datetime.combine(slot_date, slot_time) <= self.now():
            raise SlotNotAvailable(slot_date, slot_time, PAST_TIME)

        schedule = self.get_schedule(slot_date.weekday(), for_update=lock)

        if self.is_vacation_day(slot_date):
            raise SlotNotAvailable(slot_date, slot_time, VACATION)

        slots = self._mask_elapsed(slot_date, self._compute_slots(slot_date, schedule))
        slot = next((candidate for candidate in slots if candidate.start_time == slot_time), None)

        if slot is None:
            raise SlotNotAvailable(slot_date, slot_time, OUTSIDE_HOURS)

        if slot.remaining_capacity <= 0:
            raise SlotNotAvailable(slot_date, slot_time, SLOT_TAKEN)

        if not slot.available:
            raise SlotNotAvailable(slot_date, slot_time, PAST_TIME)

        return slot

    # ==================== Dates ====================

    def get_available_dates(self, from_date: date | None = None, horizon_days: int | None = None) -> list[AvailableDate]:
        today = self.today()
        from_date = from_date or today
        horizon_days = self.settings.advance_booking_days if horizon_days is None else horizon_days

        # Ranges that include today change as the day goes on.
        cacheable = self.cache is not None and from_date > today
        key = dates_key(self.settings.version, from_date, horizon_days)
        if cacheable:
            cached = self.cache.get(key)
            if cached is not None:
                return [AvailableDate.model_validate(item) for item in cached]

        dates: list[AvailableDate] = []
        for offset in range(horizon_days + 1):
            current = from_date + timedelta(days=offset)
            slots = self.get_slots_for_date(current)
            available_count = sum(1 for slot in slots if slot.available)
            if available_count > 0:
                dates.append(AvailableDate(date=current, slots_count=available_count, total_slots=len(slots)))

        if cacheable:
            self.cache.set(key, [item.model_dump(mode='json', exclude={'day_name'}) for item in dates])

        return dates

    def get_next_available_slot(self, from_date: date | None = None) -> NextAvailableSlot | None:
        today = self.today()
        from_date = max(from_date or today, today)
        last_date = today + timedelta(days=self.settings.advance_booking_days)

        current = from_date
        while current <= last_date:
            for slot in self.get_slots_for_date(current):
                if slot.available:
                    return NextAvailableSlot(date=current, slot=slot)
            current += timedelta(days=1)

        return None

    def get_slots_summary(self, days: int | None = None) -> SlotsSummary:
        days = self.settings.advance_booking_days if days is None else days
        today = self.today()

        available_dates = 0
        total_slots = 0
        available_slots = 0
        for offset in range(days + 1):
            slots = self.get_slots_for_date(today + timedelta(days=offset))
            open_slots = sum(1 for slot in slots if slot.available)
            total_slots += len(slots)
            available_slots += open_slots
            if open_slots:
                available_dates += 1

        return SlotsSummary(
            total_days=days + 1,
            available_dates=available_dates,
            total_slots=total_slots,
            available_slots=available_slots,
            next_available=self.get_next_available_slot(),
        )
