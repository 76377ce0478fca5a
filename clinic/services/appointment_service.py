"""Appointment lifecycle operations against the store."""

import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, NamedTuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic.core import config
from clinic.core.errors import (
    OUTSIDE_HOURS,
    PAST_TIME,
    SLOT_TAKEN,
    BookingNotAllowed,
    CancellationNotAllowed,
    ClinicError,
    InvalidRequest,
    InvalidTransition,
    NotFound,
    SlotNotAvailable,
    Unauthorized,
)
from clinic.models.appointment import Appointment
from clinic.models.enums import ACTIVE_STATUSES, AppointmentStatus
from clinic.scheduling import events as domain_events
from clinic.scheduling import policies
from clinic.scheduling.availability import AvailabilityCalculator
from clinic.scheduling.events import DomainEvent, EventDispatcher
from clinic.scheduling.lifecycle import cancelled_by_for, next_status
from clinic.scheduling.policies import Actor, authorize
from clinic.scheduling.slots import ClinicSettingsSnapshot, slot_end_time

logger = logging.getLogger(__name__)

TRANSITION_EVENTS = {
    policies.CONFIRM: domain_events.APPOINTMENT_CONFIRMED,
    policies.COMPLETE: domain_events.APPOINTMENT_COMPLETED,
    policies.CANCEL: domain_events.APPOINTMENT_CANCELLED,
    policies.NO_SHOW: domain_events.APPOINTMENT_NO_SHOW,
}

_ACTIVE_VALUES = [status.value for status in ACTIVE_STATUSES]


class TransitionResult(NamedTuple):
    appointment: Appointment
    events: list[DomainEvent]


class AppointmentService:
    def __init__(
        self,
        db: Session,
        settings: ClinicSettingsSnapshot,
        calculator: AvailabilityCalculator | None = None,
        dispatcher: EventDispatcher | None = None,
        clock: Callable[[], datetime] = datetime.now,
        max_no_shows: int = config.CLINIC_MAX_NO_SHOWS,
        no_show_window_days: int = config.CLINIC_NO_SHOW_WINDOW_DAYS,
        no_show_requires_elapsed: bool = config.CLINIC_NO_SHOW_REQUIRES_ELAPSED,
    ):
        self.db = db
        self.settings = settings
        self.calculator = calculator or AvailabilityCalculator(db, settings, clock=clock)
        self.dispatcher = dispatcher or EventDispatcher()
        self._clock = clock
        self.max_no_shows = max_no_shows
        self.no_show_window_days = no_show_window_days
        self.no_show_requires_elapsed = no_show_requires_elapsed

    def now(self) -> datetime:
        return self._clock().replace(tzinfo=None)

    def _publish(self, appointment: Appointment, event_name: str, **payload) -> list[DomainEvent]:
        events = [
            DomainEvent(
                name=event_name,
                appointment_id=appointment.id,
                date=appointment.date,
                payload={'patient_id': appointment.patient_id, 'time': appointment.slot_time.strftime('%H:%M'), **payload},
            )
        ]
        self.dispatcher.dispatch(events)
        return events

    def _require(self, actor: Actor, action: str, appointment: Appointment | None = None) -> None:
        if not authorize(actor, action, appointment):
            raise Unauthorized(actor.role.value, action)

    # ==================== Booking ====================

    def _has_active_booking(self, patient_id: int, slot_date: date, slot_time: time) -> bool:
        return self.db.query(Appointment.id).filter(
            Appointment.patient_id == patient_id,
            Appointment.date == slot_date,
            Appointment.slot_time == slot_time,
            Appointment.status.in_(_ACTIVE_VALUES),
        ).first() is not None

    def count_recent_no_shows(self, patient_id: int) -> int:
        since = self.now().date() - timedelta(days=self.no_show_window_days)
        return self.db.query(func.count(Appointment.id)).filter(
            Appointment.patient_id == patient_id,
            Appointment.status == AppointmentStatus.NO_SHOW.value,
            Appointment.date >= since,
        ).scalar() or 0

    def _check_no_show_limit(self, patient_id: int) -> None:
        if self.max_no_shows <= 0:
            return

        no_show_count = self.count_recent_no_shows(patient_id)
        if no_show_count >= self.max_no_shows:
            raise BookingNotAllowed(
                'too_many_no_shows',
                'Booking is blocked because of repeated missed appointments.',
                no_show_count=no_show_count,
                max_allowed=self.max_no_shows,
            )

    def book(
        self,
        actor: Actor,
        slot_date: date,
        slot_time: time,
        notes: str | None = None,
        reason: str | None = None,
    ) -> TransitionResult:
        self._require(actor, policies.CREATE)

        slot_time = slot_time.replace(second=0, microsecond=0, tzinfo=None)
        now = self.now()

        logger.info('Attempting to book appointment for patient %s on %s at %s', actor.user_id, slot_date, slot_time)

        try:
            if datetime.combine(slot_date, slot_time) <= now:
                raise SlotNotAvailable(slot_date, slot_time, PAST_TIME)

            horizon_end = now.date() + timedelta(days=self.settings.advance_booking_days)
            if slot_date > horizon_end:
                raise SlotNotAvailable(slot_date, slot_time, OUTSIDE_HOURS, horizon_exceeded=True)

            full_slot_error = None
            try:
                self.calculator.check_slot(slot_date, slot_time, lock=True)
            except SlotNotAvailable as exc:
                if exc.reason != SLOT_TAKEN:
                    raise
                full_slot_error = exc

            if self._has_active_booking(actor.user_id, slot_date, slot_time):
                raise SlotNotAvailable(slot_date, slot_time, SLOT_TAKEN, duplicate=True)
            if full_slot_error is not None:
                raise full_slot_error

            self._check_no_show_limit(actor.user_id)

            appointment = Appointment(
                patient_id=actor.user_id,
                date=slot_date,
                slot_time=slot_time,
                end_time=slot_end_time(slot_time, self.settings.slot_duration),
                status=AppointmentStatus.PENDING.value,
                notes=notes,
                reason=reason,
                created_at=now,
            )
            self.db.add(appointment)
            self.db.flush()

            if self.calculator.count_booked(slot_date, slot_time) > self.settings.max_patients_per_slot:
                raise SlotNotAvailable(slot_date, slot_time, SLOT_TAKEN)

            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning('Duplicate booking rejected by the store for patient %s on %s at %s', actor.user_id, slot_date, slot_time)
            raise SlotNotAvailable(slot_date, slot_time, SLOT_TAKEN, duplicate=True) from exc
        except ClinicError as exc:
            self.db.rollback()
            logger.warning('Booking rejected for patient %s: %s %s', actor.user_id, exc.error_code, exc.context)
            raise

        self.db.refresh(appointment)
        logger.info('Appointment %s booked for patient %s', appointment.id, actor.user_id)

        return TransitionResult(appointment, self._publish(appointment, domain_events.APPOINTMENT_CREATED))

    # ==================== Status Management ====================

    def get_appointment(self, actor: Actor, appointment_id: int) -> Appointment:
        appointment = self.db.get(Appointment, appointment_id)
        if appointment is None:
            raise NotFound('appointment', appointment_id)
        self._require(actor, policies.VIEW, appointment)
        return appointment

    def _lock_appointment(self, appointment_id: int) -> Appointment | None:
        # Overwrites any copy of the row this session already holds.
        return self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
        ).with_for_update().populate_existing().first()

    def _transition(self, actor: Actor, appointment_id: int, action: str, apply: Callable[[Appointment, datetime], None]) -> TransitionResult:
        try:
            appointment = self._lock_appointment(appointment_id)
            if appointment is None:
                raise NotFound('appointment', appointment_id)

            self._require(actor, action, appointment)
            new_status = next_status(appointment.status, action)

            now = self.now()
            apply(appointment, now)
            appointment.status = new_status.value
            self.db.commit()
        except ClinicError:
            self.db.rollback()
            raise

        self.db.refresh(appointment)

        logger.info('Appointment %s moved to %s by %s', appointment.id, new_status.value, actor.role.value)

        return TransitionResult(appointment, self._publish(appointment, TRANSITION_EVENTS[action]))

    def confirm(self, actor: Actor, appointment_id: int) -> TransitionResult:
        def apply(appointment: Appointment, now: datetime) -> None:
            appointment.confirmed_at = now

        return self._transition(actor, appointment_id, policies.CONFIRM, apply)

    def complete(self, actor: Actor, appointment_id: int, admin_notes: str | None = None) -> TransitionResult:
        def apply(appointment: Appointment, now: datetime) -> None:
            appointment.completed_at = now
            if admin_notes is not None:
                appointment.admin_notes = admin_notes

        return self._transition(actor, appointment_id, policies.COMPLETE, apply)

    def cancel(self, actor: Actor, appointment_id: int, reason: str | None = None) -> TransitionResult:
        reason = (reason or '').strip() or None

        def apply(appointment: Appointment, now: datetime) -> None:
            if appointment.starts_at <= now:
                raise InvalidTransition(appointment.status, policies.CANCEL, reason='appointment_started')

            if actor.is_patient:
                if reason is None:
                    raise InvalidRequest('reason', 'A cancellation reason is required.')

                hours_remaining = (appointment.starts_at - now).total_seconds() / 3600
                if hours_remaining < self.settings.cancellation_hours:
                    raise CancellationNotAllowed(hours_remaining, self.settings.cancellation_hours)

            appointment.cancelled_at = now
            appointment.cancelled_by = cancelled_by_for(actor).value
            appointment.cancellation_reason = reason

        return self._transition(actor, appointment_id, policies.CANCEL, apply)

    def mark_no_show(self, actor: Actor, appointment_id: int) -> TransitionResult:
        def apply(appointment: Appointment, now: datetime) -> None:
            if self.no_show_requires_elapsed and appointment.starts_at > now:
                raise InvalidTransition(appointment.status, policies.NO_SHOW, reason='appointment_not_started')

        return self._transition(actor, appointment_id, policies.NO_SHOW, apply)

    def update_admin_notes(self, actor: Actor, appointment_id: int, admin_notes: str | None) -> Appointment:
        appointment = self.db.get(Appointment, appointment_id)
        if appointment is None:
            raise NotFound('appointment', appointment_id)
        self._require(actor, policies.UPDATE_NOTES, appointment)

        appointment.admin_notes = admin_notes
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    # ==================== Queries ====================

    def list_patient_appointments(self, actor: Actor, status: AppointmentStatus | None = None) -> list[Appointment]:
        if not actor.is_patient or actor.user_id is None:
            raise Unauthorized(actor.role.value, 'list own appointments')

        query = self.db.query(Appointment).filter(Appointment.patient_id == actor.user_id)
        if status is not None:
            query = query.filter(Appointment.status == AppointmentStatus(status).value)

        return query.order_by(Appointment.date.desc(), Appointment.slot_time.desc()).all()

    def list_for_date(self, actor: Actor, slot_date: date) -> list[Appointment]:
        self._require(actor, policies.VIEW_ANY)
        return self.db.query(Appointment).filter(
            Appointment.date == slot_date,
        ).order_by(Appointment.slot_time.asc(), Appointment.id.asc()).all()

    def list_upcoming(self, actor: Actor, days: int = 7) -> list[Appointment]:
        self._require(actor, policies.VIEW_ANY)
        today = self.now().date()
        return self.db.query(Appointment).filter(
            Appointment.status.in_(_ACTIVE_VALUES),
            Appointment.date >= today,
            Appointment.date <= today + timedelta(days=days),
        ).order_by(Appointment.date.asc(), Appointment.slot_time.asc()).all()

    def get_statistics(self, actor: Actor, from_date: date | None = None, to_date: date | None = None) -> dict:
        self._require(actor, policies.VIEW_ANY)

        query = self.db.query(Appointment.status, func.count(Appointment.id))
        if from_date is not None:
            query = query.filter(Appointment.date >= from_date)
        if to_date is not None:
            query = query.filter(Appointment.date <= to_date)

        by_status = {status.value: 0 for status in AppointmentStatus}
        for status, count in query.group_by(Appointment.status).all():
            by_status[status] = count

        return {'total': sum(by_status.values()), 'by_status': by_status}
