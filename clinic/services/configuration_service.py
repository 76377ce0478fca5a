"""Administrative configuration: weekly schedules, vacations and clinic settings.

Every change emits a configuration event so cached availability is dropped.
"""

import logging
from datetime import date, time

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic.core import config
from clinic.core.errors import InvalidRequest, NotFound, Unauthorized
from clinic.models.clinic_setting import ClinicSetting
from clinic.models.schedule import Schedule
from clinic.models.vacation import Vacation
from clinic.scheduling import events as domain_events
from clinic.scheduling import policies
from clinic.scheduling.events import DomainEvent, EventDispatcher
from clinic.scheduling.policies import Actor, authorize
from clinic.scheduling.slots import ClinicSettingsSnapshot

logger = logging.getLogger(__name__)

SETTING_FIELDS = (
    'clinic_name',
    'doctor_name',
    'phone',
    'address',
    'slot_duration',
    'max_patients_per_slot',
    'advance_booking_days',
    'cancellation_hours',
)

# Fields that change the slot grid or the booking rules.
VERSIONED_SETTING_FIELDS = frozenset({
    'slot_duration',
    'max_patients_per_slot',
    'advance_booking_days',
    'cancellation_hours',
})


# Fixed key of the singleton settings row.
SETTINGS_ROW_ID = 1


def find_settings(db: Session) -> ClinicSetting | None:
    return db.query(ClinicSetting).order_by(ClinicSetting.id.asc()).first()


def get_or_create_settings(db: Session) -> ClinicSetting:
    setting = find_settings(db)
    if setting is not None:
        return setting

    setting = ClinicSetting(
        id=SETTINGS_ROW_ID,
        clinic_name=config.CLINIC_NAME,
        doctor_name=config.CLINIC_DOCTOR_NAME,
        slot_duration=config.CLINIC_SLOT_DURATION,
        max_patients_per_slot=config.CLINIC_MAX_PATIENTS_PER_SLOT,
        advance_booking_days=config.CLINIC_ADVANCE_BOOKING_DAYS,
        cancellation_hours=config.CLINIC_CANCELLATION_HOURS,
        version=1,
    )
    db.add(setting)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info('Clinic settings were created by another request; reloading')
        return find_settings(db)

    db.refresh(setting)
    logger.info('Created default clinic settings')
    return setting


def load_settings_snapshot(db: Session) -> ClinicSettingsSnapshot:
    return ClinicSettingsSnapshot.from_model(get_or_create_settings(db))


def validate_schedule_hours(
    start_time: time,
    end_time: time,
    break_start: time | None = None,
    break_end: time | None = None,
) -> None:
    if start_time >= end_time:
        raise InvalidRequest('end_time', 'End time must be after start time.')

    if (break_start is None) != (break_end is None):
        raise InvalidRequest('break_end' if break_end is None else 'break_start', 'A break needs both a start and an end.')

    if break_start is not None:
        if not (start_time <= break_start < break_end <= end_time):
            raise InvalidRequest('break_start', 'The break must fall inside working hours and end after it starts.')


def validate_vacation_range(start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise InvalidRequest('end_date', 'Vacation end date must not be before its start date.')


class ConfigurationService:
    def __init__(self, db: Session, dispatcher: EventDispatcher | None = None):
        self.db = db
        self.dispatcher = dispatcher or EventDispatcher()

    def _require_staff(self, actor: Actor) -> None:
        if not authorize(actor, policies.MANAGE_CONFIGURATION):
            raise Unauthorized(actor.role.value, policies.MANAGE_CONFIGURATION)

    def _publish(self, name: str, **payload) -> None:
        self.dispatcher.dispatch([DomainEvent(name=name, payload=payload)])

    # ==================== Schedules ====================

    def list_schedules(self, actor: Actor) -> list[Schedule]:
        self._require_staff(actor)
        return self.db.query(Schedule).order_by(Schedule.day_of_week.asc()).all()

    def get_schedule(self, actor: Actor, day_of_week: int) -> Schedule:
        self._require_staff(actor)
        return self._find_schedule(day_of_week)

    def _find_schedule(self, day_of_week: int) -> Schedule:
        schedule = self.db.query(Schedule).filter(Schedule.day_of_week == day_of_week).first()
        if schedule is None:
            raise NotFound('schedule', day_of_week)
        return schedule

    def upsert_schedule(
        self,
        actor: Actor,
        day_of_week: int,
        start_time: time,
        end_time: time,
        break_start: time | None = None,
        break_end: time | None = None,
        is_active: bool = True,
    ) -> Schedule:
        self._require_staff(actor)

        if not 0 <= day_of_week <= 6:
            raise InvalidRequest('day_of_week', 'Day of week must be between 0 (Monday) and 6 (Sunday).')
        validate_schedule_hours(start_time, end_time, break_start, break_end)

        schedule = self.db.query(Schedule).filter(Schedule.day_of_week == day_of_week).first()
        if schedule is None:
            schedule = Schedule(day_of_week=day_of_week)
            self.db.add(schedule)

        schedule.start_time = start_time
        schedule.end_time = end_time
        schedule.break_start = break_start
        schedule.break_end = break_end
        schedule.is_active = is_active
        self.db.commit()
        self.db.refresh(schedule)

        logger.info('Schedule for day %s updated', day_of_week)
        self._publish(domain_events.SCHEDULE_CHANGED, day_of_week=day_of_week)
        return schedule

    def delete_schedule(self, actor: Actor, day_of_week: int) -> None:
        self._require_staff(actor)
        schedule = self._find_schedule(day_of_week)

        self.db.delete(schedule)
        self.db.commit()

        logger.info('Schedule for day %s removed', day_of_week)
        self._publish(domain_events.SCHEDULE_CHANGED, day_of_week=day_of_week)

    # ==================== Vacations ====================

    def list_vacations(self, actor: Actor, upcoming_from: date | None = None) -> list[Vacation]:
        self._require_staff(actor)
        query = self.db.query(Vacation)
        if upcoming_from is not None:
            query = query.filter(Vacation.end_date >= upcoming_from)
        return query.order_by(Vacation.start_date.asc()).all()

    def get_vacation(self, actor: Actor, vacation_id: int) -> Vacation:
        self._require_staff(actor)
        return self._find_vacation(vacation_id)

    def _find_vacation(self, vacation_id: int) -> Vacation:
        vacation = self.db.get(Vacation, vacation_id)
        if vacation is None:
            raise NotFound('vacation', vacation_id)
        return vacation

    def create_vacation(
        self,
        actor: Actor,
        start_date: date,
        end_date: date,
        title: str | None = None,
        reason: str | None = None,
    ) -> Vacation:
        self._require_staff(actor)
        validate_vacation_range(start_date, end_date)

        vacation = Vacation(start_date=start_date, end_date=end_date, title=title, reason=reason)
        self.db.add(vacation)
        self.db.commit()
        self.db.refresh(vacation)

        logger.info('Vacation %s added from %s to %s', vacation.id, start_date, end_date)
        self._publish(domain_events.VACATION_CHANGED, vacation_id=vacation.id)
        return vacation

    def update_vacation(self, actor: Actor, vacation_id: int, **changes) -> Vacation:
        self._require_staff(actor)
        vacation = self._find_vacation(vacation_id)

        start_date = changes.get('start_date') or vacation.start_date
        end_date = changes.get('end_date') or vacation.end_date
        validate_vacation_range(start_date, end_date)

        vacation.start_date = start_date
        vacation.end_date = end_date
        for field in ('title', 'reason'):
            if field in changes:
                setattr(vacation, field, changes[field])
        self.db.commit()
        self.db.refresh(vacation)

        self._publish(domain_events.VACATION_CHANGED, vacation_id=vacation.id)
        return vacation

    def delete_vacation(self, actor: Actor, vacation_id: int) -> None:
        self._require_staff(actor)
        vacation = self._find_vacation(vacation_id)

        self.db.delete(vacation)
        self.db.commit()

        logger.info('Vacation %s removed', vacation_id)
        self._publish(domain_events.VACATION_CHANGED, vacation_id=vacation_id)

    # ==================== Settings ====================

    def get_settings(self, actor: Actor) -> ClinicSetting:
        self._require_staff(actor)
        return get_or_create_settings(self.db)

    def update_settings(self, actor: Actor, **changes) -> ClinicSetting:
        self._require_staff(actor)
        setting = get_or_create_settings(self.db)

        for field in ('slot_duration', 'max_patients_per_slot'):
            if field in changes and changes[field] is not None and changes[field] < 1:
                raise InvalidRequest(field, f'{field} must be at least 1.')
        for field in ('advance_booking_days', 'cancellation_hours'):
            if field in changes and changes[field] is not None and changes[field] < 0:
                raise InvalidRequest(field, f'{field} must not be negative.')

        versioned_change = False
        for field in SETTING_FIELDS:
            if field not in changes or changes[field] is None:
                continue
            if getattr(setting, field) != changes[field]:
                setattr(setting, field, changes[field])
                versioned_change = versioned_change or field in VERSIONED_SETTING_FIELDS

        if versioned_change:
            setting.version = (setting.version or 1) + 1
        self.db.commit()
        self.db.refresh(setting)

        if versioned_change:
            logger.info('Clinic settings updated to version %s', setting.version)
            self._publish(domain_events.SETTINGS_CHANGED, version=setting.version)
        return setting
