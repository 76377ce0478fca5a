import os
from datetime import date, datetime, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret-key-for-the-clinic-suite')

from clinic.database import Base  # noqa: E402
from clinic.models.appointment import Appointment  # noqa: E402
from clinic.models.clinic_setting import ClinicSetting  # noqa: E402,F401
from clinic.models.schedule import Schedule  # noqa: E402
from clinic.models.user import User  # noqa: E402
from clinic.models.vacation import Vacation  # noqa: E402
from clinic.scheduling.availability import AvailabilityCalculator  # noqa: E402
from clinic.scheduling.events import EventDispatcher  # noqa: E402
from clinic.scheduling.policies import Actor  # noqa: E402
from clinic.scheduling.slots import ClinicSettingsSnapshot, slot_end_time  # noqa: E402
from clinic.services.appointment_service import AppointmentService  # noqa: E402

# Monday morning; the clinic only opens on Sundays in most tests.
NOW = datetime(2026, 1, 5, 8, 0)
SUNDAY = 6


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def settings() -> ClinicSettingsSnapshot:
    return ClinicSettingsSnapshot(
        slot_duration=30,
        max_patients_per_slot=1,
        advance_booking_days=30,
        cancellation_hours=24,
        version=1,
    )


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def _add_user(db, email: str, role: str, full_name: str | None = None) -> User:
    user = User(email=email, role=role, full_name=full_name)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def patient(db) -> User:
    return _add_user(db, 'patient@example.com', 'patient', 'Pat Patient')


@pytest.fixture
def other_patient(db) -> User:
    return _add_user(db, 'other@example.com', 'patient', 'Olive Other')


@pytest.fixture
def third_patient(db) -> User:
    return _add_user(db, 'third@example.com', 'patient')


@pytest.fixture
def admin(db) -> User:
    return _add_user(db, 'admin@example.com', 'admin', 'Ada Admin')


@pytest.fixture
def secretary(db) -> User:
    return _add_user(db, 'desk@example.com', 'secretary')


@pytest.fixture
def patient_actor(patient) -> Actor:
    return Actor.from_user(patient)


@pytest.fixture
def other_patient_actor(other_patient) -> Actor:
    return Actor.from_user(other_patient)


@pytest.fixture
def admin_actor(admin) -> Actor:
    return Actor.from_user(admin)


@pytest.fixture
def secretary_actor(secretary) -> Actor:
    return Actor.from_user(secretary)


@pytest.fixture
def add_schedule(db):
    def _add(day_of_week: int = SUNDAY, start: time = time(9, 0), end: time = time(17, 0),
             break_start: time | None = None, break_end: time | None = None, is_active: bool = True) -> Schedule:
        schedule = Schedule(
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
            break_start=break_start,
            break_end=break_end,
            is_active=is_active,
        )
        db.add(schedule)
        db.commit()
        db.refresh(schedule)
        return schedule

    return _add


@pytest.fixture
def sunday_schedule(add_schedule) -> Schedule:
    return add_schedule()


@pytest.fixture
def add_vacation(db):
    def _add(start_date: date, end_date: date | None = None, title: str = 'Closed') -> Vacation:
        vacation = Vacation(start_date=start_date, end_date=end_date or start_date, title=title)
        db.add(vacation)
        db.commit()
        db.refresh(vacation)
        return vacation

    return _add


@pytest.fixture
def add_appointment(db):
    def _add(user: User, slot_date: date, slot_time: time, status: str = 'pending') -> Appointment:
        appointment = Appointment(
            patient_id=user.id,
            date=slot_date,
            slot_time=slot_time,
            end_time=slot_end_time(slot_time, 30),
            status=status,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _add


@pytest.fixture
def calculator(db, settings, clock) -> AvailabilityCalculator:
    return AvailabilityCalculator(db, settings, clock=clock)


@pytest.fixture
def dispatcher() -> EventDispatcher:
    return EventDispatcher()


@pytest.fixture
def service(db, settings, calculator, dispatcher, clock) -> AppointmentService:
    return AppointmentService(db, settings, calculator=calculator, dispatcher=dispatcher, clock=clock)
