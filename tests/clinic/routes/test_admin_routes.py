from datetime import date, time

import pytest

from clinic.core.errors import InvalidRequest, Unauthorized
from clinic.routes.admin_routes import (
    ScheduleRequest,
    ScheduleResponse,
    SettingsRequest,
    VacationRequest,
    VacationResponse,
    VacationUpdateRequest,
    create_vacation,
    delete_schedule,
    delete_vacation,
    get_appointment_statistics,
    get_schedule,
    get_settings,
    list_appointments_for_date,
    list_schedules,
    list_upcoming_appointments,
    list_vacations,
    update_settings,
    update_vacation,
    upsert_schedule,
)
from clinic.services.configuration_service import ConfigurationService

NEXT_SUNDAY = date(2026, 1, 11)


@pytest.fixture
def config_service(db, dispatcher) -> ConfigurationService:
    return ConfigurationService(db, dispatcher=dispatcher)


def test_schedule_endpoints(config_service, admin_actor) -> None:
    saved = upsert_schedule(
        day_of_week=6,
        data=ScheduleRequest(start_time=time(9, 0), end_time=time(17, 0), break_start=time(13, 0), break_end=time(14, 0)),
        actor=admin_actor,
        service=config_service,
    )
    response = ScheduleResponse.model_validate(saved)

    assert response.day_name == 'Sunday'
    assert response.break_start == time(13, 0)
    assert get_schedule(day_of_week=6, actor=admin_actor, service=config_service).id == saved.id
    assert len(list_schedules(actor=admin_actor, service=config_service)) == 1

    delete_schedule(day_of_week=6, actor=admin_actor, service=config_service)
    assert list_schedules(actor=admin_actor, service=config_service) == []


def test_schedule_endpoint_rejects_inverted_hours(config_service, admin_actor) -> None:
    with pytest.raises(InvalidRequest):
        upsert_schedule(
            day_of_week=1,
            data=ScheduleRequest(start_time=time(17, 0), end_time=time(9, 0)),
            actor=admin_actor,
            service=config_service,
        )


def test_vacation_endpoints(config_service, secretary_actor) -> None:
    created = create_vacation(
        data=VacationRequest(start_date=date(2026, 2, 1), end_date=date(2026, 2, 3), title='Conference'),
        actor=secretary_actor,
        service=config_service,
    )
    updated = update_vacation(
        vacation_id=created.id,
        data=VacationUpdateRequest(reason='Annual meeting'),
        actor=secretary_actor,
        service=config_service,
    )

    response = VacationResponse.model_validate(updated)
    assert response.title == 'Conference'
    assert response.reason == 'Annual meeting'
    assert response.days_count == 3
    assert [item.id for item in list_vacations(upcoming_only=False, actor=secretary_actor, service=config_service)] == [created.id]

    delete_vacation(vacation_id=created.id, actor=secretary_actor, service=config_service)
    assert list_vacations(upcoming_only=False, actor=secretary_actor, service=config_service) == []


def test_settings_endpoints(config_service, admin_actor, patient_actor) -> None:
    before = get_settings(actor=admin_actor, service=config_service)
    assert before.version == 1

    after = update_settings(
        data=SettingsRequest(max_patients_per_slot=3, clinic_name='Harbor Clinic'),
        actor=admin_actor,
        service=config_service,
    )

    assert after.max_patients_per_slot == 3
    assert after.clinic_name == 'Harbor Clinic'
    assert after.version == 2

    with pytest.raises(Unauthorized):
        update_settings(data=SettingsRequest(slot_duration=15), actor=patient_actor, service=config_service)


def test_patient_cannot_read_admin_configuration(config_service, admin_actor, patient_actor) -> None:
    upsert_schedule(
        day_of_week=6,
        data=ScheduleRequest(start_time=time(9, 0), end_time=time(17, 0)),
        actor=admin_actor,
        service=config_service,
    )

    with pytest.raises(Unauthorized):
        list_schedules(actor=patient_actor, service=config_service)
    with pytest.raises(Unauthorized):
        get_schedule(day_of_week=6, actor=patient_actor, service=config_service)
    with pytest.raises(Unauthorized):
        list_vacations(upcoming_only=False, actor=patient_actor, service=config_service)
    with pytest.raises(Unauthorized):
        get_settings(actor=patient_actor, service=config_service)


def test_appointment_listing_endpoints(service, add_appointment, patient, other_patient, admin_actor, patient_actor) -> None:
    add_appointment(patient, NEXT_SUNDAY, time(10, 0))
    add_appointment(other_patient, NEXT_SUNDAY, time(9, 0), status='cancelled')

    for_date = list_appointments_for_date(appointment_date=NEXT_SUNDAY, actor=admin_actor, service=service)
    upcoming = list_upcoming_appointments(days=7, actor=admin_actor, service=service)
    statistics = get_appointment_statistics(from_date=None, to_date=None, actor=admin_actor, service=service)

    assert [item.slot_time for item in for_date] == [time(9, 0), time(10, 0)]
    assert [item.slot_time for item in upcoming] == [time(10, 0)]
    assert statistics['total'] == 2
    assert statistics['by_status']['cancelled'] == 1

    with pytest.raises(Unauthorized):
        list_appointments_for_date(appointment_date=NEXT_SUNDAY, actor=patient_actor, service=service)
