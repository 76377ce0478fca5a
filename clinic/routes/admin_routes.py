import datetime as dt
from datetime import date, time

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from clinic.auth.dependencies import get_current_actor
from clinic.routes.appointment_routes import AppointmentResponse
from clinic.routes.deps import (
    get_appointment_service,
    get_configuration_service,
    handle_database_errors,
)
from clinic.scheduling.policies import Actor
from clinic.services.appointment_service import AppointmentService
from clinic.services.configuration_service import ConfigurationService

router = APIRouter(tags=['admin'])


class ScheduleRequest(BaseModel):
    start_time: time
    end_time: time
    break_start: time | None = None
    break_end: time | None = None
    is_active: bool = True


class ScheduleResponse(BaseModel):
    id: int
    day_of_week: int
    day_name: str
    start_time: time
    end_time: time
    break_start: time | None = None
    break_end: time | None = None
    is_active: bool

    class Config:
        from_attributes = True


class VacationRequest(BaseModel):
    start_date: dt.date
    end_date: dt.date
    title: str | None = Field(default=None, max_length=200)
    reason: str | None = Field(default=None, max_length=500)


class VacationUpdateRequest(BaseModel):
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    title: str | None = Field(default=None, max_length=200)
    reason: str | None = Field(default=None, max_length=500)


class VacationResponse(BaseModel):
    id: int
    start_date: dt.date
    end_date: dt.date
    title: str | None = None
    reason: str | None = None
    days_count: int

    class Config:
        from_attributes = True


class SettingsRequest(BaseModel):
    clinic_name: str | None = None
    doctor_name: str | None = None
    phone: str | None = None
    address: str | None = None
    slot_duration: int | None = Field(default=None, ge=5, le=240)
    max_patients_per_slot: int | None = Field(default=None, ge=1)
    advance_booking_days: int | None = Field(default=None, ge=0, le=365)
    cancellation_hours: int | None = Field(default=None, ge=0)


class SettingsResponse(BaseModel):
    clinic_name: str | None = None
    doctor_name: str | None = None
    phone: str | None = None
    address: str | None = None
    slot_duration: int
    max_patients_per_slot: int
    advance_booking_days: int
    cancellation_hours: int
    version: int

    class Config:
        from_attributes = True


# ==================== Appointments ====================


@router.get('/appointments', response_model=list[AppointmentResponse])
def list_appointments_for_date(
    appointment_date: date = Query(..., alias='date'),
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    with handle_database_errors(service.db):
        return service.list_for_date(actor, appointment_date)


@router.get('/appointments/upcoming', response_model=list[AppointmentResponse])
def list_upcoming_appointments(
    days: int = Query(default=7, ge=0, le=90),
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    with handle_database_errors(service.db):
        return service.list_upcoming(actor, days)


@router.get('/appointments/statistics')
def get_appointment_statistics(
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    with handle_database_errors(service.db):
        return service.get_statistics(actor, from_date, to_date)


# ==================== Schedules ====================


@router.get('/schedules', response_model=list[ScheduleResponse])
def list_schedules(
    actor: Actor = Depends(get_current_actor),
    service: ConfigurationService = Depends(get_configuration_service),
):
    with handle_database_errors(service.db):
        return service.list_schedules(actor)


@router.get('/schedules/{day_of_week}', response_model=ScheduleResponse)
def get_schedule(
    day_of_week: int,
    actor: Actor = Depends(get_current_actor),
    service: ConfigurationService = Depends(get_configuration_service),
):
    with handle_database_errors(service.db):
        return service.get_schedule(actor, day_of_week)


@router.put('/schedules/{day_of_week}', response_model=ScheduleResponse)
def upsert_schedule(
    day_of_week: int,
    data: ScheduleRequest,
    actor: Actor = Depends(get_current_actor),
    service: ConfigurationService = Depends(get_configuration_service),
):
    with handle_database_errors(service.db):
        return service.upsert_schedule(actor, day_of_week, **data.model_dump())


@router.delete('/schedules/{day_of_week}', status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    day_of_week: int,
    actor: Actor = Depends(get_current_actor),
    service: ConfigurationService = Depends(get_configuration_service),
):
    with handle_database_errors(service.db):
        service.delete_schedule(actor, day_of_week)


# ==================== Vacations ====================


@router.get('/vacations', response_model=list[VacationResponse])
def list_vacations(
    upcoming_only: bool = Query(default=False),
    actor: Actor = Depends(get_current_actor),
    service: ConfigurationService = Depends(get_configuration_service),
):
    with handle_database_errors(service.db):
        return service.list_vacations(actor, upcoming_from=date.today() if upcoming_only else None)


@router.post('/vacations', response_model=VacationResponse, status_code=status.HTTP_201_CREATED)
def create_vacation(
    data: VacationRequest,
    actor: Actor = Depends(get_current_actor),
    service: ConfigurationService = Depends(get_configuration_service),
):
    with handle_database_errors(service.db):
        return service.create_vacation(actor, **data.model_dump())


@router.put('/vacations/{vacation_id}', response_model=VacationResponse)
def update_vacation(
    vacation_id: int,
    data: VacationUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    service: ConfigurationService = Depends(get_configuration_service),
):
    with handle_database_errors(service.db):
        return service.update_vacation(actor, vacation_id, **data.model_dump(exclude_unset=True))


@router.delete('/vacations/{vacation_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_vacation(
    vacation_id: int,
    actor: Actor = Depends(get_current_actor),
    service: ConfigurationService = Depends(get_configuration_service),
):
    with handle_database_errors(service.db):
        service.delete_vacation(actor, vacation_id)


# ==================== Settings ====================


@router.get('/settings', response_model=SettingsResponse)
def get_settings(
    actor: Actor = Depends(get_current_actor),
    service: ConfigurationService = Depends(get_configuration_service),
):
    with handle_database_errors(service.db):
        return service.get_settings(actor)


@router.put('/settings', response_model=SettingsResponse)
def update_settings(
    data: SettingsRequest,
    actor: Actor = Depends(get_current_actor),
    service: ConfigurationService = Depends(get_configuration_service),
):
    with handle_database_errors(service.db):
        return service.update_settings(actor, **data.model_dump(exclude_unset=True))
