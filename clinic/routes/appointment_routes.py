import datetime as dt
from datetime import datetime, time

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator

from clinic.auth.dependencies import get_current_actor
from clinic.models.enums import AppointmentStatus
from clinic.routes.deps import get_appointment_service, handle_database_errors
from clinic.scheduling.policies import Actor
from clinic.services.appointment_service import AppointmentService

router = APIRouter(tags=['appointments'])

MAX_APPOINTMENT_NOTES_LENGTH = 1000
MAX_CANCELLATION_REASON_LENGTH = 500


def _normalize_text(value: str | None, limit: int, label: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > limit:
        raise ValueError(f'{label} must be {limit} characters or fewer.')

    return normalized


class BookAppointmentRequest(BaseModel):
    date: dt.date
    time: dt.time
    notes: str | None = None
    reason: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_text(value, MAX_APPOINTMENT_NOTES_LENGTH, 'Notes')

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_text(value, MAX_CANCELLATION_REASON_LENGTH, 'Reason')


class CancelAppointmentRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_text(value, MAX_CANCELLATION_REASON_LENGTH, 'Reason')


class CompleteAppointmentRequest(BaseModel):
    admin_notes: str | None = None

    @field_validator('admin_notes')
    @classmethod
    def validate_admin_notes(cls, value: str | None) -> str | None:
        return _normalize_text(value, MAX_APPOINTMENT_NOTES_LENGTH, 'Admin notes')


class UpdateNotesRequest(CompleteAppointmentRequest):
    pass


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    date: dt.date
    slot_time: time
    end_time: time
    status: AppointmentStatus
    reason: str | None = None
    notes: str | None = None
    admin_notes: str | None = None
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    cancelled_at: datetime | None = None
    confirmed_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: BookAppointmentRequest,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    with handle_database_errors(service.db):
        result = service.book(actor, data.date, data.time, notes=data.notes, reason=data.reason)

    return result.appointment


@router.get('/mine', response_model=list[AppointmentResponse])
def list_my_appointments(
    appointment_status: AppointmentStatus | None = Query(default=None, alias='status'),
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    with handle_database_errors(service.db):
        return service.list_patient_appointments(actor, appointment_status)


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    with handle_database_errors(service.db):
        return service.get_appointment(actor, appointment_id)


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    data: CancelAppointmentRequest,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    with handle_database_errors(service.db):
        result = service.cancel(actor, appointment_id, reason=data.reason)

    return result.appointment


@router.post('/{appointment_id}/confirm', response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    with handle_database_errors(service.db):
        result = service.confirm(actor, appointment_id)

    return result.appointment


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    data: CompleteAppointmentRequest,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    with handle_database_errors(service.db):
        result = service.complete(actor, appointment_id, admin_notes=data.admin_notes)

    return result.appointment


@router.post('/{appointment_id}/no-show', response_model=AppointmentResponse)
def mark_no_show(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    with handle_database_errors(service.db):
        result = service.mark_no_show(actor, appointment_id)

    return result.appointment


@router.patch('/{appointment_id}/notes', response_model=AppointmentResponse)
def update_appointment_notes(
    appointment_id: int,
    data: UpdateNotesRequest,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    with handle_database_errors(service.db):
        return service.update_admin_notes(actor, appointment_id, data.admin_notes)
