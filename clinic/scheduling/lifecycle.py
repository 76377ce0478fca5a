"""Appointment state machine.

The transition table is plain data; every (status, event) pair missing from
it is rejected, which is what makes the terminal statuses terminal.
"""

from clinic.core.errors import InvalidTransition
from clinic.models.enums import AppointmentStatus, CancelledBy
from clinic.scheduling import policies
from clinic.scheduling.policies import Actor, ActorRole


TRANSITIONS: dict[tuple[AppointmentStatus, str], AppointmentStatus] = {
    (AppointmentStatus.PENDING, policies.CONFIRM): AppointmentStatus.CONFIRMED,
    (AppointmentStatus.CONFIRMED, policies.COMPLETE): AppointmentStatus.COMPLETED,
    (AppointmentStatus.PENDING, policies.CANCEL): AppointmentStatus.CANCELLED,
    (AppointmentStatus.CONFIRMED, policies.CANCEL): AppointmentStatus.CANCELLED,
    (AppointmentStatus.CONFIRMED, policies.NO_SHOW): AppointmentStatus.NO_SHOW,
}


def allowed_events(current: AppointmentStatus) -> list[str]:
    return [event for (status, event) in TRANSITIONS if status == current]


def next_status(current: AppointmentStatus | str, event: str) -> AppointmentStatus:
    current = AppointmentStatus(current)
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransition(current.value, event) from None


def cancelled_by_for(actor: Actor) -> CancelledBy:
    if actor.role == ActorRole.PATIENT:
        return CancelledBy.PATIENT
    if actor.role == ActorRole.SYSTEM:
        return CancelledBy.SYSTEM
    return CancelledBy.ADMIN
