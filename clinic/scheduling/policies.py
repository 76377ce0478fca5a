"""Who may do what to an appointment.

``authorize`` is a pure function of the actor, the action and (optionally)
the appointment, so it can be exercised without a request or a database.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from clinic.models.enums import UserRole


class ActorRole(str, Enum):
    ADMIN = 'admin'
    SECRETARY = 'secretary'
    PATIENT = 'patient'
    SYSTEM = 'system'


class Actor(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: ActorRole
    user_id: int | None = None

    @property
    def is_staff(self) -> bool:
        return self.role in (ActorRole.ADMIN, ActorRole.SECRETARY)

    @property
    def is_patient(self) -> bool:
        return self.role == ActorRole.PATIENT

    @property
    def is_system(self) -> bool:
        return self.role == ActorRole.SYSTEM

    @classmethod
    def from_user(cls, user) -> 'Actor':
        return cls(role=ActorRole(UserRole(user.role).value), user_id=user.id)

    @classmethod
    def system(cls) -> 'Actor':
        return cls(role=ActorRole.SYSTEM)


CREATE = 'create'
VIEW = 'view'
VIEW_ANY = 'view_any'
CONFIRM = 'confirm'
COMPLETE = 'complete'
CANCEL = 'cancel'
NO_SHOW = 'no_show'
UPDATE_NOTES = 'update_notes'
MANAGE_CONFIGURATION = 'manage_configuration'

STAFF_ONLY_ACTIONS = frozenset({VIEW_ANY, CONFIRM, COMPLETE, NO_SHOW, UPDATE_NOTES, MANAGE_CONFIGURATION})


def owns(actor: Actor, appointment) -> bool:
    return (
        actor.is_patient
        and appointment is not None
        and actor.user_id is not None
        and actor.user_id == appointment.patient_id
    )


def authorize(actor: Actor, action: str, appointment=None) -> bool:
    if action == CREATE:
        return actor.is_patient and actor.user_id is not None

    if action in STAFF_ONLY_ACTIONS:
        return actor.is_staff

    if action == VIEW:
        return actor.is_staff or owns(actor, appointment)

    if action == CANCEL:
        return actor.is_staff or actor.is_system or owns(actor, appointment)

    return False
