from types import SimpleNamespace

import pytest

from clinic.core.errors import InvalidTransition
from clinic.models.enums import FINAL_STATUSES, AppointmentStatus, CancelledBy
from clinic.scheduling import policies
from clinic.scheduling.lifecycle import allowed_events, cancelled_by_for, next_status
from clinic.scheduling.policies import Actor, ActorRole, authorize

ALL_EVENTS = [policies.CONFIRM, policies.COMPLETE, policies.CANCEL, policies.NO_SHOW]

patient = Actor(role=ActorRole.PATIENT, user_id=1)
other_patient = Actor(role=ActorRole.PATIENT, user_id=2)
admin = Actor(role=ActorRole.ADMIN, user_id=10)
secretary = Actor(role=ActorRole.SECRETARY, user_id=11)
system = Actor.system()
owned_appointment = SimpleNamespace(patient_id=1)


@pytest.mark.parametrize(
    ('current', 'event', 'expected'),
    [
        (AppointmentStatus.PENDING, policies.CONFIRM, AppointmentStatus.CONFIRMED),
        (AppointmentStatus.PENDING, policies.CANCEL, AppointmentStatus.CANCELLED),
        (AppointmentStatus.CONFIRMED, policies.COMPLETE, AppointmentStatus.COMPLETED),
        (AppointmentStatus.CONFIRMED, policies.CANCEL, AppointmentStatus.CANCELLED),
        (AppointmentStatus.CONFIRMED, policies.NO_SHOW, AppointmentStatus.NO_SHOW),
    ],
)
def test_next_status_follows_transition_table(current: AppointmentStatus, event: str, expected: AppointmentStatus) -> None:
    assert next_status(current, event) == expected


def test_next_status_accepts_stored_string_status() -> None:
    assert next_status('pending', policies.CONFIRM) == AppointmentStatus.CONFIRMED


@pytest.mark.parametrize('current', sorted(FINAL_STATUSES, key=lambda status: status.value))
@pytest.mark.parametrize('event', ALL_EVENTS)
def test_final_statuses_reject_every_event(current: AppointmentStatus, event: str) -> None:
    with pytest.raises(InvalidTransition) as exception_info:
        next_status(current, event)

    assert exception_info.value.context == {'from': current.value, 'attempted': event}
    assert exception_info.value.status_code == 409


@pytest.mark.parametrize(
    ('current', 'event'),
    [
        (AppointmentStatus.PENDING, policies.COMPLETE),
        (AppointmentStatus.PENDING, policies.NO_SHOW),
        (AppointmentStatus.CONFIRMED, policies.CONFIRM),
    ],
)
def test_out_of_order_events_are_rejected(current: AppointmentStatus, event: str) -> None:
    with pytest.raises(InvalidTransition):
        next_status(current, event)


def test_allowed_events() -> None:
    assert set(allowed_events(AppointmentStatus.PENDING)) == {policies.CONFIRM, policies.CANCEL}
    assert set(allowed_events(AppointmentStatus.CONFIRMED)) == {policies.COMPLETE, policies.CANCEL, policies.NO_SHOW}
    assert allowed_events(AppointmentStatus.NO_SHOW) == []


def test_cancelled_by_for_each_actor() -> None:
    assert cancelled_by_for(patient) == CancelledBy.PATIENT
    assert cancelled_by_for(admin) == CancelledBy.ADMIN
    assert cancelled_by_for(secretary) == CancelledBy.ADMIN
    assert cancelled_by_for(system) == CancelledBy.SYSTEM


@pytest.mark.parametrize(
    ('actor', 'action', 'appointment', 'expected'),
    [
        (patient, policies.CREATE, None, True),
        (Actor(role=ActorRole.PATIENT), policies.CREATE, None, False),
        (admin, policies.CREATE, None, False),
        (system, policies.CREATE, None, False),
        (patient, policies.VIEW, owned_appointment, True),
        (other_patient, policies.VIEW, owned_appointment, False),
        (secretary, policies.VIEW, owned_appointment, True),
        (system, policies.VIEW, owned_appointment, False),
        (patient, policies.CANCEL, owned_appointment, True),
        (other_patient, policies.CANCEL, owned_appointment, False),
        (admin, policies.CANCEL, owned_appointment, True),
        (system, policies.CANCEL, owned_appointment, True),
        (patient, policies.CONFIRM, owned_appointment, False),
        (secretary, policies.CONFIRM, owned_appointment, True),
        (admin, policies.COMPLETE, owned_appointment, True),
        (patient, policies.NO_SHOW, owned_appointment, False),
        (system, policies.NO_SHOW, owned_appointment, False),
        (patient, policies.VIEW_ANY, None, False),
        (secretary, policies.UPDATE_NOTES, owned_appointment, True),
        (patient, policies.MANAGE_CONFIGURATION, None, False),
        (admin, policies.MANAGE_CONFIGURATION, None, True),
        (admin, 'delete', owned_appointment, False),
    ],
)
def test_authorize(actor: Actor, action: str, appointment, expected: bool) -> None:
    assert authorize(actor, action, appointment) is expected


def test_actor_from_user_maps_role() -> None:
    actor = Actor.from_user(SimpleNamespace(id=7, role='secretary'))

    assert actor.role == ActorRole.SECRETARY
    assert actor.user_id == 7
    assert actor.is_staff
    assert not actor.is_patient


def test_actor_from_user_rejects_unknown_role() -> None:
    with pytest.raises(ValueError):
        Actor.from_user(SimpleNamespace(id=7, role='nurse'))
