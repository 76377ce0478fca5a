"""Enumerations shared by the models and the scheduling core."""

from enum import Enum


class UserRole(str, Enum):
    ADMIN = 'admin'
    SECRETARY = 'secretary'
    PATIENT = 'patient'


class AppointmentStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    NO_SHOW = 'no_show'


ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})
FINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})


class CancelledBy(str, Enum):
    PATIENT = 'patient'
    ADMIN = 'admin'
    SYSTEM = 'system'
