"""Domain errors raised by the scheduling core.

Every error carries a machine readable ``error_code`` and a ``context`` dict
so the HTTP layer can render a precise message without parsing prose.
"""

from datetime import date, time


SLOT_TAKEN = 'slot_taken'
VACATION = 'vacation'
OUTSIDE_HOURS = 'outside_hours'
PAST_TIME = 'past_time'

SLOT_REASON_MESSAGES = {
    SLOT_TAKEN: 'This slot is already booked.',
    VACATION: 'The clinic is closed for vacation on this date.',
    OUTSIDE_HOURS: 'The requested time is outside working hours.',
    PAST_TIME: 'The requested time has already passed.',
}


class ClinicError(Exception):
    """Base class for recoverable business errors."""

    status_code = 422

    def __init__(self, message: str, error_code: str = 'BUSINESS_ERROR', context: dict | None = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> dict:
        return {
            'success': False,
            'message': self.message,
            'error_code': self.error_code,
            'context': self.context,
        }


class SlotNotAvailable(ClinicError):
    def __init__(self, slot_date: date, slot_time: time, reason: str = SLOT_TAKEN, **extra):
        if reason not in SLOT_REASON_MESSAGES:
            raise ValueError(f'Unknown slot reason: {reason}')
        super().__init__(
            SLOT_REASON_MESSAGES[reason],
            'SLOT_NOT_AVAILABLE',
            {
                'date': slot_date.isoformat(),
                'time': slot_time.strftime('%H:%M'),
                'reason': reason,
                **extra,
            },
        )
        self.reason = reason


class CancellationNotAllowed(ClinicError):
    def __init__(self, hours_remaining: float, hours_required: int):
        super().__init__(
            f'Appointments can only be cancelled at least {hours_required} hours in advance.',
            'CANCELLATION_NOT_ALLOWED',
            {
                'hours_remaining': round(hours_remaining, 2),
                'hours_required': hours_required,
            },
        )
        self.hours_remaining = hours_remaining
        self.hours_required = hours_required


class InvalidTransition(ClinicError):
    status_code = 409

    def __init__(self, current: str, attempted: str, **extra):
        super().__init__(
            f'Cannot {attempted} an appointment that is {current}.',
            'INVALID_STATUS_TRANSITION',
            {'from': current, 'attempted': attempted, **extra},
        )
        self.current = current
        self.attempted = attempted


class Unauthorized(ClinicError):
    status_code = 403

    def __init__(self, actor_role: str, action: str):
        super().__init__(
            f'A {actor_role} is not allowed to {action} this appointment.',
            'UNAUTHORIZED',
            {'actor_role': actor_role, 'action': action},
        )
        self.actor_role = actor_role
        self.action = action


class NotFound(ClinicError):
    status_code = 404

    def __init__(self, entity: str, entity_id):
        super().__init__(
            f'{entity.capitalize()} not found.',
            'NOT_FOUND',
            {'entity': entity, 'id': entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class BookingNotAllowed(ClinicError):
    def __init__(self, reason: str, message: str, **extra):
        super().__init__(message, 'BOOKING_NOT_ALLOWED', {'reason': reason, **extra})
        self.reason = reason


class InvalidRequest(ClinicError):
    status_code = 400

    def __init__(self, field: str, message: str):
        super().__init__(message, 'INVALID_REQUEST', {'field': field})
        self.field = field
