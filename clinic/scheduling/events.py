"""Domain events emitted by lifecycle and configuration changes.

Operations return the events they produced; the dispatcher hands them to the
subscribed handlers after the change is committed.
"""

import datetime as dt
import logging
from collections import defaultdict
from typing import Callable, Iterable

from pydantic import BaseModel, ConfigDict, Field

from clinic.scheduling.cache import SlotCache

logger = logging.getLogger(__name__)

APPOINTMENT_CREATED = 'appointment.created'
APPOINTMENT_CONFIRMED = 'appointment.confirmed'
APPOINTMENT_CANCELLED = 'appointment.cancelled'
APPOINTMENT_COMPLETED = 'appointment.completed'
APPOINTMENT_NO_SHOW = 'appointment.no_show'

SCHEDULE_CHANGED = 'schedule.changed'
VACATION_CHANGED = 'vacation.changed'
SETTINGS_CHANGED = 'settings.changed'

# Events that change how many places are left in a slot.
CAPACITY_EVENTS = frozenset({APPOINTMENT_CREATED, APPOINTMENT_CANCELLED})
CONFIGURATION_EVENTS = frozenset({SCHEDULE_CHANGED, VACATION_CHANGED, SETTINGS_CHANGED})

WILDCARD = '*'


class DomainEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    appointment_id: int | None = None
    date: dt.date | None = None
    payload: dict = Field(default_factory=dict)
    occurred_at: dt.datetime = Field(default_factory=dt.datetime.now)


Handler = Callable[[DomainEvent], None]


class EventDispatcher:
    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, name: str, handler: Handler) -> None:
        self._handlers[name].append(handler)

    def dispatch(self, events: Iterable[DomainEvent]) -> None:
        for event in events:
            for handler in [*self._handlers.get(event.name, []), *self._handlers.get(WILDCARD, [])]:
                try:
                    handler(event)
                except Exception:
                    # The change is already committed; a failing subscriber must not undo it.
                    logger.exception('Handler %r failed for event %s', handler, event.name)


class CacheInvalidationHandler:
    def __init__(self, cache: SlotCache):
        self.cache = cache

    def __call__(self, event: DomainEvent) -> None:
        if event.name in CONFIGURATION_EVENTS:
            self.cache.invalidate_all()
        elif event.name in CAPACITY_EVENTS:
            if event.date is None:
                self.cache.invalidate_all()
            else:
                self.cache.invalidate_date(event.date)


def log_notification(event: DomainEvent) -> None:
    """Stand-in for the SMS / in-app notification subsystem."""
    if event.appointment_id is None:
        return
    logger.info(
        'Notification queued: %s for appointment %s on %s',
        event.name,
        event.appointment_id,
        event.date,
    )


def build_dispatcher(cache: SlotCache | None) -> EventDispatcher:
    dispatcher = EventDispatcher()
    if cache is not None:
        invalidate = CacheInvalidationHandler(cache)
        for name in CAPACITY_EVENTS | CONFIGURATION_EVENTS:
            dispatcher.subscribe(name, invalidate)
    dispatcher.subscribe(WILDCARD, log_notification)
    return dispatcher
