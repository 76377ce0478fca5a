import logging
from contextlib import contextmanager
from functools import lru_cache

from fastapi import Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.core import config
from clinic.database import get_db
from clinic.scheduling.availability import AvailabilityCalculator
from clinic.scheduling.cache import MemorySlotCache, RedisSlotCache, SlotCache
from clinic.scheduling.events import EventDispatcher, build_dispatcher
from clinic.scheduling.slots import ClinicSettingsSnapshot
from clinic.services.appointment_service import AppointmentService
from clinic.services.configuration_service import ConfigurationService, load_settings_snapshot

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


@contextmanager
def handle_database_errors(db: Session):
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Database operation failed')
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@lru_cache
def get_slot_cache() -> SlotCache:
    if config.REDIS_URL:
        logger.info('Using Redis availability cache')
        return RedisSlotCache.from_url(config.REDIS_URL, ttl_seconds=config.CLINIC_SLOTS_CACHE_TTL)

    if config.APP_ENV.lower() != 'development':
        logger.warning(
            'REDIS_URL is not set; the availability cache is per process and '
            'other workers may serve slots up to %ss stale',
            config.CLINIC_SLOTS_CACHE_TTL,
        )
    return MemorySlotCache(ttl_seconds=config.CLINIC_SLOTS_CACHE_TTL)


@lru_cache
def get_dispatcher() -> EventDispatcher:
    return build_dispatcher(get_slot_cache())


def get_settings_snapshot(db: Session = Depends(get_db)) -> ClinicSettingsSnapshot:
    with handle_database_errors(db):
        return load_settings_snapshot(db)


def get_calculator(
    db: Session = Depends(get_db),
    settings: ClinicSettingsSnapshot = Depends(get_settings_snapshot),
    cache: SlotCache = Depends(get_slot_cache),
) -> AvailabilityCalculator:
    return AvailabilityCalculator(db, settings, cache=cache)


def get_appointment_service(
    db: Session = Depends(get_db),
    settings: ClinicSettingsSnapshot = Depends(get_settings_snapshot),
    calculator: AvailabilityCalculator = Depends(get_calculator),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> AppointmentService:
    return AppointmentService(db, settings, calculator=calculator, dispatcher=dispatcher)


def get_configuration_service(
    db: Session = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> ConfigurationService:
    return ConfigurationService(db, dispatcher=dispatcher)
