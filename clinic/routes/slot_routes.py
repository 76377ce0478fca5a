import datetime as dt
from datetime import date, time

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from clinic.auth.dependencies import get_current_actor
from clinic.routes.deps import get_calculator, handle_database_errors
from clinic.scheduling.availability import AvailabilityCalculator
from clinic.scheduling.policies import Actor
from clinic.scheduling.slots import AvailableDate, NextAvailableSlot, SlotsSummary

router = APIRouter(tags=['slots'])

MAX_HORIZON_DAYS = 365


class SlotResponse(BaseModel):
    date: dt.date
    start_time: time
    end_time: time
    available: bool
    remaining_capacity: int


@router.get('', response_model=list[SlotResponse])
def list_slots(
    slot_date: date = Query(..., alias='date'),
    actor: Actor = Depends(get_current_actor),
    calculator: AvailabilityCalculator = Depends(get_calculator),
):
    del actor
    with handle_database_errors(calculator.db):
        slots = calculator.get_slots_for_date(slot_date)

    return [SlotResponse(date=slot_date, **slot.model_dump()) for slot in slots]


@router.get('/dates', response_model=list[AvailableDate])
def list_available_dates(
    from_date: date | None = Query(default=None),
    days: int | None = Query(default=None, ge=0, le=MAX_HORIZON_DAYS),
    actor: Actor = Depends(get_current_actor),
    calculator: AvailabilityCalculator = Depends(get_calculator),
):
    del actor
    with handle_database_errors(calculator.db):
        return calculator.get_available_dates(from_date, days)


@router.get('/next', response_model=NextAvailableSlot | None)
def get_next_available_slot(
    actor: Actor = Depends(get_current_actor),
    calculator: AvailabilityCalculator = Depends(get_calculator),
):
    del actor
    with handle_database_errors(calculator.db):
        return calculator.get_next_available_slot()


@router.get('/summary', response_model=SlotsSummary)
def get_slots_summary(
    days: int | None = Query(default=None, ge=0, le=MAX_HORIZON_DAYS),
    actor: Actor = Depends(get_current_actor),
    calculator: AvailabilityCalculator = Depends(get_calculator),
):
    del actor
    with handle_database_errors(calculator.db):
        return calculator.get_slots_summary(days)
