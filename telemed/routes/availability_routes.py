from datetime import date, datetime, time
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from telemed.auth.dependencies import require_role
from telemed.core.clock import Clock
from telemed.core.errors import BookingError, NotFoundError, ValidationError
from telemed.models.user import ROLE_DOCTOR, User
from telemed.routes.common import ensure_database_ready, get_clock, get_db, to_http_exception
from telemed.services.commands import CreateSlotsCommand
from telemed.services.eligibility import EligibilityChecker
from telemed.services.slot_generator import SlotGenerator
from telemed.services.store import Store

router = APIRouter(tags=['availability'])


class CreateSlotsRequest(BaseModel):
    from_date: date | None = None
    to_date: date | None = None
    start_time: time
    end_time: time
    consultation_fee: Decimal
    appointment_duration: int
    max_appointments: int
    allow_same_day_booking: bool = False


class AvailabilitySlotResponse(BaseModel):
    id: int
    doctor_id: int
    slot_date: date
    start_time: time
    end_time: time
    consultation_fee: Decimal
    appointment_duration: int
    max_appointments: int
    allow_same_day_booking: bool
    is_available: bool

    class Config:
        from_attributes = True


class BookableSlotResponse(AvailabilitySlotResponse):
    booked_count: int
    remaining_capacity: int


class EligibilityResponse(BaseModel):
    slot_id: int
    eligible: bool
    reason: str | None = None
    checked_at: datetime


@router.post('/slots', response_model=list[AvailabilitySlotResponse], status_code=status.HTTP_201_CREATED)
def create_slots(
    data: CreateSlotsRequest,
    current_user: User = Depends(require_role(ROLE_DOCTOR)),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    try:
        command = CreateSlotsCommand(doctor_id=current_user.id, **data.model_dump())
    except ValueError as exc:
        raise to_http_exception(ValidationError(_first_error_message(exc), operation='create_slots')) from exc

    ensure_database_ready()

    try:
        return SlotGenerator(Store(db), clock).create_slots(command)
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/slots', response_model=list[BookableSlotResponse])
def list_bookable_slots(
    doctor_id: int = Query(...),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    try:
        bookable = EligibilityChecker(Store(db), clock).list_bookable_slots(doctor_id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return [
        BookableSlotResponse(
            **AvailabilitySlotResponse.model_validate(entry.slot).model_dump(),
            booked_count=entry.booked_count,
            remaining_capacity=entry.remaining_capacity,
        )
        for entry in bookable
    ]


@router.get('/doctor/slots', response_model=list[AvailabilitySlotResponse])
def list_my_slots(
    current_user: User = Depends(require_role(ROLE_DOCTOR)),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    try:
        return SlotGenerator(Store(db), clock).list_doctor_slots(current_user.id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.delete('/slots/{slot_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_slot(
    slot_id: int,
    current_user: User = Depends(require_role(ROLE_DOCTOR)),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    try:
        SlotGenerator(Store(db), clock).delete_slot(current_user.id, slot_id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/slots/{slot_id}/eligibility', response_model=EligibilityResponse)
def check_slot_eligibility(
    slot_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    store = Store(db)
    try:
        with store.guard('check_eligibility'):
            slot = store.get_slot(slot_id)
            if slot is None:
                raise NotFoundError('Slot not found.', operation='check_eligibility')
            now = clock.now()
            result = EligibilityChecker(store, clock).check(slot, now=now)
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return EligibilityResponse(slot_id=slot_id, eligible=result.eligible, reason=result.reason, checked_at=now)


def _first_error_message(exc: ValueError) -> str:
    errors = getattr(exc, 'errors', None)
    if callable(errors):
        messages = [error.get('msg', '') for error in errors()]
        if messages:
            return messages[0].removeprefix('Value error, ')
    return str(exc)
