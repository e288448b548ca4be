from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from telemed.auth.dependencies import require_role
from telemed.core.clock import Clock
from telemed.core.errors import BookingError, NotFoundError, PermissionDeniedError, ValidationError
from telemed.models.appointment import STATUS_CONFIRMED, Appointment
from telemed.models.user import ROLE_DOCTOR, ROLE_PATIENT, User
from telemed.routes.common import (
    ensure_database_ready,
    get_clock,
    get_db,
    get_payment_gateway,
    to_http_exception,
)
from telemed.services.booking import BookingService
from telemed.services.cancellation import CancellationEnforcer
from telemed.services.commands import BookAppointmentCommand, CompletePaymentCommand, SerialAssignment
from telemed.services.payment_gateway import PaymentGateway
from telemed.services.store import Store
from telemed.services.timing import JoinStatus, can_join, is_appointment_missed, time_until_appointment

router = APIRouter(tags=['appointments'])


class BookAppointmentRequest(BaseModel):
    doctor_id: int
    slot_id: int
    notes: str | None = None
    pay_now: bool = True


class PaymentRequest(BaseModel):
    method: str


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    slot_id: int
    appointment_date: datetime
    status: str
    payment_status: str
    payment_deadline: datetime
    amount: Decimal
    patient_notes: str | None = None
    serial_number: int | None = None
    exact_appointment_time: str | None = None
    reservation_start_time: datetime | None = None
    reservation_end_time: datetime | None = None
    doctor_joined_at: datetime | None = None

    class Config:
        from_attributes = True


class TimeUntilResponse(BaseModel):
    days: int
    hours: int
    minutes: int
    total_minutes: int


class JoinStatusResponse(BaseModel):
    appointment_id: int
    can_join: bool
    reason: str | None = None
    minutes_until_start: int | None = None
    time_until: TimeUntilResponse
    missed: bool = False


def _load_participant_appointment(store: Store, appointment_id: int, user: User, operation: str) -> Appointment:
    appointment = store.get_appointment(appointment_id)
    if appointment is None:
        raise NotFoundError('Appointment not found.', operation=operation)
    if user.id not in (appointment.patient_id, appointment.doctor_id):
        raise PermissionDeniedError('You are not part of this appointment.', operation=operation)
    return appointment


def _join_status_response(appointment: Appointment, join_status: JoinStatus, now: datetime) -> JoinStatusResponse:
    remaining = time_until_appointment(appointment.reservation_start_time, now)
    return JoinStatusResponse(
        appointment_id=appointment.id,
        can_join=join_status.can_join,
        reason=join_status.reason,
        minutes_until_start=join_status.minutes_until_start,
        time_until=TimeUntilResponse(
            days=remaining.days,
            hours=remaining.hours,
            minutes=remaining.minutes,
            total_minutes=remaining.total_minutes,
        ),
        missed=is_appointment_missed(
            appointment.reservation_start_time,
            appointment.reservation_duration_minutes,
            appointment.doctor_joined_at,
            now,
        ),
    )


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: BookAppointmentRequest,
    current_user: User = Depends(require_role(ROLE_PATIENT)),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    try:
        command = BookAppointmentCommand(patient_id=current_user.id, **data.model_dump())
    except ValueError as exc:
        raise to_http_exception(ValidationError('Invalid booking request.', operation='book_appointment')) from exc

    ensure_database_ready()

    try:
        return BookingService(Store(db), clock, gateway).book(command)
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/mine', response_model=list[AppointmentResponse])
def list_my_appointments(
    current_user: User = Depends(require_role(ROLE_PATIENT)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    store = Store(db)
    try:
        with store.guard('list_my_appointments'):
            return store.list_patient_appointments(current_user.id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/doctor', response_model=list[AppointmentResponse])
def list_doctor_appointments(
    current_user: User = Depends(require_role(ROLE_DOCTOR)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    store = Store(db)
    try:
        with store.guard('list_doctor_appointments'):
            return store.list_doctor_appointments(current_user.id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/{appointment_id}/pay', response_model=SerialAssignment)
def pay_for_appointment(
    appointment_id: int,
    data: PaymentRequest,
    current_user: User = Depends(require_role(ROLE_PATIENT)),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    try:
        command = CompletePaymentCommand(appointment_id=appointment_id, method=data.method, patient_id=current_user.id)
    except ValueError as exc:
        raise to_http_exception(ValidationError('Invalid payment method.', operation='complete_payment')) from exc

    ensure_database_ready()

    try:
        return BookingService(Store(db), clock, gateway).complete_payment(command)
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    current_user: User = Depends(require_role(ROLE_PATIENT)),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    try:
        return CancellationEnforcer(Store(db), clock).cancel(appointment_id, patient_id=current_user.id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    current_user: User = Depends(require_role(ROLE_DOCTOR)),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    try:
        return CancellationEnforcer(Store(db), clock).mark_completed(appointment_id, current_user.id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/{appointment_id}/no-show', response_model=AppointmentResponse)
def mark_no_show(
    appointment_id: int,
    current_user: User = Depends(require_role(ROLE_DOCTOR)),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    try:
        return CancellationEnforcer(Store(db), clock).mark_no_show(appointment_id, current_user.id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/{appointment_id}/join-status', response_model=JoinStatusResponse)
def get_join_status(
    appointment_id: int,
    current_user: User = Depends(require_role(ROLE_PATIENT, ROLE_DOCTOR)),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    now = clock.now()
    store = Store(db)
    try:
        with store.guard('join_status'):
            appointment = _load_participant_appointment(store, appointment_id, current_user, 'join_status')
            join_status = can_join(appointment.reservation_start_time, appointment.reservation_end_time, now)
            return _join_status_response(appointment, join_status, now)
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/{appointment_id}/join', response_model=JoinStatusResponse)
def join_appointment(
    appointment_id: int,
    current_user: User = Depends(require_role(ROLE_PATIENT, ROLE_DOCTOR)),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    now = clock.now()
    store = Store(db)
    try:
        with store.guard('join_appointment'):
            appointment = _load_participant_appointment(store, appointment_id, current_user, 'join_appointment')
            if appointment.status != STATUS_CONFIRMED:
                raise ValidationError('Only confirmed appointments can be joined.', operation='join_appointment')

            join_status = can_join(appointment.reservation_start_time, appointment.reservation_end_time, now)
            if not join_status.can_join:
                raise ValidationError(join_status.reason, operation='join_appointment')

            if current_user.id == appointment.doctor_id and appointment.doctor_joined_at is None:
                appointment.doctor_joined_at = now
                store.commit()
                store.refresh(appointment)

            return _join_status_response(appointment, join_status, now)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
