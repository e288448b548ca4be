"""Typed commands accepted by the booking engine.

Routes build these from request bodies; services receive nothing looser.
"""

from datetime import date, time
from decimal import Decimal

from pydantic import BaseModel, field_validator

MAX_APPOINTMENT_NOTES_LENGTH = 600
PAYMENT_METHODS = ('bkash', 'nagad', 'rocket', 'card')


class CreateSlotsCommand(BaseModel):
    doctor_id: int
    from_date: date | None = None
    to_date: date | None = None
    start_time: time
    end_time: time
    consultation_fee: Decimal
    appointment_duration: int
    max_appointments: int
    allow_same_day_booking: bool = False

    @field_validator('consultation_fee')
    @classmethod
    def validate_fee(cls, value: Decimal) -> Decimal:
        if value <= 0:
            raise ValueError('Please enter a valid consultation fee')
        return value

    @field_validator('appointment_duration')
    @classmethod
    def validate_duration(cls, value: int) -> int:
        if value <= 0:
            raise ValueError('Please enter a valid appointment duration')
        return value

    @field_validator('max_appointments')
    @classmethod
    def validate_max_appointments(cls, value: int) -> int:
        if value <= 0:
            raise ValueError('Please enter a valid maximum appointments')
        return value

    @field_validator('start_time', 'end_time')
    @classmethod
    def truncate_seconds(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0)


class BookAppointmentCommand(BaseModel):
    patient_id: int
    doctor_id: int
    slot_id: int
    notes: str | None = None
    pay_now: bool = True

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        return normalized


class CompletePaymentCommand(BaseModel):
    appointment_id: int
    method: str
    patient_id: int | None = None

    @field_validator('method')
    @classmethod
    def validate_method(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in PAYMENT_METHODS:
            raise ValueError('Invalid payment method.')
        return normalized


class SerialAssignment(BaseModel):
    serial_number: int
    exact_start_time: str
    exact_end_time: str
    duration_minutes: int
