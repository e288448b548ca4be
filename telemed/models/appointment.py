"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from telemed.database import Base

STATUS_PENDING_PAYMENT = 'pending_payment'
STATUS_RESERVED = 'reserved'
STATUS_CONFIRMED = 'confirmed'
STATUS_CANCELLED = 'cancelled'
STATUS_COMPLETED = 'completed'
STATUS_NO_SHOW = 'no_show'

PAYMENT_PENDING = 'pending'
PAYMENT_PAID = 'paid'
PAYMENT_COMPLETED = 'completed'
PAYMENT_FAILED = 'failed'
PAYMENT_REFUNDED = 'refunded'

# Appointments in these payment states hold a place in their slot unless cancelled.
CAPACITY_HOLDING_PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_PAID)


class Appointment(Base):
    """Represents one patient's booking against an availability slot."""
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("slot_id", "serial_number", name="uq_appointments_slot_serial"),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    slot_id = Column(Integer, ForeignKey("availability_slots.id"), nullable=False, index=True)
    appointment_date = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default=STATUS_PENDING_PAYMENT)
    payment_status = Column(String, nullable=False, default=PAYMENT_PENDING)
    payment_deadline = Column(DateTime, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    patient_notes = Column(String)

    serial_number = Column(Integer)
    exact_appointment_time = Column(String(5))  # "HH:MM"
    reservation_start_time = Column(DateTime)
    reservation_end_time = Column(DateTime)
    reservation_duration_minutes = Column(Integer)
    doctor_joined_at = Column(DateTime)

    paid_at = Column(DateTime)
    completed_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.now)
