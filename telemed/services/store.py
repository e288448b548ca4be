"""Repository over a SQLAlchemy session for slots, appointments and payments."""

import logging
from contextlib import contextmanager
from datetime import date, datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from telemed.core.errors import BookingError, ConcurrencyConflictError, StoreError
from telemed.models.appointment import (
    CAPACITY_HOLDING_PAYMENT_STATUSES,
    PAYMENT_PENDING,
    STATUS_CANCELLED,
    Appointment,
)
from telemed.models.availability import AvailabilitySlot
from telemed.models.payment import Payment

logger = logging.getLogger(__name__)


class Store:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def guard(self, operation: str):
        """Roll back on any failure inside the block and wrap database errors."""
        try:
            yield
        except BookingError:
            self.db.rollback()
            raise
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning('%s hit a constraint violation: %s', operation, exc.orig)
            raise ConcurrencyConflictError(
                'Another request updated this slot at the same time. Please retry.',
                operation=operation,
            ) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('%s failed against the database', operation)
            raise StoreError(operation) from exc

    def commit(self) -> None:
        self.db.commit()

    # Slots

    def get_slot(self, slot_id: int) -> AvailabilitySlot | None:
        return self.db.query(AvailabilitySlot).filter(AvailabilitySlot.id == slot_id).first()

    def get_slot_for_update(self, slot_id: int) -> AvailabilitySlot | None:
        return (
            self.db.query(AvailabilitySlot)
            .filter(AvailabilitySlot.id == slot_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def add_slots(self, slots: list[AvailabilitySlot]) -> None:
        self.db.add_all(slots)

    def delete_slot(self, slot: AvailabilitySlot) -> None:
        self.db.delete(slot)

    def list_slots(self, doctor_id: int, from_date: date, to_date: date | None = None) -> list[AvailabilitySlot]:
        query = self.db.query(AvailabilitySlot).filter(
            AvailabilitySlot.doctor_id == doctor_id,
            AvailabilitySlot.slot_date >= from_date,
        )
        if to_date is not None:
            query = query.filter(AvailabilitySlot.slot_date <= to_date)
        return query.order_by(AvailabilitySlot.slot_date.asc(), AvailabilitySlot.start_time.asc()).all()

    # Appointments

    def count_live_appointments(self, slot_id: int) -> int:
        return self.db.query(func.count(Appointment.id)).filter(
            Appointment.slot_id == slot_id,
            Appointment.payment_status.in_(CAPACITY_HOLDING_PAYMENT_STATUSES),
            Appointment.status != STATUS_CANCELLED,
        ).scalar() or 0

    def count_appointments(self, slot_id: int) -> int:
        return self.db.query(func.count(Appointment.id)).filter(Appointment.slot_id == slot_id).scalar() or 0

    def max_serial_number(self, slot_id: int) -> int | None:
        return self.db.query(func.max(Appointment.serial_number)).filter(
            Appointment.slot_id == slot_id,
            Appointment.serial_number.is_not(None),
        ).scalar()

    def get_appointment(self, appointment_id: int) -> Appointment | None:
        return self.db.query(Appointment).filter(Appointment.id == appointment_id).first()

    def refresh(self, instance) -> None:
        self.db.refresh(instance)

    def add_appointment(self, appointment: Appointment) -> None:
        self.db.add(appointment)

    def list_patient_appointments(self, patient_id: int) -> list[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.patient_id == patient_id,
        ).order_by(Appointment.appointment_date.asc()).all()

    def list_doctor_appointments(self, doctor_id: int) -> list[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
        ).order_by(Appointment.appointment_date.asc(), Appointment.serial_number.asc()).all()

    def list_expired_unpaid(self, now: datetime) -> list[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.payment_status == PAYMENT_PENDING,
            Appointment.status != STATUS_CANCELLED,
            Appointment.payment_deadline < now,
        ).all()

    # Payments

    def add_payment(self, payment: Payment) -> None:
        self.db.add(payment)
