import logging
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from telemed.core import config
from telemed.core.clock import Clock
from telemed.core.errors import (
    CapacityExceededError,
    NotFoundError,
    PaymentFailedError,
    PermissionDeniedError,
    TooLateError,
    ValidationError,
)
from telemed.models.appointment import (
    PAYMENT_PAID,
    PAYMENT_PENDING,
    STATUS_CANCELLED,
    STATUS_PENDING_PAYMENT,
    STATUS_RESERVED,
    Appointment,
)
from telemed.models.payment import Payment
from telemed.services.commands import BookAppointmentCommand, CompletePaymentCommand, SerialAssignment
from telemed.services.eligibility import REASON_SLOT_FULL, EligibilityChecker
from telemed.services.locks import SlotLockRegistry, slot_locks
from telemed.services.payment_gateway import PaymentGateway
from telemed.services.serials import SerialAssignmentEngine
from telemed.services.store import Store

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')


def split_commission(amount: Decimal) -> tuple[Decimal, Decimal]:
    """Return (admin commission, doctor earnings) for a payment amount."""
    commission = (Decimal(amount) * Decimal(config.ADMIN_COMMISSION_RATE)).quantize(CENTS, rounding=ROUND_HALF_UP)
    return commission, Decimal(amount) - commission


class BookingService:
    def __init__(
        self,
        store: Store,
        clock: Clock,
        gateway: PaymentGateway,
        locks: SlotLockRegistry | None = None,
    ):
        self.store = store
        self.clock = clock
        self.gateway = gateway
        self.locks = locks or slot_locks
        self.eligibility = EligibilityChecker(store, clock)
        self.serials = SerialAssignmentEngine(store, clock, self.locks)

    def book(self, command: BookAppointmentCommand) -> Appointment:
        """Create a provisional appointment on a slot.

        Eligibility is re-checked under the slot lock so two patients racing for
        the last place cannot both get it.
        """
        with self.locks.hold(command.slot_id, 'book_appointment'):
            with self.store.guard('book_appointment'):
                slot = self.store.get_slot_for_update(command.slot_id)
                if slot is None:
                    raise NotFoundError('Slot not found.', operation='book_appointment')
                if slot.doctor_id != command.doctor_id:
                    raise ValidationError('This slot does not belong to the selected doctor.', operation='book_appointment')

                eligibility = self.eligibility.check(slot)
                if not eligibility.eligible:
                    if eligibility.reason == REASON_SLOT_FULL:
                        raise CapacityExceededError(
                            'This slot is fully booked. Please choose another slot.',
                            operation='book_appointment',
                        )
                    raise TooLateError(
                        f'This slot cannot be booked: {eligibility.reason}.',
                        operation='book_appointment',
                    )

                appointment_date = slot.starts_at
                if slot.allow_same_day_booking:
                    payment_deadline = appointment_date
                else:
                    payment_deadline = appointment_date - timedelta(hours=config.ADVANCE_NOTICE_HOURS)

                appointment = Appointment(
                    patient_id=command.patient_id,
                    doctor_id=command.doctor_id,
                    slot_id=slot.id,
                    appointment_date=appointment_date,
                    status=STATUS_PENDING_PAYMENT if command.pay_now else STATUS_RESERVED,
                    payment_status=PAYMENT_PENDING,
                    payment_deadline=payment_deadline,
                    amount=slot.consultation_fee,
                    patient_notes=command.notes,
                    created_at=self.clock.now(),
                )
                self.store.add_appointment(appointment)
                self.store.commit()
                self.store.refresh(appointment)

        logger.info(
            'Patient %s booked slot %s as appointment %s (pay by %s)',
            command.patient_id, command.slot_id, appointment.id, payment_deadline,
        )
        return appointment

    def complete_payment(self, command: CompletePaymentCommand) -> SerialAssignment:
        """Charge the patient and give the appointment its serial.

        The slot stays locked from the payability checks through the gateway
        call to the serial commit, so a second payment for the same appointment
        waits and then sees it paid, and nobody is charged for a turn the slot
        has no time left for.
        """
        now = self.clock.now()

        with self.store.guard('complete_payment'):
            appointment = self.store.get_appointment(command.appointment_id)
            if appointment is None:
                raise NotFoundError('Appointment not found.', operation='complete_payment')
            if command.patient_id is not None and appointment.patient_id != command.patient_id:
                raise PermissionDeniedError('Only the patient who booked this appointment can pay for it.', operation='complete_payment')
            slot_id = appointment.slot_id

        with self.locks.hold(slot_id, 'complete_payment'):
            with self.store.guard('complete_payment'):
                slot = self.store.get_slot_for_update(slot_id)
                if slot is None:
                    raise NotFoundError('Slot not found.', operation='complete_payment')

                self.store.refresh(appointment)
                if appointment.payment_status == PAYMENT_PAID or appointment.serial_number is not None:
                    raise ValidationError('This appointment has already been paid.', operation='complete_payment')
                if appointment.status == STATUS_CANCELLED:
                    raise ValidationError('This appointment has been cancelled.', operation='complete_payment')
                if appointment.payment_deadline < now:
                    raise TooLateError(
                        'Payment deadline has passed. This appointment has been cancelled.',
                        operation='complete_payment',
                    )
                self.serials.plan_serial(slot, operation='complete_payment')

                result = self.gateway.process_payment(command.method, appointment.amount)
                if not result.success:
                    logger.warning('Payment for appointment %s declined: %s', command.appointment_id, result.error)
                    raise PaymentFailedError(result.error or 'Payment failed', operation='complete_payment')

            def record_payment(paid_appointment: Appointment, assignment: SerialAssignment) -> None:
                commission, earnings = split_commission(paid_appointment.amount)
                self.store.add_payment(
                    Payment(
                        appointment_id=paid_appointment.id,
                        patient_id=paid_appointment.patient_id,
                        doctor_id=paid_appointment.doctor_id,
                        total_amount=paid_appointment.amount,
                        admin_commission=commission,
                        doctor_earnings=earnings,
                        payment_method=command.method,
                        payment_status='completed',
                        transaction_id=result.transaction_id,
                        paid_at=paid_appointment.paid_at,
                    )
                )

            assignment = self.serials.assign_serial(command.appointment_id, on_assigned=record_payment)

        logger.info(
            'Appointment %s paid via %s (transaction %s)',
            command.appointment_id, command.method, result.transaction_id,
        )
        return assignment
