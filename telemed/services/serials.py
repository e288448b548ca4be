import logging
from datetime import datetime, time, timedelta

from telemed.core.clock import Clock
from telemed.core.errors import CapacityExceededError, NotFoundError, ValidationError
from telemed.models.appointment import PAYMENT_PAID, STATUS_CANCELLED, STATUS_CONFIRMED
from telemed.models.availability import AvailabilitySlot
from telemed.services.commands import SerialAssignment
from telemed.services.ledger import ReservationLedger
from telemed.services.locks import SlotLockRegistry, slot_locks
from telemed.services.store import Store

logger = logging.getLogger(__name__)


def format_minutes(total_minutes: int) -> str:
    return f'{total_minutes // 60:02d}:{total_minutes % 60:02d}'


def calculate_exact_time(start_time: time, serial_number: int, duration: int) -> str:
    """Return the "HH:MM" start of the ``serial_number``-th turn in a slot.

    Minutes are carried into hours without wrapping at midnight.
    """
    offset_minutes = (serial_number - 1) * duration
    return format_minutes(start_time.hour * 60 + start_time.minute + offset_minutes)


class SerialAssignmentEngine:
    """Gives a paid appointment the next serial number in its slot and its exact turn time.

    The read of the current highest serial and the write of the new one happen
    under the slot lock and in one commit, so concurrent payments on a slot get
    distinct, gap-free numbers. ``on_assigned`` runs inside that same lock and
    transaction, which lets the caller persist related rows atomically.
    """

    def __init__(self, store: Store, clock: Clock, locks: SlotLockRegistry | None = None):
        self.store = store
        self.clock = clock
        self.locks = locks or slot_locks
        self.ledger = ReservationLedger(store)

    def plan_serial(self, slot: AvailabilitySlot, operation: str = 'assign_serial') -> int:
        """Return the serial the next paid appointment on ``slot`` would get.

        Raises ``CapacityExceededError`` when that turn would run past the slot's
        end. Callers must hold the slot lock for the answer to stay true.
        """
        serial_number = self.ledger.next_serial_number(slot.id)
        offset_minutes = (serial_number - 1) * slot.appointment_duration
        if offset_minutes + slot.appointment_duration > slot.window_minutes:
            raise CapacityExceededError(
                'No time is left in this slot for another appointment.',
                operation=operation,
            )
        return serial_number

    def assign_serial(self, appointment_id: int, on_assigned=None) -> SerialAssignment:
        with self.store.guard('assign_serial'):
            appointment = self.store.get_appointment(appointment_id)
            if appointment is None:
                raise NotFoundError('Appointment not found.', operation='assign_serial')
            slot_id = appointment.slot_id

        with self.locks.hold(slot_id, 'assign_serial'):
            with self.store.guard('assign_serial'):
                slot = self.store.get_slot_for_update(slot_id)
                if slot is None:
                    raise NotFoundError('Slot not found.', operation='assign_serial')

                self.store.refresh(appointment)
                if appointment.serial_number is not None:
                    raise ValidationError(
                        'A serial number has already been assigned to this appointment.',
                        operation='assign_serial',
                    )
                if appointment.status == STATUS_CANCELLED:
                    raise ValidationError('This appointment has been cancelled.', operation='assign_serial')

                duration = slot.appointment_duration
                serial_number = self.plan_serial(slot)
                offset_minutes = (serial_number - 1) * duration

                exact_start = calculate_exact_time(slot.start_time, serial_number, duration)
                exact_end = calculate_exact_time(slot.start_time, serial_number + 1, duration)
                reservation_start = datetime.combine(appointment.appointment_date.date(), slot.start_time) + timedelta(
                    minutes=offset_minutes
                )

                appointment.serial_number = serial_number
                appointment.exact_appointment_time = exact_start
                appointment.reservation_start_time = reservation_start
                appointment.reservation_end_time = reservation_start + timedelta(minutes=duration)
                appointment.reservation_duration_minutes = duration
                appointment.payment_status = PAYMENT_PAID
                appointment.status = STATUS_CONFIRMED
                appointment.paid_at = self.clock.now()

                assignment = SerialAssignment(
                    serial_number=serial_number,
                    exact_start_time=exact_start,
                    exact_end_time=exact_end,
                    duration_minutes=duration,
                )
                if on_assigned is not None:
                    on_assigned(appointment, assignment)

                self.store.commit()

        logger.info(
            'Assigned serial %s (%s-%s) to appointment %s on slot %s',
            serial_number, exact_start, exact_end, appointment_id, slot_id,
        )
        return assignment
