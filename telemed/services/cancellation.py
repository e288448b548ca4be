import logging
from datetime import datetime, timedelta

from telemed.core import config
from telemed.core.clock import Clock
from telemed.core.errors import NotFoundError, PermissionDeniedError, TooLateError, ValidationError
from telemed.models.appointment import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_NO_SHOW,
    Appointment,
)
from telemed.services.store import Store

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_NO_SHOW)


class CancellationEnforcer:
    """Applies the cancellation cutoff, expires unpaid bookings and records visit outcomes.

    Cancelling never renumbers the serials already handed out in a slot.
    """

    def __init__(self, store: Store, clock: Clock):
        self.store = store
        self.clock = clock

    def _load(self, appointment_id: int, operation: str) -> Appointment:
        appointment = self.store.get_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError('Appointment not found.', operation=operation)
        return appointment

    def cancel(self, appointment_id: int, now: datetime | None = None, patient_id: int | None = None) -> Appointment:
        now = now or self.clock.now()

        with self.store.guard('cancel_appointment'):
            appointment = self._load(appointment_id, 'cancel_appointment')
            if patient_id is not None and appointment.patient_id != patient_id:
                raise PermissionDeniedError(
                    'Only the patient who booked this appointment can cancel it.',
                    operation='cancel_appointment',
                )
            if appointment.status == STATUS_CANCELLED:
                return appointment
            if appointment.status in TERMINAL_STATUSES:
                raise ValidationError(
                    f'An appointment marked {appointment.status} cannot be cancelled.',
                    operation='cancel_appointment',
                )

            notice = timedelta(hours=config.CANCELLATION_NOTICE_HOURS)
            if appointment.appointment_date - now < notice:
                raise TooLateError(
                    f'Cannot cancel appointments less than {config.CANCELLATION_NOTICE_HOURS} hours '
                    'before the scheduled time',
                    operation='cancel_appointment',
                )

            appointment.status = STATUS_CANCELLED
            appointment.cancelled_at = now
            self.store.commit()

        logger.info('Appointment %s cancelled', appointment_id)
        return appointment

    def expire_unpaid(self, now: datetime | None = None) -> int:
        """Cancel every unpaid appointment whose payment deadline has passed.

        Returns how many appointments were transitioned. Running it again over
        the same rows finds nothing to do.
        """
        now = now or self.clock.now()

        with self.store.guard('expire_unpaid'):
            expired = self.store.list_expired_unpaid(now)
            for appointment in expired:
                appointment.status = STATUS_CANCELLED
                appointment.cancelled_at = now
            if expired:
                self.store.commit()

        if expired:
            logger.info('Expired %d unpaid appointments past their payment deadline', len(expired))
        return len(expired)

    def _record_outcome(self, appointment_id: int, doctor_id: int, status: str, operation: str) -> Appointment:
        with self.store.guard(operation):
            appointment = self._load(appointment_id, operation)
            if appointment.doctor_id != doctor_id:
                raise PermissionDeniedError(
                    'Only the assigned doctor can update this appointment.',
                    operation=operation,
                )
            if appointment.status in TERMINAL_STATUSES:
                raise ValidationError(
                    f'This appointment is already marked {appointment.status}.',
                    operation=operation,
                )
            if appointment.status != STATUS_CONFIRMED:
                raise ValidationError('Only confirmed appointments can be closed out.', operation=operation)

            appointment.status = status
            if status == STATUS_COMPLETED:
                appointment.completed_at = self.clock.now()
            self.store.commit()

        logger.info('Appointment %s marked %s by doctor %s', appointment_id, status, doctor_id)
        return appointment

    def mark_completed(self, appointment_id: int, doctor_id: int) -> Appointment:
        return self._record_outcome(appointment_id, doctor_id, STATUS_COMPLETED, 'mark_completed')

    def mark_no_show(self, appointment_id: int, doctor_id: int) -> Appointment:
        return self._record_outcome(appointment_id, doctor_id, STATUS_NO_SHOW, 'mark_no_show')
