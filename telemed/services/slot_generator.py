import logging
from datetime import date, datetime, timedelta

from telemed.core import config
from telemed.core.clock import Clock
from telemed.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from telemed.models.availability import AvailabilitySlot
from telemed.services.commands import CreateSlotsCommand
from telemed.services.store import Store

logger = logging.getLogger(__name__)


def minutes_of_day(value) -> int:
    return value.hour * 60 + value.minute


def iterate_dates(from_date: date, to_date: date):
    current = from_date
    while current <= to_date:
        yield current
        current += timedelta(days=1)


class SlotGenerator:
    """Expands a doctor's date range and daily time window into one slot per day."""

    def __init__(self, store: Store, clock: Clock):
        self.store = store
        self.clock = clock

    def validate(self, command: CreateSlotsCommand) -> None:
        if command.from_date is None or command.to_date is None:
            raise ValidationError('Please select both from and to dates', operation='create_slots')

        now = self.clock.now()
        today = now.date()
        max_date = today + timedelta(days=config.SLOT_CREATION_MAX_DAYS_AHEAD)

        if command.to_date > max_date:
            raise ValidationError(
                f'Cannot create slots more than {config.SLOT_CREATION_MAX_DAYS_AHEAD} days in advance',
                operation='create_slots',
            )

        if command.from_date > command.to_date:
            raise ValidationError('From date must be before to date', operation='create_slots')

        if not command.allow_same_day_booking:
            first_start = datetime.combine(command.from_date, command.start_time)
            if first_start < now + timedelta(hours=config.ADVANCE_NOTICE_HOURS):
                raise ValidationError(
                    f'Slots must be created at least {config.ADVANCE_NOTICE_HOURS} hours in advance '
                    'when same-day booking is disabled',
                    operation='create_slots',
                )

        if command.start_time >= command.end_time:
            raise ValidationError('Start time must be before end time', operation='create_slots')

        window_minutes = minutes_of_day(command.end_time) - minutes_of_day(command.start_time)
        required_minutes = command.max_appointments * command.appointment_duration
        if window_minutes < required_minutes:
            raise ValidationError(
                f'Slot duration ({window_minutes} min) is too short for {command.max_appointments} '
                f'appointments of {command.appointment_duration} min each. Need at least '
                f'{required_minutes} minutes ({required_minutes - window_minutes} min short).',
                operation='create_slots',
            )

    def create_slots(self, command: CreateSlotsCommand) -> list[AvailabilitySlot]:
        self.validate(command)

        slots = [
            AvailabilitySlot(
                doctor_id=command.doctor_id,
                slot_date=slot_date,
                start_time=command.start_time,
                end_time=command.end_time,
                consultation_fee=command.consultation_fee,
                appointment_duration=command.appointment_duration,
                max_appointments=command.max_appointments,
                allow_same_day_booking=command.allow_same_day_booking,
                is_available=True,
                created_at=self.clock.now(),
            )
            for slot_date in iterate_dates(command.from_date, command.to_date)
        ]

        with self.store.guard('create_slots'):
            self.store.add_slots(slots)
            self.store.commit()
            for slot in slots:
                self.store.refresh(slot)

        logger.info(
            'Created %d availability slots for doctor %s (%s to %s)',
            len(slots), command.doctor_id, command.from_date, command.to_date,
        )
        return slots

    def delete_slot(self, doctor_id: int, slot_id: int) -> None:
        with self.store.guard('delete_slot'):
            slot = self.store.get_slot(slot_id)
            if slot is None:
                raise NotFoundError('Slot not found.', operation='delete_slot')
            if slot.doctor_id != doctor_id:
                raise PermissionDeniedError('Only the owning doctor can delete this slot.', operation='delete_slot')
            if self.store.count_appointments(slot_id):
                raise ValidationError(
                    'This slot already has bookings and cannot be deleted.',
                    operation='delete_slot',
                )

            self.store.delete_slot(slot)
            self.store.commit()

        logger.info('Deleted availability slot %s for doctor %s', slot_id, doctor_id)

    def list_doctor_slots(self, doctor_id: int, from_date: date | None = None) -> list[AvailabilitySlot]:
        with self.store.guard('list_doctor_slots'):
            return self.store.list_slots(doctor_id, from_date or self.clock.today())
