from dataclasses import dataclass
from datetime import datetime, timedelta

from telemed.core import config
from telemed.core.clock import Clock
from telemed.models.availability import AvailabilitySlot
from telemed.services.ledger import ReservationLedger
from telemed.services.store import Store

REASON_SLOT_FULL = 'slot full'
REASON_ADVANCE_NOTICE = 'advance notice required'
REASON_UNAVAILABLE = 'slot unavailable'
REASON_IN_PAST = 'slot in the past'


@dataclass(frozen=True)
class Eligibility:
    eligible: bool
    reason: str | None = None


@dataclass(frozen=True)
class BookableSlot:
    slot: AvailabilitySlot
    booked_count: int

    @property
    def remaining_capacity(self) -> int:
        return max(0, self.slot.max_appointments - self.booked_count)


class EligibilityChecker:
    def __init__(self, store: Store, clock: Clock):
        self.store = store
        self.clock = clock
        self.ledger = ReservationLedger(store)

    def check(self, slot: AvailabilitySlot, now: datetime | None = None, booked_count: int | None = None) -> Eligibility:
        """Decide whether a new booking may be created on ``slot``.

        Only slots dated today are held to the advance-notice rule; a slot on a
        later date is not hour-gated even when it starts sooner than the notice
        period.
        """
        now = now or self.clock.now()

        if not slot.is_available:
            return Eligibility(False, REASON_UNAVAILABLE)

        if slot.slot_date < now.date():
            return Eligibility(False, REASON_IN_PAST)

        if booked_count is None:
            booked_count = self.ledger.booked_count(slot.id)
        if booked_count >= slot.max_appointments:
            return Eligibility(False, REASON_SLOT_FULL)

        if slot.slot_date == now.date() and not slot.allow_same_day_booking:
            hours_until_start = (slot.starts_at - now).total_seconds() / 3600
            if hours_until_start < config.ADVANCE_NOTICE_HOURS:
                return Eligibility(False, REASON_ADVANCE_NOTICE)

        return Eligibility(True)

    def list_bookable_slots(self, doctor_id: int) -> list[BookableSlot]:
        now = self.clock.now()
        range_end = now.date() + timedelta(days=config.BOOKING_WINDOW_DAYS)

        with self.store.guard('list_bookable_slots'):
            bookable: list[BookableSlot] = []
            for slot in self.store.list_slots(doctor_id, now.date(), range_end):
                booked_count = self.ledger.booked_count(slot.id)
                if self.check(slot, now=now, booked_count=booked_count).eligible:
                    bookable.append(BookableSlot(slot=slot, booked_count=booked_count))
            return bookable
