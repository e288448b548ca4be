from telemed.core.errors import NotFoundError
from telemed.services.store import Store


class ReservationLedger:
    """Counts the bookings that hold capacity in a slot and hands out serial numbers.

    A booking holds capacity while its payment is pending or paid and it has not
    been cancelled. Serial numbers continue from the highest one ever assigned in
    the slot, so a cancelled booking never frees its number for reuse.
    """

    def __init__(self, store: Store):
        self.store = store

    def booked_count(self, slot_id: int) -> int:
        return self.store.count_live_appointments(slot_id)

    def remaining_capacity(self, slot_id: int) -> int:
        slot = self.store.get_slot(slot_id)
        if slot is None:
            raise NotFoundError('Slot not found.', operation='remaining_capacity')
        return max(0, slot.max_appointments - self.booked_count(slot_id))

    def next_serial_number(self, slot_id: int) -> int:
        highest = self.store.max_serial_number(slot_id)
        return (highest or 0) + 1
