import pytest

from telemed.core.errors import NotFoundError
from telemed.services.ledger import ReservationLedger


def test_remaining_capacity_counts_pending_and_paid_bookings(store, make_slot, make_appointment) -> None:
    slot = make_slot(max_appointments=3)
    make_appointment(slot)
    make_appointment(slot, payment_status='paid', status='confirmed', serial_number=1, exact_appointment_time='09:00')
    make_appointment(slot, status='cancelled')

    ledger = ReservationLedger(store)

    assert ledger.booked_count(slot.id) == 2
    assert ledger.remaining_capacity(slot.id) == 1


def test_remaining_capacity_never_goes_negative(store, make_slot, make_appointment) -> None:
    slot = make_slot(max_appointments=1)
    make_appointment(slot)
    make_appointment(slot)

    assert ReservationLedger(store).remaining_capacity(slot.id) == 0


def test_remaining_capacity_reports_unknown_slot(store) -> None:
    with pytest.raises(NotFoundError):
        ReservationLedger(store).remaining_capacity(404)


def test_next_serial_number_starts_at_one(store, make_slot) -> None:
    assert ReservationLedger(store).next_serial_number(make_slot().id) == 1


def test_next_serial_number_is_not_reused_after_cancellation(store, make_slot, make_appointment) -> None:
    slot = make_slot()
    make_appointment(slot, payment_status='paid', status='confirmed', serial_number=1, exact_appointment_time='09:00')
    make_appointment(slot, payment_status='paid', status='cancelled', serial_number=2, exact_appointment_time='09:15')

    assert ReservationLedger(store).next_serial_number(slot.id) == 3
