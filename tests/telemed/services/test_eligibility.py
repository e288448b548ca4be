from datetime import date, datetime, time

from telemed.services.eligibility import (
    REASON_ADVANCE_NOTICE,
    REASON_IN_PAST,
    REASON_SLOT_FULL,
    REASON_UNAVAILABLE,
    EligibilityChecker,
)


def test_slot_with_room_is_eligible(store, clock, make_slot) -> None:
    result = EligibilityChecker(store, clock).check(make_slot())

    assert result.eligible is True
    assert result.reason is None


def test_full_slot_is_ineligible(store, clock, make_slot, make_appointment) -> None:
    slot = make_slot(max_appointments=2, duration=15)
    make_appointment(slot)
    make_appointment(slot, payment_status='paid', status='confirmed', serial_number=1, exact_appointment_time='09:00')

    result = EligibilityChecker(store, clock).check(slot)

    assert result.eligible is False
    assert result.reason == REASON_SLOT_FULL


def test_cancelled_and_failed_bookings_do_not_hold_capacity(store, clock, make_slot, make_appointment) -> None:
    slot = make_slot(max_appointments=1, duration=15, end_time=time(9, 15))
    make_appointment(slot, status='cancelled')
    make_appointment(slot, payment_status='failed')

    assert EligibilityChecker(store, clock).check(slot).eligible is True


def test_same_day_slot_without_same_day_booking_needs_advance_notice(store, clock, make_slot) -> None:
    slot = make_slot(slot_date=date(2026, 1, 5), start_time=time(10, 0), end_time=time(11, 0))
    clock.set(datetime(2026, 1, 5, 9, 0))

    result = EligibilityChecker(store, clock).check(slot)

    assert result.eligible is False
    assert result.reason == REASON_ADVANCE_NOTICE


def test_same_day_slot_with_same_day_booking_is_eligible(store, clock, make_slot) -> None:
    slot = make_slot(slot_date=date(2026, 1, 5), start_time=time(10, 0), end_time=time(11, 0), allow_same_day_booking=True)
    clock.set(datetime(2026, 1, 5, 9, 0))

    assert EligibilityChecker(store, clock).check(slot).eligible is True


def test_future_day_slot_is_not_hour_gated(store, clock, make_slot) -> None:
    # Only slots dated today are held to the advance-notice rule.
    tomorrow = make_slot(slot_date=date(2026, 1, 6), start_time=time(6, 0), end_time=time(7, 0))
    two_days_out = make_slot(slot_date=date(2026, 1, 7), start_time=time(6, 0), end_time=time(7, 0))
    clock.set(datetime(2026, 1, 5, 23, 0))

    checker = EligibilityChecker(store, clock)

    assert checker.check(tomorrow).eligible is True
    assert checker.check(two_days_out).eligible is True


def test_unavailable_and_past_slots_are_ineligible(store, clock, make_slot) -> None:
    checker = EligibilityChecker(store, clock)

    assert checker.check(make_slot(is_available=False)).reason == REASON_UNAVAILABLE
    assert checker.check(make_slot(slot_date=date(2026, 1, 4))).reason == REASON_IN_PAST


def test_list_bookable_slots_filters_full_and_out_of_window_slots(
    store, clock, doctor, make_slot, make_appointment
) -> None:
    open_slot = make_slot(slot_date=date(2026, 1, 8))
    full_slot = make_slot(slot_date=date(2026, 1, 9), max_appointments=1, end_time=time(9, 15))
    make_appointment(full_slot)
    make_slot(slot_date=date(2026, 2, 20))

    bookable = EligibilityChecker(store, clock).list_bookable_slots(doctor.id)

    assert [entry.slot.id for entry in bookable] == [open_slot.id]
    assert bookable[0].booked_count == 0
    assert bookable[0].remaining_capacity == 3
