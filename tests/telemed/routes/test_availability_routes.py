from datetime import date, datetime, time
from decimal import Decimal

import pytest
from fastapi import HTTPException

from telemed.models.availability import AvailabilitySlot
from telemed.routes.availability_routes import (
    CreateSlotsRequest,
    check_slot_eligibility,
    create_slots,
    delete_slot,
    list_bookable_slots,
    list_my_slots,
)


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('telemed.routes.availability_routes.ensure_database_ready', lambda: None)


def _request(**overrides) -> CreateSlotsRequest:
    values = {
        'from_date': date(2026, 1, 10),
        'to_date': date(2026, 1, 12),
        'start_time': time(9, 0),
        'end_time': time(9, 45),
        'consultation_fee': Decimal('500'),
        'appointment_duration': 15,
        'max_appointments': 3,
    }
    values.update(overrides)
    return CreateSlotsRequest(**values)


def test_create_slots_returns_created_slots_for_doctor(db, clock, doctor) -> None:
    slots = create_slots(_request(), current_user=doctor, db=db, clock=clock)

    assert len(slots) == 3
    assert all(slot.doctor_id == doctor.id for slot in slots)


def test_create_slots_maps_validation_errors_to_bad_request(db, clock, doctor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_slots(_request(max_appointments=5), current_user=doctor, db=db, clock=clock)

    assert exception_info.value.status_code == 400
    assert 'too short for 5 appointments' in exception_info.value.detail
    assert db.query(AvailabilitySlot).count() == 0


def test_create_slots_rejects_non_positive_fee(db, clock, doctor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_slots(_request(consultation_fee=Decimal('0')), current_user=doctor, db=db, clock=clock)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Please enter a valid consultation fee'


def test_list_bookable_slots_includes_capacity(db, clock, doctor, make_slot, make_appointment) -> None:
    slot = make_slot()
    make_appointment(slot)

    response = list_bookable_slots(doctor_id=doctor.id, db=db, clock=clock)

    assert len(response) == 1
    assert response[0].id == slot.id
    assert response[0].booked_count == 1
    assert response[0].remaining_capacity == 2


def test_list_my_slots_returns_upcoming_slots(db, clock, doctor, make_slot) -> None:
    slot = make_slot()

    assert [item.id for item in list_my_slots(current_user=doctor, db=db, clock=clock)] == [slot.id]


def test_delete_slot_maps_not_found(db, clock, doctor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        delete_slot(slot_id=999, current_user=doctor, db=db, clock=clock)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Slot not found.'


def test_check_slot_eligibility_reports_advance_notice(db, clock, make_slot) -> None:
    slot = make_slot(slot_date=date(2026, 1, 5), start_time=time(10, 0), end_time=time(11, 0))
    clock.set(datetime(2026, 1, 5, 9, 0))

    response = check_slot_eligibility(slot_id=slot.id, db=db, clock=clock)

    assert response.eligible is False
    assert response.reason == 'advance notice required'
    assert response.checked_at == datetime(2026, 1, 5, 9, 0)
