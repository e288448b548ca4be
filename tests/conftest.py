import os
from datetime import date, datetime, time
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('EXPIRY_SWEEP_ENABLED', 'false')

from telemed.core.clock import FixedClock  # noqa: E402
from telemed.database import Base  # noqa: E402
from telemed.models.appointment import Appointment  # noqa: E402
from telemed.models.availability import AvailabilitySlot  # noqa: E402
from telemed.models.payment import Payment  # noqa: E402
from telemed.models.user import ROLE_DOCTOR, ROLE_PATIENT, User  # noqa: E402
from telemed.services.locks import SlotLockRegistry  # noqa: E402
from telemed.services.store import Store  # noqa: E402

NOW = datetime(2026, 1, 5, 8, 0)
TABLES = [User.__table__, AvailabilitySlot.__table__, Appointment.__table__, Payment.__table__]


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f'sqlite:///{tmp_path / "telemed.db"}',
        connect_args={'check_same_thread': False},
    )
    Base.metadata.create_all(bind=engine, tables=TABLES)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return Store(db)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def locks():
    return SlotLockRegistry(timeout_seconds=5)


@pytest.fixture
def doctor(db):
    user = User(email='doctor@example.com', full_name='Dr. Rahman', role=ROLE_DOCTOR, hashed_password='')
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def patient(db):
    user = User(email='patient@example.com', full_name='Nadia Islam', role=ROLE_PATIENT, hashed_password='')
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_patient(db):
    created = []

    def factory() -> User:
        user = User(
            email=f'patient{len(created) + 1}@example.org',
            role=ROLE_PATIENT,
            hashed_password='',
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        created.append(user)
        return user

    return factory


@pytest.fixture
def make_slot(db, doctor):
    def factory(
        slot_date: date = date(2026, 1, 12),
        start_time: time = time(9, 0),
        end_time: time = time(9, 45),
        duration: int = 15,
        max_appointments: int = 3,
        allow_same_day_booking: bool = False,
        fee: Decimal = Decimal('500.00'),
        is_available: bool = True,
    ) -> AvailabilitySlot:
        slot = AvailabilitySlot(
            doctor_id=doctor.id,
            slot_date=slot_date,
            start_time=start_time,
            end_time=end_time,
            consultation_fee=fee,
            appointment_duration=duration,
            max_appointments=max_appointments,
            allow_same_day_booking=allow_same_day_booking,
            is_available=is_available,
        )
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot

    return factory


@pytest.fixture
def make_appointment(db, patient):
    def factory(slot: AvailabilitySlot, **overrides) -> Appointment:
        appointment_date = datetime.combine(slot.slot_date, slot.start_time)
        values = {
            'patient_id': patient.id,
            'doctor_id': slot.doctor_id,
            'slot_id': slot.id,
            'appointment_date': appointment_date,
            'status': 'pending_payment',
            'payment_status': 'pending',
            'payment_deadline': appointment_date,
            'amount': slot.consultation_fee,
        }
        values.update(overrides)
        appointment = Appointment(**values)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return factory
