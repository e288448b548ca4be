from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from telemed.core import config


def build_engine(database_url: str):
    connect_args = {}
    if database_url.startswith('sqlite'):
        connect_args['check_same_thread'] = False
    return create_engine(database_url, connect_args=connect_args)


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_slot_schema_checked = False
_appointment_schema_checked = False


def ensure_slot_schema(bind=None) -> None:
    global _slot_schema_checked

    if _slot_schema_checked:
        return

    with _schema_lock:
        if _slot_schema_checked:
            return

        bind = bind or engine
        if 'availability_slots' not in inspect(bind).get_table_names():
            _slot_schema_checked = True
            return

        with bind.begin() as connection:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_slots_doctor_date ON availability_slots(doctor_id, slot_date, start_time)')
            )

        _slot_schema_checked = True


def ensure_appointment_schema(bind=None) -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        bind = bind or engine
        if 'appointments' not in inspect(bind).get_table_names():
            _appointment_schema_checked = True
            return

        with bind.begin() as connection:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_slot_status ON appointments(slot_id, status, payment_status)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_deadline ON appointments(payment_status, payment_deadline)')
            )

        _appointment_schema_checked = True
