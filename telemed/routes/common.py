from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from telemed.core.clock import Clock, SystemClock
from telemed.core.errors import BookingError
from telemed.database import SessionLocal, ensure_appointment_schema, ensure_slot_schema
from telemed.services.payment_gateway import MockPaymentGateway, PaymentGateway

_system_clock = SystemClock()
_payment_gateway = MockPaymentGateway()


def ensure_database_ready() -> None:
    try:
        ensure_slot_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL.',
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock() -> Clock:
    return _system_clock


def get_payment_gateway() -> PaymentGateway:
    return _payment_gateway


def to_http_exception(exc: BookingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)
