import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from telemed.core import config


@dataclass(frozen=True)
class JoinStatus:
    can_join: bool
    reason: str | None = None
    minutes_until_start: int | None = None


@dataclass(frozen=True)
class TimeUntil:
    days: int
    hours: int
    minutes: int
    total_minutes: int


def can_join(reservation_start: datetime | None, reservation_end: datetime | None, now: datetime) -> JoinStatus:
    if reservation_start is None or reservation_end is None:
        return JoinStatus(False, 'Appointment time not set')

    opens_at = reservation_start - timedelta(minutes=config.JOIN_WINDOW_LEAD_MINUTES)
    if now < opens_at:
        minutes_until_start = math.ceil((opens_at - now).total_seconds() / 60)
        return JoinStatus(False, f'Available in {minutes_until_start} minutes', minutes_until_start)

    if now > reservation_end:
        return JoinStatus(False, 'Appointment has ended')

    return JoinStatus(True)


def is_appointment_missed(
    reservation_start: datetime | None,
    duration_minutes: int | None,
    doctor_joined_at: datetime | None,
    now: datetime,
) -> bool:
    # Missed once half the reservation has passed without the doctor joining.
    if reservation_start is None or not duration_minutes:
        return False
    if doctor_joined_at is not None:
        return False
    return now > reservation_start + timedelta(minutes=duration_minutes / 2)


def time_until_appointment(reservation_start: datetime | None, now: datetime) -> TimeUntil:
    if reservation_start is None or reservation_start <= now:
        return TimeUntil(0, 0, 0, 0)

    total_minutes = int((reservation_start - now).total_seconds() // 60)
    return TimeUntil(
        days=total_minutes // (24 * 60),
        hours=(total_minutes % (24 * 60)) // 60,
        minutes=total_minutes % 60,
        total_minutes=total_minutes,
    )
