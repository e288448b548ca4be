"""Availability slot model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, Time
from telemed.database import Base


class AvailabilitySlot(Base):
    """A doctor's bookable window on one calendar day."""
    __tablename__ = "availability_slots"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    slot_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    consultation_fee = Column(Numeric(10, 2), nullable=False)
    appointment_duration = Column(Integer, nullable=False)  # minutes per patient
    max_appointments = Column(Integer, nullable=False)
    allow_same_day_booking = Column(Boolean, default=False, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.slot_date, self.start_time)

    @property
    def window_minutes(self) -> int:
        start = self.start_time.hour * 60 + self.start_time.minute
        end = self.end_time.hour * 60 + self.end_time.minute
        return end - start
