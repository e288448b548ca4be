"""Payment model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from telemed.database import Base


class Payment(Base):
    """Record of a completed consultation payment. Never updated after insert."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False, unique=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    admin_commission = Column(Numeric(10, 2), nullable=False)
    doctor_earnings = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String, nullable=False)
    payment_status = Column(String, nullable=False, default='completed')
    transaction_id = Column(String, nullable=False, unique=True)
    paid_at = Column(DateTime, nullable=False)
