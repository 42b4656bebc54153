from sqlalchemy import Column, Integer, String, ForeignKey, Date, DateTime, Boolean, Numeric, Text, Enum as SQLEnum
from sqlalchemy.sql import func
import enum

from ..core.database import Base


class PaymentStatus(str, enum.Enum):
    PAID = "PAID"
    PENDING = "PENDING"
    CANCELED = "CANCELED"


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    osteopath_id = Column(Integer, ForeignKey("osteopaths.id"), nullable=False, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True)
    cabinet_id = Column(Integer, ForeignKey("cabinets.id"), nullable=True)

    amount = Column(Numeric(10, 2), nullable=False)
    date = Column(Date, nullable=False)
    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING)
    payment_method = Column(String(50), nullable=True)
    payment_date = Column(Date, nullable=True)
    tva_exoneration = Column(Boolean, default=True)
    tva_motif = Column(String(255), nullable=True, default="TVA non applicable - Article 261-4-1° du CGI")
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Invoice(id={self.id}, patient_id={self.patient_id}, amount={self.amount})>"
