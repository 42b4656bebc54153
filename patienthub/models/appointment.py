from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Text, Enum as SQLEnum
from sqlalchemy.sql import func
import enum

from ..core.database import Base


class AppointmentStatus(str, enum.Enum):
    PLANNED = "PLANNED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"
    NO_SHOW = "NO_SHOW"


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    osteopath_id = Column(Integer, ForeignKey("osteopaths.id"), nullable=False, index=True)
    cabinet_id = Column(Integer, ForeignKey("cabinets.id"), nullable=True)

    date = Column(DateTime, nullable=False, index=True)
    duration = Column(Integer, nullable=False, default=60)
    status = Column(SQLEnum(AppointmentStatus), default=AppointmentStatus.PLANNED)
    reason = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    notification_sent = Column(Boolean, default=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Appointment(id={self.id}, patient_id={self.patient_id}, date='{self.date}')>"
