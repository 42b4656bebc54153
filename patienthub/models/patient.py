from sqlalchemy import Column, Integer, String, ForeignKey, Date, DateTime, Boolean, Text, Enum as SQLEnum
from sqlalchemy.sql import func
import enum

from ..core.database import Base


class Gender(str, enum.Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    osteopath_id = Column(Integer, ForeignKey("osteopaths.id"), nullable=False, index=True)
    cabinet_id = Column(Integer, ForeignKey("cabinets.id"), nullable=True)

    # Personal information
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    birth_date = Column(Date, nullable=True)
    gender = Column(SQLEnum(Gender), nullable=True)
    occupation = Column(String(100), nullable=True)

    # Contact information
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    address = Column(String(255), nullable=True)

    # Medical information
    general_practitioner = Column(String(200), nullable=True)
    medical_history = Column(Text, nullable=True)
    allergies = Column(Text, nullable=True)
    current_treatment = Column(Text, nullable=True)
    is_smoker = Column(Boolean, default=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Patient(id={self.id}, osteopath_id={self.osteopath_id})>"
