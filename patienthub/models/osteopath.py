from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base


class OsteopathStatus(str, enum.Enum):
    DEMO = "demo"
    ACTIVE = "active"
    BLOCKED = "blocked"


class Osteopath(Base):
    __tablename__ = "osteopaths"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    # Professional information
    name = Column(String(200), nullable=False)
    professional_title = Column(String(100), nullable=True, default="Ostéopathe D.O.")
    adeli_number = Column(String(20), nullable=True)
    siret = Column(String(20), nullable=True)

    # Account lifecycle: demo -> active -> blocked
    status = Column(SQLEnum(OsteopathStatus), nullable=False, default=OsteopathStatus.DEMO)
    demo_started_at = Column(DateTime, server_default=func.now())
    activated_at = Column(DateTime, nullable=True)
    blocked_at = Column(DateTime, nullable=True)
    blocked_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="osteopath")
    cabinets = relationship("Cabinet", back_populates="osteopath")
    status_history = relationship(
        "OsteopathStatusHistory",
        back_populates="osteopath",
        order_by="OsteopathStatusHistory.id.desc()",
    )

    def __repr__(self):
        return f"<Osteopath(id={self.id}, status='{self.status}')>"


class OsteopathStatusHistory(Base):
    __tablename__ = "osteopath_status_history"

    id = Column(Integer, primary_key=True, index=True)
    osteopath_id = Column(Integer, ForeignKey("osteopaths.id"), nullable=False, index=True)
    old_status = Column(SQLEnum(OsteopathStatus), nullable=True)
    new_status = Column(SQLEnum(OsteopathStatus), nullable=False)
    reason = Column(Text, nullable=True)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    osteopath = relationship("Osteopath", back_populates="status_history")
