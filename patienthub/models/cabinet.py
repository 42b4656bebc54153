from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base


class Cabinet(Base):
    __tablename__ = "cabinets"

    id = Column(Integer, primary_key=True, index=True)
    osteopath_id = Column(Integer, ForeignKey("osteopaths.id"), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    address = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    osteopath = relationship("Osteopath", back_populates="cabinets")

    def __repr__(self):
        return f"<Cabinet(id={self.id}, name='{self.name}')>"
