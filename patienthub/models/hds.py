from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func

from ..core.database import Base


class HDSTableBlock(Base):
    """A cloud table closed to all access once its rows moved to local storage."""

    __tablename__ = "hds_table_blocks"

    id = Column(Integer, primary_key=True, index=True)
    table_name = Column(String(100), unique=True, nullable=False, index=True)
    policy_name = Column(String(150), nullable=False)
    reason = Column(Text, nullable=True)
    blocked_at = Column(DateTime, server_default=func.now())

    def __repr__(self):
        return f"<HDSTableBlock(table_name='{self.table_name}')>"
