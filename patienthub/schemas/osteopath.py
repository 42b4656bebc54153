from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

from ..models.osteopath import OsteopathStatus


class OsteopathResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    professional_title: Optional[str] = None
    adeli_number: Optional[str] = None
    siret: Optional[str] = None
    status: OsteopathStatus
    demo_started_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    blocked_at: Optional[datetime] = None
    blocked_reason: Optional[str] = None


class OsteopathWithStatus(OsteopathResponse):
    days_in_demo: Optional[int] = None
    can_activate: bool


class OsteopathStatusStats(BaseModel):
    status: OsteopathStatus
    count: int
    avg_days_in_demo: Optional[float] = None


class ActivateOsteopathRequest(BaseModel):
    reason: Optional[str] = None


class BlockOsteopathRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class StatusHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    osteopath_id: int
    old_status: Optional[OsteopathStatus] = None
    new_status: OsteopathStatus
    reason: Optional[str] = None
    changed_by: Optional[int] = None
    created_at: Optional[datetime] = None
