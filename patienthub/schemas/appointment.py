from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
import datetime as dt

from ..models.appointment import AppointmentStatus


class AppointmentCreate(BaseModel):
    patient_id: int
    cabinet_id: Optional[int] = None
    date: dt.datetime
    duration: int = Field(60, gt=0, le=480)
    status: AppointmentStatus = AppointmentStatus.PLANNED
    reason: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    cabinet_id: Optional[int] = None
    date: Optional[dt.datetime] = None
    duration: Optional[int] = Field(None, gt=0, le=480)
    status: Optional[AppointmentStatus] = None
    reason: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class AppointmentResponse(AppointmentCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    osteopath_id: int
    notification_sent: bool = False
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
