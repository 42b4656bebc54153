from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
import datetime as dt


class ConsultationCreate(BaseModel):
    patient_id: int
    appointment_id: Optional[int] = None
    date: dt.datetime
    notes: str = ""


class ConsultationUpdate(BaseModel):
    date: Optional[dt.datetime] = None
    notes: Optional[str] = None
    is_cancelled: Optional[bool] = None
    cancellation_reason: Optional[str] = Field(None, max_length=255)


class ConsultationResponse(ConsultationCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    osteopath_id: int
    is_cancelled: bool = False
    cancellation_reason: Optional[str] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
