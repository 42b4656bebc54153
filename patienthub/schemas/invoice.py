from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
import datetime as dt
from decimal import Decimal

from ..models.invoice import PaymentStatus


class InvoiceCreate(BaseModel):
    patient_id: int
    appointment_id: Optional[int] = None
    cabinet_id: Optional[int] = None
    amount: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    date: dt.date
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: Optional[str] = Field(None, max_length=50)
    payment_date: Optional[dt.date] = None
    tva_exoneration: bool = True
    tva_motif: Optional[str] = "TVA non applicable - Article 261-4-1° du CGI"
    notes: Optional[str] = None


class InvoiceUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    date: Optional[dt.date] = None
    payment_status: Optional[PaymentStatus] = None
    payment_method: Optional[str] = Field(None, max_length=50)
    payment_date: Optional[dt.date] = None
    tva_exoneration: Optional[bool] = None
    tva_motif: Optional[str] = None
    notes: Optional[str] = None


class InvoiceResponse(InvoiceCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    osteopath_id: int
    amount: float
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
