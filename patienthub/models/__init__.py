from .user import User, RefreshToken
from .osteopath import Osteopath, OsteopathStatus, OsteopathStatusHistory
from .cabinet import Cabinet
from .patient import Patient, Gender
from .appointment import Appointment, AppointmentStatus
from .invoice import Invoice, PaymentStatus
from .consultation import Consultation
from .hds import HDSTableBlock

__all__ = [
    "User", "RefreshToken",
    "Osteopath", "OsteopathStatus", "OsteopathStatusHistory",
    "Cabinet",
    "Patient", "Gender",
    "Appointment", "AppointmentStatus",
    "Invoice", "PaymentStatus",
    "Consultation",
    "HDSTableBlock",
]
