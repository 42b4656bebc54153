from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import get_osteopath_user, get_local_storage_dep
from ...models import Osteopath
from ...schemas.appointment import AppointmentCreate, AppointmentUpdate, AppointmentResponse
from ...services.practice_service import AppointmentService
from ...storage.local import LocalStorage

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_appointment_service(
    osteopath: Osteopath = Depends(get_osteopath_user),
    db: Session = Depends(get_db),
    local_storage: LocalStorage = Depends(get_local_storage_dep)
) -> AppointmentService:
    return AppointmentService(db, local_storage, osteopath.id)


@router.get("", response_model=List[AppointmentResponse])
async def list_appointments(
    patient_id: Optional[int] = None,
    service: AppointmentService = Depends(get_appointment_service)
):
    """List appointments, optionally for one patient."""
    appointments = await service.list()
    if patient_id is not None:
        appointments = [a for a in appointments if a.get("patient_id") == patient_id]
    return appointments


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.get(appointment_id)


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment_data: AppointmentCreate,
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.create(appointment_data.model_dump())


@router.patch("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: int,
    appointment_data: AppointmentUpdate,
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.update(appointment_id, appointment_data.model_dump(exclude_unset=True))


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service)
):
    await service.delete(appointment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
