from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import get_osteopath_user, get_local_storage_dep
from ...models import Osteopath
from ...schemas.consultation import ConsultationCreate, ConsultationUpdate, ConsultationResponse
from ...services.practice_service import ConsultationService
from ...storage.local import LocalStorage

router = APIRouter(prefix="/consultations", tags=["Consultations"])


def get_consultation_service(
    osteopath: Osteopath = Depends(get_osteopath_user),
    db: Session = Depends(get_db),
    local_storage: LocalStorage = Depends(get_local_storage_dep)
) -> ConsultationService:
    return ConsultationService(db, local_storage, osteopath.id)


@router.get("", response_model=List[ConsultationResponse])
async def list_consultations(
    patient_id: Optional[int] = None,
    service: ConsultationService = Depends(get_consultation_service)
):
    if patient_id is not None:
        return await service.list_for_patient(patient_id)
    return await service.list()


@router.get("/{consultation_id}", response_model=ConsultationResponse)
async def get_consultation(
    consultation_id: int,
    service: ConsultationService = Depends(get_consultation_service)
):
    return await service.get(consultation_id)


@router.post("", response_model=ConsultationResponse, status_code=status.HTTP_201_CREATED)
async def create_consultation(
    consultation_data: ConsultationCreate,
    service: ConsultationService = Depends(get_consultation_service)
):
    return await service.create(consultation_data.model_dump())


@router.patch("/{consultation_id}", response_model=ConsultationResponse)
async def update_consultation(
    consultation_id: int,
    consultation_data: ConsultationUpdate,
    service: ConsultationService = Depends(get_consultation_service)
):
    return await service.update(consultation_id, consultation_data.model_dump(exclude_unset=True))


@router.delete("/{consultation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_consultation(
    consultation_id: int,
    service: ConsultationService = Depends(get_consultation_service)
):
    await service.delete(consultation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
