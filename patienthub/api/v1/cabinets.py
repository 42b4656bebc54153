from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List

from ...core.database import get_db
from ...api.deps import get_osteopath_user
from ...models import Osteopath
from ...schemas.cabinet import CabinetCreate, CabinetUpdate, CabinetResponse
from ...services.cabinet_service import CabinetService

router = APIRouter(prefix="/cabinets", tags=["Cabinets"])


def get_cabinet_service(
    osteopath: Osteopath = Depends(get_osteopath_user),
    db: Session = Depends(get_db)
) -> CabinetService:
    return CabinetService(db, osteopath.id)


@router.get("", response_model=List[CabinetResponse])
async def list_cabinets(service: CabinetService = Depends(get_cabinet_service)):
    return service.list_cabinets()


@router.get("/{cabinet_id}", response_model=CabinetResponse)
async def get_cabinet(cabinet_id: int, service: CabinetService = Depends(get_cabinet_service)):
    return service.get_cabinet(cabinet_id)


@router.post("", response_model=CabinetResponse, status_code=status.HTTP_201_CREATED)
async def create_cabinet(
    cabinet_data: CabinetCreate,
    service: CabinetService = Depends(get_cabinet_service)
):
    return service.create_cabinet(cabinet_data)


@router.patch("/{cabinet_id}", response_model=CabinetResponse)
async def update_cabinet(
    cabinet_id: int,
    cabinet_data: CabinetUpdate,
    service: CabinetService = Depends(get_cabinet_service)
):
    return service.update_cabinet(cabinet_id, cabinet_data)


@router.delete("/{cabinet_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_cabinet(cabinet_id: int, service: CabinetService = Depends(get_cabinet_service)):
    service.delete_cabinet(cabinet_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
