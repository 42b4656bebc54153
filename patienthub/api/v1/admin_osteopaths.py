from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from ...core.database import get_db
from ...api.deps import get_admin_user
from ...models import User
from ...schemas.osteopath import (
    OsteopathWithStatus, OsteopathStatusStats, ActivateOsteopathRequest,
    BlockOsteopathRequest, StatusHistoryResponse
)
from ...services.osteopath_status_service import OsteopathStatusService

router = APIRouter(prefix="/admin/osteopaths", tags=["Administration"])


@router.get("", response_model=List[OsteopathWithStatus])
async def list_osteopaths(
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user)
):
    """All osteopaths, newest first, with time spent in demo."""
    return OsteopathStatusService(db).get_all_with_status()


@router.get("/stats", response_model=List[OsteopathStatusStats])
async def osteopath_status_stats(
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user)
):
    return OsteopathStatusService(db).get_status_stats()


@router.post("/{osteopath_id}/activate", response_model=OsteopathWithStatus)
async def activate_osteopath(
    osteopath_id: int,
    request_data: ActivateOsteopathRequest = None,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user)
):
    service = OsteopathStatusService(db)
    reason = request_data.reason if request_data else None
    return service.with_status(service.activate(osteopath_id, reason, changed_by=admin.id))


@router.post("/{osteopath_id}/block", response_model=OsteopathWithStatus)
async def block_osteopath(
    osteopath_id: int,
    request_data: BlockOsteopathRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user)
):
    service = OsteopathStatusService(db)
    return service.with_status(service.block(osteopath_id, request_data.reason, changed_by=admin.id))


@router.post("/{osteopath_id}/unblock", response_model=OsteopathWithStatus)
async def unblock_osteopath(
    osteopath_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user)
):
    service = OsteopathStatusService(db)
    return service.with_status(service.unblock(osteopath_id, changed_by=admin.id))


@router.get("/{osteopath_id}/history", response_model=List[StatusHistoryResponse])
async def osteopath_status_history(
    osteopath_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user)
):
    return OsteopathStatusService(db).get_status_history(osteopath_id)
