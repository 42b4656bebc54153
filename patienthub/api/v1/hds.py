from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging

from ...core.database import get_db
from ...api.deps import get_admin_user, get_current_user, get_local_storage_dep
from ...models import User
from ...schemas.hds import (
    CacheStatsResponse, ClassificationResponse, MessageResponse,
    MigrationRequiredResponse, MigrationStatusResponse, StorageStatusResponse
)
from ...services.hds_policy import get_blocked_tables, get_data_classification
from ...services.migration_service import forced_migration_service
from ...storage.cache import global_cache
from ...storage.local import LocalStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hds", tags=["HDS compliance"])


@router.get("/migration/required", response_model=MigrationRequiredResponse)
async def migration_required(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {
        "required": forced_migration_service.is_migration_required(db),
        "blocked_tables": get_blocked_tables(db),
    }


@router.post("/migration", response_model=MigrationStatusResponse)
def run_forced_migration(
    db: Session = Depends(get_db),
    local_storage: LocalStorage = Depends(get_local_storage_dep),
    admin: User = Depends(get_admin_user)
):
    """Move every sensitive cloud row into local storage and block the cloud tables."""
    logger.warning("Forced HDS migration requested by user %s", admin.id)
    result = forced_migration_service.execute_forced_migration(db, local_storage)
    # Cached reads may still hold cloud rows
    global_cache.clear()
    return result.to_dict()


@router.get("/migration/status", response_model=MigrationStatusResponse)
async def migration_status(current_user: User = Depends(get_current_user)):
    if forced_migration_service.last_status is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No migration has run yet"
        )
    return forced_migration_service.last_status.to_dict()


@router.get("/storage", response_model=StorageStatusResponse)
async def storage_status(
    db: Session = Depends(get_db),
    local_storage: LocalStorage = Depends(get_local_storage_dep),
    current_user: User = Depends(get_current_user)
):
    return dict(local_storage.get_stats(), blocked_tables=get_blocked_tables(db))


@router.get("/classification/{data_type}", response_model=ClassificationResponse)
async def data_classification(data_type: str):
    classification = get_data_classification(data_type)
    return {
        "data_type": data_type,
        "classification": classification,
        "local_only": classification == "HDS",
    }


@router.get("/cache", response_model=CacheStatsResponse)
async def cache_stats(current_user: User = Depends(get_current_user)):
    return global_cache.get_stats()


@router.post("/cache/clear", response_model=MessageResponse)
async def clear_cache(admin: User = Depends(get_admin_user)):
    size = len(global_cache)
    global_cache.clear()
    return {"message": "Cache cleared", "details": {"cleared": size}}
