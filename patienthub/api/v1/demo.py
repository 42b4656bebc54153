from fastapi import APIRouter, Depends, HTTPException, Response, status
from typing import Any, Dict, List

from ...api.deps import get_demo_storage_dep
from ...core.exceptions import DemoSessionError
from ...schemas.demo import DemoSessionResponse, DemoSessionStats
from ...storage.demo import COLLECTIONS, DemoLocalStorage

router = APIRouter(prefix="/demo/sessions", tags=["Demo"])


def _check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown demo collection: {collection}"
        )


@router.post("", response_model=DemoSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_demo_session(storage: DemoLocalStorage = Depends(get_demo_storage_dep)):
    """Start a demo session; its data lives only in ephemeral storage."""
    storage.purge_expired_sessions()
    return storage.create_session()


@router.get("/{session_id}", response_model=DemoSessionStats)
async def get_demo_session(
    session_id: str,
    storage: DemoLocalStorage = Depends(get_demo_storage_dep)
):
    return storage.get_session_stats(session_id)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def end_demo_session(
    session_id: str,
    storage: DemoLocalStorage = Depends(get_demo_storage_dep)
):
    storage.clear_session(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{session_id}/{collection}", response_model=List[Dict[str, Any]])
async def list_demo_records(
    session_id: str,
    collection: str,
    storage: DemoLocalStorage = Depends(get_demo_storage_dep)
):
    _check_collection(collection)
    return storage.get_records(session_id, collection)


@router.post("/{session_id}/{collection}", response_model=Dict[str, Any],
             status_code=status.HTTP_201_CREATED)
async def add_demo_record(
    session_id: str,
    collection: str,
    record: Dict[str, Any],
    storage: DemoLocalStorage = Depends(get_demo_storage_dep)
):
    _check_collection(collection)
    return storage.add_record(session_id, collection, record)


@router.patch("/{session_id}/{collection}/{record_id}", response_model=Dict[str, Any])
async def update_demo_record(
    session_id: str,
    collection: str,
    record_id: int,
    changes: Dict[str, Any],
    storage: DemoLocalStorage = Depends(get_demo_storage_dep)
):
    _check_collection(collection)
    record = storage.update_record(session_id, collection, record_id, changes)
    if record is None:
        raise DemoSessionError("Demo record not found", {"record_id": record_id})
    return record


@router.delete("/{session_id}/{collection}/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_demo_record(
    session_id: str,
    collection: str,
    record_id: int,
    storage: DemoLocalStorage = Depends(get_demo_storage_dep)
):
    _check_collection(collection)
    if not storage.delete_record(session_id, collection, record_id):
        raise DemoSessionError("Demo record not found", {"record_id": record_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
