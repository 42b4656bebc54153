from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import datetime


class MigrationResultResponse(BaseModel):
    entity: str
    migrated_count: int
    errors: List[str]
    deleted_from_cloud: bool


class MigrationStatusResponse(BaseModel):
    completed: bool
    results: List[MigrationResultResponse]
    total_migrated: int
    total_errors: int
    timestamp: datetime


class MigrationRequiredResponse(BaseModel):
    required: bool
    blocked_tables: List[str]


class ClassificationResponse(BaseModel):
    data_type: str
    classification: str
    local_only: bool


class StorageStatusResponse(BaseModel):
    backend: str
    encrypted: bool
    degraded: bool
    records: Dict[str, int]
    blocked_tables: List[str]
    size: Optional[int] = None
    version: Optional[str] = None


class CacheStatsResponse(BaseModel):
    size: int
    max_size: int
    ttl: float
    hits: int
    misses: int
    hit_rate: float


class MessageResponse(BaseModel):
    message: str
    details: Optional[Dict[str, Any]] = None
