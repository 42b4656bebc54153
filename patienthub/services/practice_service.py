"""
Patient, appointment, invoice and consultation CRUD for one osteopath.

Reads go through the shared TTL cache; every mutation drops the entity's
list and detail keys. Storage is whatever ``HybridDataService`` routes the
entity to, so the same service serves cloud rows before the forced
migration and local HDS records after it.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ..storage.cache import CacheKeys, CachedResource, TTLCache, global_cache
from ..storage.local import LocalStorage
from .hds_policy import HybridDataService

logger = logging.getLogger(__name__)


class EntityService:
    entity: str = None
    label: str = None
    list_key: Callable[[int], str] = None
    detail_key: Callable[[int], str] = None

    def __init__(self, db: Session, local_storage: LocalStorage, osteopath_id: int,
                 cache: TTLCache = None):
        self.data = HybridDataService(db, local_storage)
        self.osteopath_id = osteopath_id
        self.cache = cache if cache is not None else global_cache

    def _scope(self) -> Dict[str, Any]:
        return {"osteopath_id": self.osteopath_id}

    def _not_found(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{self.label} not found"
        )

    def invalidate(self) -> int:
        return self.cache.invalidate_pattern(CacheKeys.entity_pattern(self.entity))

    def validate(self, data: Dict[str, Any]) -> None:
        """Hook for ownership checks before writes."""

    async def list(self, force_refresh: bool = False) -> List[Dict[str, Any]]:
        async def fetch_all():
            return self.data.get_all(self.entity, self._scope())

        resource = CachedResource(self.list_key(self.osteopath_id), fetch_all, cache=self.cache)
        return await resource.fetch(force_refresh=force_refresh)

    async def get(self, record_id: int) -> Dict[str, Any]:
        async def fetch_one():
            return self.data.get_by_id(self.entity, record_id, self._scope())

        resource = CachedResource(self.detail_key(record_id), fetch_one, cache=self.cache)
        record = await resource.fetch()
        # Detail keys are shared across osteopaths
        if record is None or record.get("osteopath_id") != self.osteopath_id:
            raise self._not_found()
        return record

    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self.validate(data)
        record = self.data.create(self.entity, dict(data, osteopath_id=self.osteopath_id))
        self.invalidate()
        logger.info("%s %s created", self.label, record["id"])
        return record

    async def update(self, record_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        changes = {k: v for k, v in changes.items() if k not in ("id", "osteopath_id")}
        self.validate(changes)
        record = self.data.update(self.entity, record_id, changes, self._scope())
        if record is None:
            raise self._not_found()
        self.invalidate()
        return record

    async def delete(self, record_id: int) -> None:
        if not self.data.delete(self.entity, record_id, self._scope()):
            raise self._not_found()
        self.invalidate()
        logger.info("%s %s deleted", self.label, record_id)


class PatientService(EntityService):
    entity = "patients"
    label = "Patient"
    list_key = staticmethod(CacheKeys.patients)
    detail_key = staticmethod(CacheKeys.patient)


class PatientScopedService(EntityService):
    """Records that reference a patient of the same osteopath."""

    def validate(self, data):
        patient_id = data.get("patient_id")
        if patient_id is None:
            return
        if self.data.get_by_id("patients", patient_id, self._scope()) is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Patient not found for this osteopath"
            )


class AppointmentService(PatientScopedService):
    entity = "appointments"
    label = "Appointment"
    list_key = staticmethod(CacheKeys.appointments)
    detail_key = staticmethod(CacheKeys.appointment)


class InvoiceService(PatientScopedService):
    entity = "invoices"
    label = "Invoice"
    list_key = staticmethod(CacheKeys.invoices)
    detail_key = staticmethod(CacheKeys.invoice)


class ConsultationService(PatientScopedService):
    entity = "consultations"
    label = "Consultation"
    list_key = staticmethod(CacheKeys.consultations)
    detail_key = staticmethod(CacheKeys.consultation)

    async def list_for_patient(self, patient_id: int) -> List[Dict[str, Any]]:
        return [c for c in await self.list() if c.get("patient_id") == patient_id]


def patients_by_id(records: List[Dict[str, Any]]) -> Dict[Optional[int], Dict[str, Any]]:
    return {record["id"]: record for record in records}
