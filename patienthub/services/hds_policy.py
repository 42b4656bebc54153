"""
HDS data classification, cloud table blocking and storage routing.

Health data classified HDS must live in local encrypted storage. Once a
table has been migrated it is blocked on the cloud side: on PostgreSQL with
a row-level security policy that denies every row, and on every backend
with an ``hds_table_blocks`` entry that ``HybridDataService`` consults to
send reads and writes to the local store instead.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..core.exceptions import HDSAccessBlocked, HDSSecurityViolation
from ..models import Appointment, Consultation, HDSTableBlock, Invoice, Patient
from ..storage.local import LocalStorage, to_jsonable

logger = logging.getLogger(__name__)

HDS_DATA_TYPES = (
    "patients",
    "appointments",
    "consultations",
    "medical_records",
    "patient_documents",
    "appointment_notes",
    "billing_data",
)

# Invoices are accounting data and may stay in the cloud
NON_HDS_DATA_TYPES = (
    "invoices",
    "user_preferences",
    "system_settings",
    "audit_logs",
    "osteopaths",
    "cabinets",
    "users",
    "subscriptions",
    "cabinet_invitations",
    "system_metrics",
    "rate_limits",
    "google_calendar_tokens",
)

# Cloud tables emptied by the forced migration, in migration order
SENSITIVE_MODELS = (Patient, Appointment, Invoice, Consultation)
ENTITY_MODELS = {model.__tablename__: model for model in SENSITIVE_MODELS}


def is_hds_data(data_type: str) -> bool:
    return data_type in HDS_DATA_TYPES


def is_non_hds_data(data_type: str) -> bool:
    return data_type in NON_HDS_DATA_TYPES


def get_data_classification(data_type: str) -> str:
    if is_hds_data(data_type):
        return "HDS"
    if is_non_hds_data(data_type):
        return "NON_HDS"
    return "UNKNOWN"


def validate_hds_security_policy(data_type: str, target_storage: str) -> None:
    """Refuse to route HDS-classified data to cloud storage."""
    if is_hds_data(data_type) and target_storage == "cloud":
        raise HDSSecurityViolation(
            f'"{data_type}" is classified HDS and cannot be stored in the cloud',
            {"data_type": data_type, "target": target_storage},
        )


def policy_name(table_name: str) -> str:
    return f"HDS_BLOCK_ALL_{table_name.upper()}_ACCESS"


def blocking_policy_sql(table_name: str) -> List[str]:
    """Statements that close ``table_name`` to every role."""
    policy = policy_name(table_name)
    return [
        f'ALTER TABLE public."{table_name}" ENABLE ROW LEVEL SECURITY',
        f'DROP POLICY IF EXISTS "{policy}" ON public."{table_name}"',
        f'CREATE POLICY "{policy}" ON public."{table_name}" '
        f"FOR ALL USING (false) WITH CHECK (false)",
    ]


def is_table_blocked(db: Session, table_name: str) -> bool:
    return db.query(HDSTableBlock).filter(
        HDSTableBlock.table_name == table_name
    ).first() is not None


def get_blocked_tables(db: Session) -> List[str]:
    return [row.table_name for row in db.query(HDSTableBlock).order_by(HDSTableBlock.id).all()]


def ensure_cloud_access(db: Session, table_name: str) -> None:
    if is_table_blocked(db, table_name):
        raise HDSAccessBlocked(table_name)


def block_tables(db: Session, table_names: Iterable[str], reason: str = None) -> List[str]:
    """Record blocks for ``table_names`` and apply RLS where the dialect has it."""
    blocked = []
    apply_rls = db.get_bind().dialect.name == "postgresql"
    for table_name in table_names:
        if not is_table_blocked(db, table_name):
            db.add(HDSTableBlock(
                table_name=table_name,
                policy_name=policy_name(table_name),
                reason=reason,
            ))
        if apply_rls:
            for statement in blocking_policy_sql(table_name):
                db.execute(text(statement))
        blocked.append(table_name)
    db.commit()
    logger.info("Blocked cloud tables: %s", ", ".join(blocked))
    return blocked


def row_to_dict(row) -> Dict[str, Any]:
    return to_jsonable({c.key: getattr(row, c.key) for c in row.__table__.columns})


def _owned(record: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    return all(record.get(key) == value for key, value in (filters or {}).items())


class HybridDataService:
    """
    Routes entity CRUD to the cloud table or to local storage.

    An entity goes local once its cloud table is blocked; until then the
    cloud table answers. ``filters`` restrict every operation to matching
    records (typically ``{"osteopath_id": ...}``).
    """

    def __init__(self, db: Session, local_storage: LocalStorage):
        self.db = db
        self.local_storage = local_storage
        self._blocked = None

    def is_local(self, entity: str) -> bool:
        if self._blocked is None:
            self._blocked = set(get_blocked_tables(self.db))
        return entity in self._blocked

    def _model(self, entity: str):
        try:
            model = ENTITY_MODELS[entity]
        except KeyError:
            raise ValueError(f"Unknown entity: {entity}")
        # The table may have been blocked since routing was decided
        ensure_cloud_access(self.db, entity)
        return model

    def get_all(self, entity: str, filters: Dict[str, Any] = None) -> List[Dict[str, Any]]:
        if self.is_local(entity):
            logger.debug("HDS routing: %s -> local storage", entity)
            records = [r for r in self.local_storage.get_all(entity) if _owned(r, filters)]
            return sorted(records, key=lambda r: r["id"])
        model = self._model(entity)
        rows = self.db.query(model).filter_by(**(filters or {})).order_by(model.id).all()
        return [row_to_dict(row) for row in rows]

    def get_by_id(self, entity: str, record_id: int,
                  filters: Dict[str, Any] = None) -> Optional[Dict[str, Any]]:
        if self.is_local(entity):
            record = self.local_storage.get_by_id(entity, record_id)
            return record if record and _owned(record, filters) else None
        model = self._model(entity)
        row = self.db.query(model).filter_by(id=record_id, **(filters or {})).first()
        return row_to_dict(row) if row else None

    def create(self, entity: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if self.is_local(entity):
            return self.local_storage.create(entity, data)
        model = self._model(entity)
        row = model(**data)
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row_to_dict(row)

    def update(self, entity: str, record_id: int, changes: Dict[str, Any],
               filters: Dict[str, Any] = None) -> Optional[Dict[str, Any]]:
        if self.is_local(entity):
            if self.get_by_id(entity, record_id, filters) is None:
                return None
            return self.local_storage.update(entity, record_id, changes)
        model = self._model(entity)
        row = self.db.query(model).filter_by(id=record_id, **(filters or {})).first()
        if row is None:
            return None
        for key, value in changes.items():
            if key != "id":
                setattr(row, key, value)
        self.db.commit()
        self.db.refresh(row)
        return row_to_dict(row)

    def delete(self, entity: str, record_id: int, filters: Dict[str, Any] = None) -> bool:
        if self.is_local(entity):
            if self.get_by_id(entity, record_id, filters) is None:
                return False
            return self.local_storage.delete(entity, record_id)
        model = self._model(entity)
        row = self.db.query(model).filter_by(id=record_id, **(filters or {})).first()
        if row is None:
            return False
        self.db.delete(row)
        self.db.commit()
        return True
