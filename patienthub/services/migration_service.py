"""
Forced HDS migration.

Copies every row of each sensitive cloud table into local storage, then
empties and blocks the cloud table. The run is a straight batch copy:
entities are processed in a fixed order, failures are collected as
messages, and a cloud table is only emptied when all of its rows were
copied and every table that may reference it is already empty. There
is no rollback, no resumption and no conflict resolution against
records already present locally.
"""
import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import utcnow
from ..core.exceptions import (
    HDSComplianceError,
    LocalStorageUnavailable,
    MigrationInProgressError,
)
from ..storage.local import LocalStorage
from .hds_policy import SENSITIVE_MODELS, block_tables, is_table_blocked, row_to_dict

logger = logging.getLogger(__name__)


@dataclass
class MigrationResult:
    entity: str
    migrated_count: int = 0
    errors: List[str] = field(default_factory=list)
    deleted_from_cloud: bool = False


@dataclass
class ForcedMigrationStatus:
    completed: bool
    results: List[MigrationResult]
    total_migrated: int
    total_errors: int
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ForcedMigrationService:
    def __init__(self, models=SENSITIVE_MODELS):
        self.models = tuple(models)
        self.last_status: Optional[ForcedMigrationStatus] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def execute_forced_migration(self, db: Session,
                                 local_storage: Optional[LocalStorage]) -> ForcedMigrationStatus:
        if not self._lock.acquire(blocking=False):
            raise MigrationInProgressError("Migration already in progress")

        logger.warning("Forced HDS migration started")
        try:
            if local_storage is None:
                raise LocalStorageUnavailable(
                    "Local storage unavailable, HDS migration impossible"
                )

            copied = []
            for model in self.models:
                logger.info("Migrating %s", model.__tablename__)
                result, copied_ids, complete = self._copy_entity(db, model, local_storage)
                copied.append((model, result, copied_ids, complete))
            results = [entry[1] for entry in copied]

            # Later entities reference earlier ones: delete from the end and
            # stop at the first table that has to stay
            for model, result, copied_ids, complete in reversed(copied):
                if result.deleted_from_cloud:
                    continue
                if not complete:
                    logger.warning("%s incomplete, earlier tables stay in the cloud", result.entity)
                    break
                self._remove_from_cloud(db, model, result, copied_ids)
                if not result.deleted_from_cloud:
                    break

            self.verify_migration_complete(db)

            total_migrated = sum(r.migrated_count for r in results)
            total_errors = sum(len(r.errors) for r in results)
            status = ForcedMigrationStatus(
                completed=total_errors == 0,
                results=results,
                total_migrated=total_migrated,
                total_errors=total_errors,
                timestamp=utcnow(),
            )
            self.last_status = status
            logger.warning(
                "Forced HDS migration finished: %d records migrated, %d errors",
                total_migrated, total_errors,
            )
            return status
        except Exception as e:
            logger.error("Forced HDS migration failed: %s", e)
            raise
        finally:
            self._lock.release()

    def _copy_entity(self, db: Session, model,
                     local_storage: LocalStorage) -> Tuple[MigrationResult, List[int], bool]:
        """Copy every cloud row of ``model``; returns the copied ids and whether none failed."""
        entity = model.__tablename__
        result = MigrationResult(entity=entity)
        copied_ids = []

        if is_table_blocked(db, entity):
            logger.info("%s already blocked in the cloud, nothing to migrate", entity)
            result.deleted_from_cloud = True
            return result, copied_ids, False

        try:
            rows = db.query(model).order_by(model.id).all()
        except SQLAlchemyError as e:
            db.rollback()
            result.errors.append(f"Cloud read error for {entity}: {e}")
            return result, copied_ids, False

        if not rows:
            logger.info("No %s to migrate", entity)
            return result, copied_ids, True

        logger.info("%d %s to migrate", len(rows), entity)
        for row in rows:
            record = row_to_dict(row)
            try:
                local_storage.create(entity, record)
                copied_ids.append(record["id"])
                result.migrated_count += 1
            except Exception as e:
                message = f"Migration error for {entity} id {record.get('id', 'unknown')}: {e}"
                result.errors.append(message)
                logger.error(message)

        return result, copied_ids, result.migrated_count == len(rows)

    def _remove_from_cloud(self, db: Session, model, result: MigrationResult,
                           copied_ids: List[int]) -> None:
        """Delete the copied rows; the table is blocked only once it is empty."""
        entity = model.__tablename__
        try:
            if copied_ids:
                db.query(model).filter(model.id.in_(copied_ids)).delete(synchronize_session=False)
                db.commit()
            # Rows written after the copy started were never copied
            late = db.query(model.id).count()
            if late:
                result.errors.append(
                    f"{late} {entity} rows were created during the migration and stay in the cloud"
                )
                logger.error("%d %s rows created during the migration", late, entity)
                return
            block_tables(db, [entity], reason="migrated to local HDS storage")
            result.deleted_from_cloud = True
            logger.info("%s deleted from the cloud", entity)
        except SQLAlchemyError as e:
            db.rollback()
            result.errors.append(f"Cloud delete error for {entity}: {e}")

    def verify_migration_complete(self, db: Session) -> None:
        for model in self.models:
            try:
                remaining = db.query(model.id).limit(1).first()
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning("Cannot verify %s: %s", model.__tablename__, e)
                continue
            if remaining is not None:
                raise HDSComplianceError(
                    f"{model.__tablename__} rows remain in the cloud database",
                    {"entity": model.__tablename__},
                )
        logger.info("Verification OK: no sensitive data left in the cloud")

    def is_migration_required(self, db: Session) -> bool:
        try:
            for model in self.models:
                if db.query(model.id).limit(1).first() is not None:
                    return True
            return False
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Migration check failed, assuming migration is required: %s", e)
            return True

    def emergency_restore(self, backup: Dict[str, List[Dict[str, Any]]],
                          local_storage: LocalStorage) -> int:
        """Write every record of ``backup`` into local storage."""
        logger.warning("Emergency restore started")
        restored = 0
        try:
            for entity, records in backup.items():
                if not isinstance(records, list):
                    continue
                for record in records:
                    local_storage.create(entity, record)
                    restored += 1
        except Exception as e:
            logger.error("Emergency restore failed after %d records: %s", restored, e)
            raise
        logger.warning("Emergency restore finished: %d records", restored)
        return restored


forced_migration_service = ForcedMigrationService()
