"""
Local storage for HDS-classified records.

The primary backend is an SQLite file whose rows hold Fernet-encrypted
JSON payloads. When that file cannot be opened, ``get_local_storage``
falls back to ``SQLiteFallbackStore``, which keeps plaintext JSON in a
key-value backend and is meant only as a degraded mode.

Records cross this interface as plain dicts keyed by table name
(``patients``, ``appointments``, ...).
"""
import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from ..core.clock import utcnow
from ..core.config import settings
from ..core.crypto import RecordCipher, get_record_cipher
from ..core.database import get_redis
from ..core.exceptions import StorageError
from .fallback import SQLiteFallbackStore
from .keyvalue import FileKeyValueStorage, KeyValueStorage, RedisKeyValueStorage

logger = logging.getLogger(__name__)

LocalBase = declarative_base()


class HDSRecord(LocalBase):
    __tablename__ = "hds_records"

    entity = Column(String(64), primary_key=True)
    record_id = Column(Integer, primary_key=True)
    payload = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


def to_jsonable(value: Any) -> Any:
    """Convert ORM column values into JSON-safe primitives."""
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    return value


class LocalStorage(ABC):
    backend = "abstract"
    encrypted = False

    @abstractmethod
    def create(self, entity: str, record: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    def get_all(self, entity: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def get_by_id(self, entity: str, record_id: int) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def update(self, entity: str, record_id: int, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def delete(self, entity: str, record_id: int) -> bool:
        ...

    def count(self, entity: str) -> int:
        return len(self.get_all(entity))

    @abstractmethod
    def get_stats(self) -> Dict[str, Any]:
        ...


class EncryptedSQLiteStorage(LocalStorage):
    backend = "sqlite"
    encrypted = True

    def __init__(self, url: str, cipher: RecordCipher):
        self.url = url
        self.cipher = cipher
        if url.startswith("sqlite"):
            self.engine = create_engine(url, connect_args={"check_same_thread": False})
        else:
            self.engine = create_engine(url)
        LocalBase.metadata.create_all(bind=self.engine)
        self.Session = sessionmaker(bind=self.engine, autoflush=False)
        logger.info("Encrypted local HDS store ready")

    def _next_id(self, session, entity: str) -> int:
        current = session.query(func.max(HDSRecord.record_id)).filter(
            HDSRecord.entity == entity
        ).scalar()
        return (current or 0) + 1

    def create(self, entity, record):
        record = to_jsonable(dict(record))
        now = utcnow()
        with self.Session() as session:
            try:
                if record.get("id") is None:
                    record["id"] = self._next_id(session, entity)
                record["id"] = int(record["id"])
                if not record.get("created_at"):
                    record["created_at"] = now.isoformat()
                if not record.get("updated_at"):
                    record["updated_at"] = now.isoformat()
                session.merge(HDSRecord(
                    entity=entity,
                    record_id=record["id"],
                    payload=self.cipher.encrypt(record),
                    created_at=now,
                    updated_at=now,
                ))
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise StorageError(f"Cannot store {entity} record: {e}")
        return record

    def get_all(self, entity):
        with self.Session() as session:
            rows = session.query(HDSRecord).filter(
                HDSRecord.entity == entity
            ).order_by(HDSRecord.record_id).all()
            return [self.cipher.decrypt(row.payload) for row in rows]

    def get_by_id(self, entity, record_id):
        with self.Session() as session:
            row = session.get(HDSRecord, (entity, int(record_id)))
            return self.cipher.decrypt(row.payload) if row else None

    def update(self, entity, record_id, changes):
        with self.Session() as session:
            row = session.get(HDSRecord, (entity, int(record_id)))
            if row is None:
                return None
            record = self.cipher.decrypt(row.payload)
            record.update(to_jsonable({k: v for k, v in changes.items() if k != "id"}))
            now = utcnow()
            record["updated_at"] = now.isoformat()
            row.payload = self.cipher.encrypt(record)
            row.updated_at = now
            session.commit()
            return record

    def delete(self, entity, record_id):
        with self.Session() as session:
            row = session.get(HDSRecord, (entity, int(record_id)))
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    def count(self, entity):
        with self.Session() as session:
            return session.query(HDSRecord).filter(HDSRecord.entity == entity).count()

    def get_stats(self):
        with self.Session() as session:
            counts = dict(
                session.query(HDSRecord.entity, func.count(HDSRecord.record_id))
                .group_by(HDSRecord.entity)
                .all()
            )
        return {
            "backend": self.backend,
            "encrypted": self.encrypted,
            "degraded": False,
            "records": counts,
        }


class FallbackLocalStorage(LocalStorage):
    """Drives ``SQLiteFallbackStore`` through its SQL-shaped interface."""

    backend = "fallback"
    encrypted = False

    def __init__(self, store: SQLiteFallbackStore):
        self.store = store

    def create(self, entity, record):
        record = to_jsonable(dict(record))
        if record.get("id") is None:
            record.pop("id", None)
        columns = list(record)
        if columns:
            placeholders = ", ".join("?" for _ in columns)
            sql = f"INSERT INTO {entity} ({', '.join(columns)}) VALUES ({placeholders})"
        else:
            sql = f"INSERT INTO {entity} DEFAULT VALUES"
        result = self.store.run(sql, [record[c] for c in columns])
        return self.store.get_by_id_from_table(entity, result.last_id)

    def get_all(self, entity):
        return self.store.query(f"SELECT * FROM {entity}")

    def get_by_id(self, entity, record_id):
        rows = self.store.query(f"SELECT * FROM {entity} WHERE id = ?", [record_id])
        return rows[0] if rows else None

    def update(self, entity, record_id, changes):
        changes = to_jsonable({k: v for k, v in changes.items() if k != "id"})
        if changes:
            assignments = ", ".join(f"{column} = ?" for column in changes)
            sql = f"UPDATE {entity} SET {assignments} WHERE id = ?"
        else:
            sql = f"UPDATE {entity} WHERE id = ?"
        result = self.store.run(sql, list(changes.values()) + [record_id])
        if not result.changes:
            return None
        return self.get_by_id(entity, record_id)

    def delete(self, entity, record_id):
        return self.store.run(f"DELETE FROM {entity} WHERE id = ?", [record_id]).changes == 1

    def get_stats(self):
        stats = self.store.get_stats()
        return {
            "backend": self.backend,
            "encrypted": self.encrypted,
            "degraded": True,
            "records": stats["records"],
            "size": stats["size"],
            "version": stats["version"],
        }


def create_fallback_kv_storage() -> KeyValueStorage:
    if settings.FALLBACK_STORAGE_BACKEND == "redis":
        return RedisKeyValueStorage(get_redis())
    return FileKeyValueStorage(settings.FALLBACK_STORAGE_PATH)


def create_local_storage(backend: str = None) -> LocalStorage:
    backend = backend or settings.LOCAL_STORE_BACKEND
    if backend == "sqlite":
        try:
            return EncryptedSQLiteStorage(settings.LOCAL_STORE_URL, get_record_cipher())
        except SQLAlchemyError as e:
            logger.warning("Encrypted local store unavailable (%s), using degraded fallback store", e)
    elif backend != "fallback":
        logger.warning("Unknown local store backend %r, using fallback store", backend)
    return FallbackLocalStorage(SQLiteFallbackStore(create_fallback_kv_storage()))


_local_storage: Optional[LocalStorage] = None


def get_local_storage() -> LocalStorage:
    """Process-wide local store, created on first use."""
    global _local_storage
    if _local_storage is None:
        _local_storage = create_local_storage()
    return _local_storage
