"""
Ephemeral storage for demo sessions.

Each demo session owns two blobs in a key-value backend: the session
descriptor under ``demo_session_<id>`` and its data under
``demo_data_<id>``. Sessions expire after a fixed duration; an expired
session is cleared the first time it is looked up.
"""
import json
import logging
import secrets
import string
import time
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from ..core.config import settings
from ..core.clock import utcnow
from ..core.database import get_redis
from ..core.exceptions import DemoSessionError
from .keyvalue import FileKeyValueStorage, KeyValueStorage, RedisKeyValueStorage

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "demo_session_"
DATA_KEY_PREFIX = "demo_data_"
COLLECTIONS = ("patients", "appointments", "invoices", "cabinets")
SESSION_ID_LENGTH = 10
_ALPHABET = string.ascii_letters + string.digits + "_-"


def _session_id() -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(SESSION_ID_LENGTH))


class DemoLocalStorage:
    def __init__(self, storage: KeyValueStorage, session_minutes: int = 30,
                 clock: Callable[[], datetime] = utcnow):
        self.storage = storage
        self.session_duration = timedelta(minutes=session_minutes)
        self._clock = clock

    @staticmethod
    def _session_key(session_id: str) -> str:
        return f"{SESSION_KEY_PREFIX}{session_id}"

    @staticmethod
    def _data_key(session_id: str) -> str:
        return f"{DATA_KEY_PREFIX}{session_id}"

    def create_session(self) -> dict:
        now = self._clock()
        session = {
            "session_id": _session_id(),
            "created_at": now.isoformat(),
            "expires_at": (now + self.session_duration).isoformat(),
            "is_active": True,
        }
        data = {collection: [] for collection in COLLECTIONS}
        data["next_id"] = 1

        self.storage.set_item(self._session_key(session["session_id"]), json.dumps(session))
        self.storage.set_item(self._data_key(session["session_id"]), json.dumps(data))
        logger.info("Demo session %s created", session["session_id"])
        return session

    def get_session(self, session_id: str) -> Optional[dict]:
        raw = self.storage.get_item(self._session_key(session_id))
        if not raw:
            return None
        try:
            session = json.loads(raw)
            expires_at = datetime.fromisoformat(session["expires_at"])
        except (ValueError, KeyError) as e:
            logger.error("Unreadable demo session %s: %s", session_id, e)
            self.clear_session(session_id)
            return None

        if self._clock() > expires_at:
            logger.info("Demo session %s expired", session_id)
            self.clear_session(session_id)
            return None
        return session

    def is_session_active(self, session_id: str) -> bool:
        session = self.get_session(session_id)
        return session is not None and session.get("is_active", False)

    def _load_data(self, session_id: str) -> dict:
        if not self.is_session_active(session_id):
            raise DemoSessionError("No active demo session", {"session_id": session_id})
        raw = self.storage.get_item(self._data_key(session_id))
        if not raw:
            raise DemoSessionError("Demo session has no data", {"session_id": session_id})
        return json.loads(raw)

    def _save_data(self, session_id: str, data: dict) -> None:
        self.storage.set_item(self._data_key(session_id), json.dumps(data))

    @staticmethod
    def _check_collection(collection: str) -> None:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown demo collection: {collection}")

    def get_records(self, session_id: str, collection: str) -> List[dict]:
        self._check_collection(collection)
        return self._load_data(session_id)[collection]

    def get_record(self, session_id: str, collection: str, record_id: int) -> Optional[dict]:
        for record in self.get_records(session_id, collection):
            if record["id"] == record_id:
                return record
        return None

    def add_record(self, session_id: str, collection: str, record: dict) -> dict:
        self._check_collection(collection)
        data = self._load_data(session_id)

        temp_id = data.get("next_id", 1)
        data["next_id"] = temp_id + 1
        now = self._clock().isoformat()
        new_record = dict(record, id=temp_id, created_at=now, updated_at=now)
        if collection == "patients" and not new_record.get("email"):
            # Technical address so exports never carry an empty contact
            new_record["email"] = f"patient-{int(time.time() * 1000)}-{temp_id}@temp.local"

        data[collection].append(new_record)
        self._save_data(session_id, data)
        return new_record

    def update_record(self, session_id: str, collection: str, record_id: int,
                      changes: dict) -> Optional[dict]:
        self._check_collection(collection)
        data = self._load_data(session_id)
        for index, record in enumerate(data[collection]):
            if record["id"] == record_id:
                updated = dict(record, **{k: v for k, v in changes.items() if k != "id"})
                updated["updated_at"] = self._clock().isoformat()
                data[collection][index] = updated
                self._save_data(session_id, data)
                return updated
        return None

    def delete_record(self, session_id: str, collection: str, record_id: int) -> bool:
        self._check_collection(collection)
        data = self._load_data(session_id)
        remaining = [r for r in data[collection] if r["id"] != record_id]
        if len(remaining) == len(data[collection]):
            return False
        data[collection] = remaining
        self._save_data(session_id, data)
        return True

    def clear_session(self, session_id: str) -> None:
        self.storage.remove_item(self._session_key(session_id))
        self.storage.remove_item(self._data_key(session_id))

    def purge_expired_sessions(self) -> int:
        """Clear every stored session that has expired; returns how many."""
        purged = 0
        for key in self.storage.keys():
            if key.startswith(SESSION_KEY_PREFIX):
                session_id = key[len(SESSION_KEY_PREFIX):]
                if self.get_session(session_id) is None:
                    purged += 1
        if purged:
            logger.info("Purged %d expired demo sessions", purged)
        return purged

    def get_session_stats(self, session_id: str) -> Dict[str, object]:
        session = self.get_session(session_id)
        if session is None:
            raise DemoSessionError("No active demo session", {"session_id": session_id})
        data = self._load_data(session_id)
        remaining = datetime.fromisoformat(session["expires_at"]) - self._clock()
        return {
            "session_id": session_id,
            "counts": {collection: len(data[collection]) for collection in COLLECTIONS},
            "remaining_seconds": max(0, int(remaining.total_seconds())),
        }


_demo_storage: Optional[DemoLocalStorage] = None


def get_demo_storage() -> DemoLocalStorage:
    """Demo sessions live in Redis unless ``DEMO_STORAGE_PATH`` names a file."""
    global _demo_storage
    if _demo_storage is None:
        if settings.DEMO_STORAGE_PATH:
            backend = FileKeyValueStorage(settings.DEMO_STORAGE_PATH)
        else:
            backend = RedisKeyValueStorage(get_redis(), namespace="patienthub:demo:")
        _demo_storage = DemoLocalStorage(backend, session_minutes=settings.DEMO_SESSION_MINUTES)
    return _demo_storage
