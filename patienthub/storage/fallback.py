"""
Degraded local store used when the encrypted SQLite file cannot be opened.

``SQLiteFallbackStore`` answers a handful of SQL-shaped statements against
in-memory tables and writes the whole snapshot, as one JSON blob, to a
key-value backend after every change. Statements are recognised with
regular expressions; anything outside the supported shapes is a no-op.

Supported shapes::

    SELECT ... FROM <table> [WHERE <column> = ?]
    SELECT sqlite_version()
    INSERT INTO <table> [(<columns>)] VALUES (...)
    UPDATE <table> SET <column> = ?[, ...] WHERE id = ?
    DELETE FROM <table> WHERE id = ?

There is no journal: a failure while writing the blob loses the snapshot
that was being written.
"""
import json
import logging
import re
import time
from collections import namedtuple
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from ..core.clock import utcnow
from .keyvalue import KeyValueStorage

logger = logging.getLogger(__name__)

STORAGE_KEY = "sqlite-fallback-enhanced"
VERSION = "fallback-enhanced-1.0"
DEFAULT_TABLES = ("patients", "appointments", "invoices", "metadata")

RunResult = namedtuple("RunResult", ["last_id", "changes"])

_IDENT = r"([A-Za-z_][A-Za-z0-9_]*)"
_INSERT_RE = re.compile(rf"^insert\s+into\s+{_IDENT}\s*(?:\(([^)]*)\))?", re.IGNORECASE)
_UPDATE_RE = re.compile(rf"^update\s+{_IDENT}", re.IGNORECASE)
_SET_RE = re.compile(r"\bset\s+(.*?)\s+where\b", re.IGNORECASE | re.DOTALL)
_DELETE_RE = re.compile(rf"^delete\s+from\s+{_IDENT}", re.IGNORECASE)
_FROM_RE = re.compile(rf"\bfrom\s+{_IDENT}", re.IGNORECASE)
_WHERE_RE = re.compile(rf"\bwhere\s+{_IDENT}\s*=\s*\?", re.IGNORECASE)
_WHERE_ID_RE = re.compile(r"\bwhere\s+id\s*=\s*\?", re.IGNORECASE)
_ASSIGNMENT_RE = re.compile(rf"{_IDENT}\s*=\s*\?")

# Positional layouts for inserts without a column list: (field, default)
PATIENT_FIELDS = (
    ("first_name", "Nouveau"),
    ("last_name", "Patient"),
    ("email", None),
    ("phone", ""),
    ("birth_date", None),
    ("address", ""),
    ("medical_history", ""),
    ("allergies", ""),
    ("medications", ""),
    ("emergency_contact", ""),
    ("notes", ""),
)
APPOINTMENT_FIELDS = (
    ("patient_id", None),
    ("osteopath_id", 1),
    ("cabinet_id", None),
    ("date", None),
    ("duration", 60),
    ("status", "PLANNED"),
    ("notes", ""),
    ("diagnosis", ""),
    ("treatment", ""),
    ("next_appointment", None),
)
INVOICE_FIELDS = (
    ("patient_id", None),
    ("appointment_id", None),
    ("osteopath_id", 1),
    ("cabinet_id", None),
    ("amount", 0),
    ("date", None),
    ("payment_status", "PENDING"),
    ("payment_method", None),
    ("payment_date", None),
    ("notes", ""),
)
RECORD_TEMPLATES = {
    "patients": PATIENT_FIELDS,
    "appointments": APPOINTMENT_FIELDS,
    "invoices": INVOICE_FIELDS,
}


def _now_iso() -> str:
    return utcnow().isoformat()


def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class SQLiteFallbackStore:
    def __init__(self, storage: KeyValueStorage, storage_key: str = STORAGE_KEY):
        self.storage = storage
        self.storage_key = storage_key
        self._data: Dict[str, Dict[str, dict]] = {}
        self._auto_increment: Dict[str, int] = {}
        self._in_transaction = False
        self._initialize_tables()
        self._load()

    # -- table bookkeeping -------------------------------------------------

    def _initialize_tables(self) -> None:
        self._data = {table: {} for table in DEFAULT_TABLES}
        self._auto_increment = {table: 1 for table in DEFAULT_TABLES}

    def _table(self, name: str) -> Dict[str, dict]:
        name = name.lower()
        if name not in self._data:
            self._data[name] = {}
        return self._data[name]

    def _next_id(self, name: str) -> int:
        current = int(self._auto_increment.get(name, 1))
        self._auto_increment[name] = current + 1
        return current

    # -- persistence -------------------------------------------------------

    def _load(self) -> None:
        try:
            stored = self.storage.get_item(self.storage_key)
        except Exception as e:
            logger.warning("Failed to read fallback snapshot: %s", e)
            return
        if not stored:
            return
        try:
            self.import_data(json.loads(stored))
            logger.info("Fallback store restored from %s", self.storage_key)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("Failed to load fallback snapshot: %s", e)

    def _save(self) -> None:
        try:
            blob = json.dumps(self.export_for_storage(), default=_json_default)
            self.storage.set_item(self.storage_key, blob)
            logger.debug("Fallback store saved (%d bytes)", len(blob))
        except Exception as e:
            logger.warning("Failed to save fallback snapshot: %s", e)

    def _persist(self) -> None:
        if not self._in_transaction:
            self._save()

    # -- statements --------------------------------------------------------

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[dict]:
        statement = sql.strip()
        if not statement.lower().startswith("select"):
            return []

        if "sqlite_version" in statement.lower():
            return [{"version": VERSION}]

        match = _FROM_RE.search(statement)
        if not match:
            return []
        table = self._table(match.group(1))

        where = _WHERE_RE.search(statement)
        if where and params:
            column, value = where.group(1), params[0]
            if column.lower() == "id":
                record = table.get(str(value))
                return [dict(record)] if record else []
            return [dict(r) for r in table.values() if _matches(r.get(column), value)]

        return [dict(r) for r in table.values()]

    def run(self, sql: str, params: Sequence[Any] = ()) -> RunResult:
        statement = sql.strip()
        lowered = statement.lower()
        params = list(params)

        if lowered.startswith("insert"):
            return self._insert(statement, params)
        if lowered.startswith("update"):
            return self._update(statement, params)
        if lowered.startswith("delete"):
            return self._delete(statement, params)
        return RunResult(0, 0)

    def _insert(self, statement: str, params: list) -> RunResult:
        match = _INSERT_RE.match(statement)
        if not match:
            return RunResult(0, 0)
        table_name = match.group(1).lower()
        table = self._table(table_name)

        columns = [c.strip() for c in (match.group(2) or "").split(",") if c.strip()]
        if columns:
            record = dict(zip(columns, params))
        else:
            record = self._record_from_template(table_name, params)

        if record.get("id") is not None:
            new_id = int(record["id"])
            self._auto_increment[table_name] = max(
                int(self._auto_increment.get(table_name, 1)), new_id + 1
            )
        else:
            new_id = self._next_id(table_name)

        now = _now_iso()
        record["id"] = new_id
        if not record.get("created_at"):
            record["created_at"] = now
        if not record.get("updated_at"):
            record["updated_at"] = now

        table[str(new_id)] = record
        self._persist()
        return RunResult(new_id, 1)

    def _record_from_template(self, table_name: str, params: list) -> dict:
        fields = RECORD_TEMPLATES.get(table_name)
        if fields is None:
            return {}

        record = {}
        for index, (field, default) in enumerate(fields):
            value = params[index] if index < len(params) else None
            record[field] = value if value not in (None, "") else default

        if table_name == "patients" and not record["email"]:
            record["email"] = f"patient-{int(time.time() * 1000)}@temp.local"
        if table_name == "appointments" and not record["date"]:
            record["date"] = _now_iso()
        if table_name == "invoices" and not record["date"]:
            record["date"] = date.today().isoformat()
        return record

    def _update(self, statement: str, params: list) -> RunResult:
        match = _UPDATE_RE.match(statement)
        if not match or not _WHERE_ID_RE.search(statement) or not params:
            return RunResult(0, 0)
        table = self._table(match.group(1))

        record_id = str(params[-1])
        record = table.get(record_id)
        if record is None:
            return RunResult(0, 0)

        updated = dict(record)
        set_clause = _SET_RE.search(statement)
        if set_clause:
            columns = _ASSIGNMENT_RE.findall(set_clause.group(1))
            for column, value in zip(columns, params[:-1]):
                if column.lower() != "id":
                    updated[column] = value
        updated["updated_at"] = _now_iso()

        table[record_id] = updated
        self._persist()
        return RunResult(int(record_id), 1)

    def _delete(self, statement: str, params: list) -> RunResult:
        match = _DELETE_RE.match(statement)
        if not match or not _WHERE_ID_RE.search(statement) or not params:
            return RunResult(0, 0)
        table = self._table(match.group(1))

        record_id = str(params[0])
        if record_id not in table:
            return RunResult(0, 0)
        del table[record_id]
        self._persist()
        return RunResult(0, 1)

    # -- transactions ------------------------------------------------------

    def begin_transaction(self) -> None:
        self._in_transaction = True

    def commit(self) -> None:
        self._in_transaction = False
        self._save()

    def rollback(self) -> None:
        """Discard in-memory changes by reloading the last saved snapshot."""
        self._in_transaction = False
        self._initialize_tables()
        self._load()

    def close(self) -> None:
        self._in_transaction = False
        self._save()

    # -- snapshots ---------------------------------------------------------

    def export_for_storage(self) -> dict:
        return {
            "data": {name: {rid: dict(r) for rid, r in table.items()}
                     for name, table in self._data.items()},
            "autoIncrement": dict(self._auto_increment),
        }

    def export(self) -> bytes:
        return json.dumps(self.export_for_storage(), default=_json_default).encode("utf-8")

    def import_data(self, saved: dict) -> None:
        for name, table in (saved.get("data") or {}).items():
            self._data[name] = {str(rid): dict(r) for rid, r in table.items()}
        if saved.get("autoIncrement"):
            self._auto_increment = {k: int(v) for k, v in saved["autoIncrement"].items()}

    def get_stats(self) -> dict:
        return {
            "size": len(self.export()),
            "tables": list(self._data),
            "records": {name: len(table) for name, table in self._data.items()},
            "version": VERSION,
        }

    def get_all_from_table(self, table_name: str) -> List[dict]:
        return [dict(r) for r in self._table(table_name).values()]

    def get_by_id_from_table(self, table_name: str, record_id) -> Optional[dict]:
        record = self._table(table_name).get(str(record_id))
        return dict(record) if record else None

    def clear_all(self) -> None:
        self._initialize_tables()
        self._in_transaction = False
        try:
            self.storage.remove_item(self.storage_key)
        except Exception as e:
            logger.warning("Failed to remove fallback snapshot: %s", e)
        logger.info("Fallback store cleared")


def _matches(stored, wanted) -> bool:
    if stored == wanted:
        return True
    return stored is not None and wanted is not None and str(stored) == str(wanted)
