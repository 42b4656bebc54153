import json

import pytest

from patienthub.core.exceptions import StorageError
from patienthub.storage.fallback import STORAGE_KEY, VERSION, RunResult, SQLiteFallbackStore
from patienthub.storage.keyvalue import FileKeyValueStorage, MemoryKeyValueStorage

JEAN = ["Jean", "Dupont", "jean@x.fr", "0601020304", "1980-05-12", "1 rue de Paris",
        "", "", "", "", ""]
MARIE = ["Marie", "Durand", "marie@x.fr"]


@pytest.fixture
def kv():
    return MemoryKeyValueStorage()


@pytest.fixture
def store(kv):
    return SQLiteFallbackStore(kv)


class TestStatements:

    def test_positional_inserts_assign_sequential_ids(self, store):
        first = store.run("INSERT INTO patients VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)", JEAN)
        second = store.run("INSERT INTO patients VALUES (?, ?, ?)", MARIE)

        assert first == RunResult(last_id=1, changes=1)
        assert second.last_id == 2

        store.run("DELETE FROM patients WHERE id = ?", [1])
        remaining = store.query("SELECT * FROM patients")
        assert [p["id"] for p in remaining] == [2]
        assert remaining[0]["last_name"] == "Durand"

    def test_insert_then_select_by_id_returns_one_row(self, store):
        result = store.run("INSERT INTO patients VALUES (?, ?, ?)", JEAN[:3])

        rows = store.query("SELECT * FROM patients WHERE id = ?", [result.last_id])
        assert len(rows) == 1
        assert rows[0]["first_name"] == "Jean"
        assert rows[0]["email"] == "jean@x.fr"
        assert rows[0]["created_at"] and rows[0]["updated_at"]

    def test_delete_then_select_returns_nothing(self, store):
        result = store.run("INSERT INTO patients VALUES (?, ?)", ["Jean", "Dupont"])
        assert store.run("DELETE FROM patients WHERE id = ?", [result.last_id]).changes == 1
        assert store.query("SELECT * FROM patients WHERE id = ?", [result.last_id]) == []

    def test_delete_unknown_id_changes_nothing(self, store):
        assert store.run("DELETE FROM patients WHERE id = ?", [42]) == RunResult(0, 0)

    def test_template_fills_defaults(self, store):
        store.run("INSERT INTO patients VALUES (?, ?)", ["Jean", "Dupont"])
        store.run("INSERT INTO appointments VALUES (?)", [1])
        store.run("INSERT INTO invoices VALUES (?)", [1])

        patient = store.get_by_id_from_table("patients", 1)
        assert patient["email"].endswith("@temp.local")
        assert store.get_by_id_from_table("appointments", 1)["status"] == "PLANNED"
        assert store.get_by_id_from_table("invoices", 1)["payment_status"] == "PENDING"

    def test_column_list_insert_keeps_explicit_id(self, store):
        store.run("INSERT INTO patients (id, first_name) VALUES (?, ?)", [10, "Jean"])
        result = store.run("INSERT INTO patients (first_name) VALUES (?)", ["Marie"])

        assert store.get_by_id_from_table("patients", 10)["first_name"] == "Jean"
        assert result.last_id == 11

    def test_update_sets_columns_and_timestamp(self, store):
        store.run("INSERT INTO patients (first_name, created_at, updated_at) VALUES (?, ?, ?)",
                  ["Jean", "2020-01-01T00:00:00", "2020-01-01T00:00:00"])

        result = store.run("UPDATE patients SET first_name = ?, phone = ? WHERE id = ?",
                           ["Jeanne", "0600000000", 1])

        patient = store.get_by_id_from_table("patients", 1)
        assert result == RunResult(1, 1)
        assert patient["first_name"] == "Jeanne"
        assert patient["phone"] == "0600000000"
        assert patient["updated_at"] != "2020-01-01T00:00:00"
        assert patient["created_at"] == "2020-01-01T00:00:00"

    def test_select_by_other_column(self, store):
        store.run("INSERT INTO appointments (patient_id, status) VALUES (?, ?)", [1, "PLANNED"])
        store.run("INSERT INTO appointments (patient_id, status) VALUES (?, ?)", [2, "PLANNED"])

        rows = store.query("SELECT * FROM appointments WHERE patient_id = ?", ["2"])
        assert [r["id"] for r in rows] == [2]

    def test_unknown_table_is_created_on_first_use(self, store):
        store.run("INSERT INTO consultations (notes) VALUES (?)", ["RAS"])
        assert store.query("SELECT * FROM consultations")[0]["notes"] == "RAS"

    def test_unrecognised_statements_are_noops(self, store):
        assert store.run("CREATE TABLE foo (id INTEGER)") == RunResult(0, 0)
        assert store.query("PRAGMA table_info(patients)") == []
        assert store.query("SELECT sqlite_version()") == [{"version": VERSION}]

    def test_query_returns_copies(self, store):
        store.run("INSERT INTO patients (first_name) VALUES (?)", ["Jean"])
        store.query("SELECT * FROM patients")[0]["first_name"] = "changed"
        assert store.get_by_id_from_table("patients", 1)["first_name"] == "Jean"


class TestPersistence:

    def test_every_mutation_is_persisted(self, kv, store):
        store.run("INSERT INTO patients (first_name) VALUES (?)", ["Jean"])

        saved = json.loads(kv.get_item(STORAGE_KEY))
        assert saved["data"]["patients"]["1"]["first_name"] == "Jean"
        assert saved["autoIncrement"]["patients"] == 2

    def test_new_instance_reloads_snapshot(self, kv, store):
        store.run("INSERT INTO patients (first_name) VALUES (?)", ["Jean"])

        reopened = SQLiteFallbackStore(kv)
        assert reopened.get_by_id_from_table("patients", 1)["first_name"] == "Jean"
        assert reopened.run("INSERT INTO patients (first_name) VALUES (?)", ["Marie"]).last_id == 2

    def test_export_import_reproduces_tables(self, store):
        store.run("INSERT INTO patients VALUES (?, ?, ?)", JEAN[:3])
        store.run("INSERT INTO invoices (patient_id, amount) VALUES (?, ?)", [1, 60])
        snapshot = store.export_for_storage()

        fresh = SQLiteFallbackStore(MemoryKeyValueStorage())
        fresh.import_data(snapshot)

        assert fresh.export_for_storage() == snapshot
        assert json.loads(store.export().decode("utf-8")) == snapshot

    def test_corrupt_snapshot_starts_empty(self):
        kv = MemoryKeyValueStorage({STORAGE_KEY: "{not json"})
        store = SQLiteFallbackStore(kv)
        assert store.get_all_from_table("patients") == []

    def test_transaction_defers_persistence_until_commit(self, kv, store):
        store.begin_transaction()
        store.run("INSERT INTO patients (first_name) VALUES (?)", ["Jean"])
        assert kv.get_item(STORAGE_KEY) is None

        store.commit()
        assert "Jean" in kv.get_item(STORAGE_KEY)

    def test_rollback_restores_last_saved_snapshot(self, store):
        store.run("INSERT INTO patients (first_name) VALUES (?)", ["Jean"])
        store.begin_transaction()
        store.run("INSERT INTO patients (first_name) VALUES (?)", ["Marie"])
        store.run("DELETE FROM patients WHERE id = ?", [1])

        store.rollback()

        assert [p["first_name"] for p in store.get_all_from_table("patients")] == ["Jean"]

    def test_clear_all_drops_persisted_key(self, kv, store):
        store.run("INSERT INTO patients (first_name) VALUES (?)", ["Jean"])
        store.clear_all()

        assert kv.get_item(STORAGE_KEY) is None
        assert store.get_stats()["records"]["patients"] == 0

    def test_save_failure_is_logged_not_raised(self, caplog):
        class BrokenStorage(MemoryKeyValueStorage):
            def set_item(self, key, value):
                raise StorageError("disk full")

        store = SQLiteFallbackStore(BrokenStorage())
        result = store.run("INSERT INTO patients (first_name) VALUES (?)", ["Jean"])

        assert result.last_id == 1
        assert store.get_by_id_from_table("patients", 1)["first_name"] == "Jean"
        assert "Failed to save fallback snapshot" in caplog.text

    def test_file_backend_round_trip(self, tmp_path):
        path = tmp_path / "fallback.json"
        store = SQLiteFallbackStore(FileKeyValueStorage(str(path)))
        store.run("INSERT INTO patients (first_name) VALUES (?)", ["Jean"])

        reopened = SQLiteFallbackStore(FileKeyValueStorage(str(path)))
        assert reopened.get_by_id_from_table("patients", 1)["first_name"] == "Jean"

    def test_stats(self, store):
        store.run("INSERT INTO patients (first_name) VALUES (?)", ["Jean"])
        stats = store.get_stats()

        assert stats["version"] == VERSION
        assert stats["records"]["patients"] == 1
        assert set(stats["tables"]) >= {"patients", "appointments", "invoices", "metadata"}
        assert stats["size"] > 0
