from datetime import datetime, timedelta

import pytest

from patienthub.core.exceptions import DemoSessionError
from patienthub.storage.demo import DemoLocalStorage
from patienthub.storage.keyvalue import MemoryKeyValueStorage


class MovingClock:
    def __init__(self):
        self.now = datetime(2024, 6, 1, 9, 0, 0)

    def __call__(self):
        return self.now


@pytest.fixture
def demo_clock():
    return MovingClock()


@pytest.fixture
def kv():
    return MemoryKeyValueStorage()


@pytest.fixture
def demo(kv, demo_clock):
    return DemoLocalStorage(kv, session_minutes=30, clock=demo_clock)


class TestDemoSessions:

    def test_create_session(self, demo, kv):
        session = demo.create_session()

        assert len(session["session_id"]) == 10
        assert session["is_active"] is True
        assert session["expires_at"] == "2024-06-01T09:30:00"
        assert kv.get_item(f"demo_session_{session['session_id']}") is not None
        for collection in ("patients", "appointments", "invoices", "cabinets"):
            assert demo.get_records(session["session_id"], collection) == []

    def test_session_expires_after_duration(self, demo, demo_clock, kv):
        session_id = demo.create_session()["session_id"]

        demo_clock.now += timedelta(minutes=30)
        assert demo.is_session_active(session_id)

        demo_clock.now += timedelta(seconds=1)
        assert demo.get_session(session_id) is None
        assert kv.get_item(f"demo_data_{session_id}") is None

    def test_expired_session_refuses_writes(self, demo, demo_clock):
        session_id = demo.create_session()["session_id"]
        demo_clock.now += timedelta(hours=1)

        with pytest.raises(DemoSessionError):
            demo.add_record(session_id, "patients", {"first_name": "Jean"})

    def test_unknown_session_refuses_reads(self, demo):
        with pytest.raises(DemoSessionError):
            demo.get_records("nosuchid00", "patients")

    def test_add_record_assigns_temporary_ids(self, demo):
        session_id = demo.create_session()["session_id"]

        patient = demo.add_record(session_id, "patients", {"first_name": "Jean"})
        cabinet = demo.add_record(session_id, "cabinets", {"name": "Cabinet"})

        assert patient["id"] == 1
        assert cabinet["id"] == 2
        assert patient["email"].endswith("@temp.local")
        assert patient["created_at"] == "2024-06-01T09:00:00"

    def test_update_and_delete_record(self, demo, demo_clock):
        session_id = demo.create_session()["session_id"]
        record = demo.add_record(session_id, "appointments", {"status": "PLANNED"})

        demo_clock.now += timedelta(minutes=5)
        updated = demo.update_record(session_id, "appointments", record["id"], {"status": "CONFIRMED"})
        assert updated["status"] == "CONFIRMED"
        assert updated["updated_at"] == "2024-06-01T09:05:00"
        assert demo.get_record(session_id, "appointments", record["id"])["status"] == "CONFIRMED"

        assert demo.delete_record(session_id, "appointments", record["id"]) is True
        assert demo.delete_record(session_id, "appointments", record["id"]) is False
        assert demo.update_record(session_id, "appointments", record["id"], {}) is None

    def test_unknown_collection(self, demo):
        session_id = demo.create_session()["session_id"]
        with pytest.raises(ValueError):
            demo.get_records(session_id, "users")

    def test_sessions_are_isolated(self, demo):
        first = demo.create_session()["session_id"]
        second = demo.create_session()["session_id"]
        demo.add_record(first, "patients", {"first_name": "Jean"})

        assert demo.get_records(second, "patients") == []

    def test_session_stats(self, demo, demo_clock):
        session_id = demo.create_session()["session_id"]
        demo.add_record(session_id, "invoices", {"amount": 60})
        demo_clock.now += timedelta(minutes=10)

        stats = demo.get_session_stats(session_id)
        assert stats["counts"]["invoices"] == 1
        assert stats["counts"]["patients"] == 0
        assert stats["remaining_seconds"] == 20 * 60

    def test_clear_session(self, demo, kv):
        session_id = demo.create_session()["session_id"]
        demo.clear_session(session_id)

        assert kv.keys() == []
        assert not demo.is_session_active(session_id)

    def test_purge_expired_sessions(self, demo, demo_clock, kv):
        old = demo.create_session()["session_id"]
        demo_clock.now += timedelta(minutes=20)
        recent = demo.create_session()["session_id"]
        demo_clock.now += timedelta(minutes=15)

        assert demo.purge_expired_sessions() == 1
        assert kv.get_item(f"demo_session_{old}") is None
        assert demo.is_session_active(recent)

    def test_corrupt_session_is_cleared(self, demo, kv):
        kv.set_item("demo_session_broken0000", "not json")
        assert demo.get_session("broken0000") is None
        assert kv.get_item("demo_session_broken0000") is None
