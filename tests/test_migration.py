import threading

import pytest

from patienthub.core.exceptions import (
    HDSComplianceError, LocalStorageUnavailable, MigrationInProgressError,
)
from patienthub.models import Appointment, Consultation, Invoice, Patient
from patienthub.services.hds_policy import get_blocked_tables
from patienthub.services.migration_service import ForcedMigrationService

from .conftest import TestingSessionLocal
from .factories import make_osteopath, make_practice_data


@pytest.fixture
def service():
    return ForcedMigrationService()


class TestForcedMigration:

    def test_moves_all_sensitive_rows_to_local_storage(self, service, db_session, local_storage):
        osteopath = make_osteopath(db_session)
        patients = make_practice_data(db_session, osteopath, patients=2)
        patient_ids = [p.id for p in patients]

        status = service.execute_forced_migration(db_session, local_storage)

        assert status.completed is True
        assert status.total_migrated == 8
        assert status.total_errors == 0
        assert [r.entity for r in status.results] == [
            "patients", "appointments", "invoices", "consultations",
        ]
        assert all(r.deleted_from_cloud for r in status.results)

        for model in (Patient, Appointment, Invoice, Consultation):
            assert db_session.query(model).count() == 0
        assert get_blocked_tables(db_session) == [
            "consultations", "invoices", "appointments", "patients",
        ]

        migrated = local_storage.get_all("patients")
        assert [p["id"] for p in migrated] == patient_ids
        assert migrated[0]["medical_history"] == "lombalgie"
        assert migrated[0]["birth_date"] == "1980-05-12"
        assert local_storage.get_all("invoices")[0]["amount"] == 60.0
        assert service.last_status is status

    def test_empty_tables_are_blocked(self, service, db_session, local_storage):
        status = service.execute_forced_migration(db_session, local_storage)

        assert status.completed is True
        assert status.total_migrated == 0
        assert all(r.deleted_from_cloud for r in status.results)
        assert len(get_blocked_tables(db_session)) == 4

    def test_second_run_skips_blocked_tables(self, service, db_session, local_storage):
        osteopath = make_osteopath(db_session)
        make_practice_data(db_session, osteopath, patients=1)
        service.execute_forced_migration(db_session, local_storage)

        status = service.execute_forced_migration(db_session, local_storage)

        assert status.total_migrated == 0
        assert local_storage.count("patients") == 1

    def test_refuses_concurrent_run(self, service, db_session, local_storage):
        osteopath = make_osteopath(db_session)
        make_practice_data(db_session, osteopath, patients=1)

        copying = threading.Event()
        release = threading.Event()
        original_create = local_storage.create

        def blocking_create(entity, record):
            copying.set()
            release.wait(timeout=5)
            return original_create(entity, record)

        local_storage.create = blocking_create
        outcome = {}

        def first_run():
            db = TestingSessionLocal()
            try:
                outcome["status"] = service.execute_forced_migration(db, local_storage)
            finally:
                db.close()

        worker = threading.Thread(target=first_run)
        worker.start()
        try:
            assert copying.wait(timeout=5)
            assert service.is_running is True
            with pytest.raises(MigrationInProgressError):
                service.execute_forced_migration(db_session, local_storage)
        finally:
            release.set()
            worker.join(timeout=10)

        assert outcome["status"].completed is True
        assert service.is_running is False

    def test_rows_created_during_run_stay_in_cloud(self, service, db_session, local_storage):
        osteopath = make_osteopath(db_session)
        make_practice_data(db_session, osteopath, patients=1)
        osteopath_id = osteopath.id

        original_create = local_storage.create

        def create_then_add_patient(entity, record):
            if entity == "appointments":
                other = TestingSessionLocal()
                try:
                    other.add(Patient(osteopath_id=osteopath_id, first_name="Late", last_name="Martin"))
                    other.commit()
                finally:
                    other.close()
            return original_create(entity, record)

        local_storage.create = create_then_add_patient

        with pytest.raises(HDSComplianceError):
            service.execute_forced_migration(db_session, local_storage)

        cloud = [p.first_name for p in db_session.query(Patient).all()]
        local = [p["first_name"] for p in local_storage.get_all("patients")]
        assert cloud == ["Late"]
        assert local == ["Jean0"]
        assert "patients" not in get_blocked_tables(db_session)
        assert service.is_running is False

    def test_requires_local_storage(self, service, db_session):
        with pytest.raises(LocalStorageUnavailable):
            service.execute_forced_migration(db_session, None)
        assert service.is_running is False

    def test_partial_copy_keeps_cloud_rows(self, service, db_session, local_storage):
        osteopath = make_osteopath(db_session)
        make_practice_data(db_session, osteopath, patients=2)

        original_create = local_storage.create

        def flaky_create(entity, record):
            if entity == "invoices" and record["id"] == 2:
                raise RuntimeError("disk full")
            return original_create(entity, record)

        local_storage.create = flaky_create

        with pytest.raises(HDSComplianceError):
            service.execute_forced_migration(db_session, local_storage)

        assert db_session.query(Invoice).count() == 2
        assert db_session.query(Consultation).count() == 0
        # Invoices still reference these rows
        assert db_session.query(Patient).count() == 2
        assert db_session.query(Appointment).count() == 2
        assert get_blocked_tables(db_session) == ["consultations"]
        assert service.is_running is False

    def test_migration_required(self, service, db_session):
        assert service.is_migration_required(db_session) is False

        osteopath = make_osteopath(db_session)
        make_practice_data(db_session, osteopath, patients=1)
        assert service.is_migration_required(db_session) is True

    def test_emergency_restore(self, service, local_storage):
        backup = {
            "patients": [{"id": 1, "first_name": "Jean"}, {"id": 2, "first_name": "Marie"}],
            "appointments": [{"id": 7, "patient_id": 1}],
            "metadata": "ignored",
        }

        assert service.emergency_restore(backup, local_storage) == 3
        assert local_storage.get_by_id("appointments", 7)["patient_id"] == 1

    def test_emergency_restore_reraises(self, service, local_storage):
        def broken_create(entity, record):
            raise RuntimeError("disk full")

        local_storage.create = broken_create
        with pytest.raises(RuntimeError):
            service.emergency_restore({"patients": [{"id": 1}]}, local_storage)
