import os

# Set testing environment before the application is imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from patienthub.main import app
from patienthub import models  # noqa: F401
from patienthub.api.deps import get_demo_storage_dep, get_local_storage_dep
from patienthub.core.crypto import RecordCipher, derive_key
from patienthub.core.database import Base, get_db, get_redis
from patienthub.core.security import UserRole, get_password_hash
from patienthub.models import User
from patienthub.services.migration_service import forced_migration_service
from patienthub.storage.cache import global_cache
from patienthub.storage.demo import DemoLocalStorage
from patienthub.storage.keyvalue import MemoryKeyValueStorage
from patienthub.storage.local import EncryptedSQLiteStorage

# Create test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(scope="function")
def test_db():
    Base.metadata.create_all(bind=engine)
    global_cache.clear()
    get_redis().flushdb()
    forced_migration_service.last_status = None
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(test_db):
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session")
def cipher():
    # Few iterations keep key derivation fast in tests
    return RecordCipher(derive_key("test-passphrase", "test-salt", iterations=1000))


@pytest.fixture
def local_storage(tmp_path, cipher):
    return EncryptedSQLiteStorage(f"sqlite:///{tmp_path / 'hds_local.db'}", cipher)


@pytest.fixture
def demo_storage():
    return DemoLocalStorage(MemoryKeyValueStorage())


@pytest.fixture
def client(test_db, local_storage, demo_storage):
    app.dependency_overrides[get_local_storage_dep] = lambda: local_storage
    app.dependency_overrides[get_demo_storage_dep] = lambda: demo_storage
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.pop(get_local_storage_dep, None)
    app.dependency_overrides.pop(get_demo_storage_dep, None)


def register_and_login(client, email="osteo@example.com", password="TestPassword123"):
    client.post("/api/v1/auth/register", json={
        "email": email,
        "password": password,
        "first_name": "Claire",
        "last_name": "Martin",
    })
    response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def auth_headers(client):
    return register_and_login(client)


@pytest.fixture
def admin_headers(client, db_session):
    db_session.add(User(
        email="admin@example.com",
        password_hash=get_password_hash("AdminPassword123"),
        role=UserRole.ADMIN,
        is_active=True,
    ))
    db_session.commit()
    response = client.post("/api/v1/auth/login", json={
        "email": "admin@example.com",
        "password": "AdminPassword123",
    })
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
