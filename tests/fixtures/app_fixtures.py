"""Settings, adapters and a TestClient wired against temporary directories."""

import base64

import pytest
from fastapi.testclient import TestClient

from database import NoSQLAdapter, init_db
from files_manager.adapters.queue import LocalQueue
from files_manager.adapters.sessions import SessionStore
from files_manager.adapters.storage import LocalBlobStore
from files_manager.main import create_app
from files_manager.services.auth_service import AuthService
from files_manager.services.file_service import FileService
from files_manager.services.thumbnail_jobs import JobTracker
from files_manager.settings import Settings


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        deployment_mode="local-dev",
        database_backend="sqlite",
        db_path=str(tmp_path / "test_files.db"),
        storage_dir=str(tmp_path / "storage"),
        queue_dir=str(tmp_path / "queue"),
        queue_max_depth=10,
        thumbnail_job_timeout_seconds=10.0,
        thumbnail_max_attempts=2,
        worker_poll_interval_seconds=0.0,
    )


@pytest.fixture
def adapter(settings) -> NoSQLAdapter:
    adapter = NoSQLAdapter(settings.db_path)
    init_db(adapter)
    return adapter


@pytest.fixture
def session_store(adapter, settings) -> SessionStore:
    return SessionStore(adapter, settings.session_ttl_seconds)


@pytest.fixture
def blob_store(settings) -> LocalBlobStore:
    return LocalBlobStore(settings.storage_dir)


@pytest.fixture
def queue(settings) -> LocalQueue:
    return LocalQueue(settings.queue_dir, max_depth=settings.queue_max_depth,
                      visibility_timeout=settings.queue_visibility_timeout_seconds)


@pytest.fixture
def job_tracker(adapter) -> JobTracker:
    return JobTracker(adapter)


@pytest.fixture
def auth_service(adapter, session_store) -> AuthService:
    return AuthService(adapter, session_store)


@pytest.fixture
def file_service(adapter, blob_store, queue, job_tracker, settings) -> FileService:
    return FileService(adapter, blob_store, queue, job_tracker, settings)


@pytest.fixture
def client(settings):
    app = create_app(settings=settings)
    with TestClient(app) as client:
        yield client


def basic_auth(email: str, password: str) -> dict:
    credentials = base64.b64encode(f"{email}:{password}".encode()).decode()
    return {"Authorization": f"Basic {credentials}"}


def register_and_connect(client: TestClient, email: str, password: str = "secret") -> dict:
    """Create a user through the API and return its X-Token headers"""
    response = client.post("/users", json={"email": email, "password": password})
    assert response.status_code == 201
    response = client.get("/connect", headers=basic_auth(email, password))
    assert response.status_code == 200
    return {"X-Token": response.json()["token"]}
