import os
import sys
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

# Ensure predictable environment variables for tests before importing the app.
BASE_DIR = Path(__file__).resolve().parents[1]
TEST_DB_PATH = BASE_DIR / "test.db"

if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("DATABASE_URL", f"sqlite:///{TEST_DB_PATH}")
os.environ.setdefault("SEED_DEMO_DATA", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import app.main as main  # noqa: E402  (import after env vars are set)
from app.client.gateway import RemoteGateway  # noqa: E402
from app.client.storage import LocalStorage  # noqa: E402
from app.database import SessionLocal  # noqa: E402
from app.models.goals import UserGoals  # noqa: E402
from app.models.health_data import HealthEntry  # noqa: E402

TEST_BASE_URL = "http://testserver"


@pytest.fixture(autouse=True)
def clean_database():
    db = SessionLocal()
    try:
        db.query(HealthEntry).delete()
        db.query(UserGoals).delete()
        db.commit()
    finally:
        db.close()
    yield


@pytest.fixture()
def client(monkeypatch):
    """Provide a TestClient with startup seeding patched out for isolation."""
    monkeypatch.setattr(main, "run_seed", lambda: None)

    with TestClient(main.app) as test_client:
        yield test_client


@pytest.fixture()
def storage(tmp_path):
    local = LocalStorage(f"sqlite:///{tmp_path / 'local_store.db'}")
    yield local
    local.close()


@pytest.fixture()
def api_gateway():
    """Factory for gateways talking straight to the ASGI app."""

    def factory(timeout: float = 5.0) -> RemoteGateway:
        return RemoteGateway(TEST_BASE_URL, timeout=timeout, transport=httpx.ASGITransport(app=main.app))

    return factory


@pytest.fixture()
def mock_gateway():
    """Factory for gateways whose responses come from ``handler``."""

    def factory(handler, timeout: float = 5.0) -> RemoteGateway:
        return RemoteGateway(TEST_BASE_URL, timeout=timeout, transport=httpx.MockTransport(handler))

    return factory
