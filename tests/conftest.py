"""
Shared pytest fixtures for the FileVault test suite.
"""

import os

# Keep imports of filevault.main from writing logs/ into the working tree.
os.environ.setdefault("LOG_DIR", "")

from datetime import datetime, timezone
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from hypothesis import HealthCheck, settings as hypothesis_settings

from filevault.core.config import Settings
from filevault.main import create_app
from filevault.services.blobstore import BlobStore
from filevault.services.registry import Registry

hypothesis_settings.register_profile(
    "default",
    max_examples=50,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)
hypothesis_settings.load_profile("default")

FIXED_NOW = datetime(2024, 3, 1, 12, 30, 45, tzinfo=timezone.utc)


@pytest.fixture
def upload_root(tmp_path):
    root = tmp_path / "uploads"
    root.mkdir()
    return root


@pytest.fixture
def store(upload_root):
    s = BlobStore(str(upload_root), max_size=1024)
    s.ensure_root()
    return s


@pytest.fixture
def registry(store):
    """Registry with a frozen clock so collision suffixes are predictable."""
    return Registry(store, clock=lambda: FIXED_NOW)


@pytest.fixture
def put(registry):
    """Upload helper: put("a.txt", b"data") -> FileRecord."""
    def _put(name, data=b"0123456789"):
        return registry.upload(name, BytesIO(data))
    return _put


@pytest.fixture
def app_settings(upload_root):
    return Settings(
        UPLOAD_DIR=str(upload_root),
        MAX_UPLOAD_SIZE=1024,
        ADMIN_USERNAME="admin",
        ADMIN_PASSWORD="secret",
        LOG_DIR="",
    )


@pytest.fixture
def client(app_settings):
    with TestClient(create_app(app_settings)) as c:
        yield c


@pytest.fixture
def auth_client(client):
    resp = client.post("/login", data={"username": "admin", "password": "secret"})
    assert resp.status_code == 200
    return client
