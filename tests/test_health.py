"""Smoke tests for FastAPI app startup and /health."""

import pytest
from fastapi.testclient import TestClient

from remote.main import app


@pytest.fixture
def client(monkeypatch, tmp_path):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "test.db"))
    from remote.config import get_settings
    get_settings.cache_clear()
    with TestClient(app) as c:
        yield c


def test_health_returns_ok(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == app.version
