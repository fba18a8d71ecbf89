"""Unit tests for the health endpoint"""

from unittest.mock import AsyncMock, patch

from fastapi import FastAPI
from fastapi.testclient import TestClient

from assistant_runs.core.health import router as health_router


def _client() -> TestClient:
    app = FastAPI()
    app.include_router(health_router, prefix="/health")
    return TestClient(app)


def test_health_ok():
    with patch(
        "assistant_runs.core.health.db_manager.ping", AsyncMock(return_value=True)
    ):
        resp = _client().get("/health/")

    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy", "database": "ok"}


def test_health_database_down():
    with patch(
        "assistant_runs.core.health.db_manager.ping", AsyncMock(return_value=False)
    ):
        resp = _client().get("/health/")

    assert resp.status_code == 503
    assert resp.json()["status"] == "unhealthy"
