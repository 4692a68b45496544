"""Tests for health endpoints."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from clinic_os.api.app import create_app
from clinic_os.api.routes import health


@pytest.fixture
def client(engine):
    """Create a test client around an injected engine."""
    with TestClient(create_app(engine=engine)) as client:
        yield client


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["service"] == "clinic-os"

    def test_liveness_check(self, client):
        response = client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_readiness_check(self, client):
        data = client.get("/health/ready").json()

        assert data["status"] == "ready"
        assert data["slot_granularity_minutes"] == 15
        assert data["observability"] is False

    def test_readiness_without_engine(self):
        """A bare router with no engine on app state is not ready."""
        app = FastAPI()
        app.include_router(health.router)

        data = TestClient(app).get("/health/ready").json()

        assert data["status"] == "not_ready"
        assert data["errors"]

    def test_process_time_header(self, client):
        response = client.get("/health")

        assert "X-Process-Time" in response.headers
