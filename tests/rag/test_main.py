"""Tests for the FastAPI application."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from healthchat.config.settings import MonitoringSettings
from healthchat.core.exceptions import EmbeddingCredentialError
from healthchat.main import create_app
from healthchat.rag.service import RagService


@pytest.fixture
def client(test_settings, stub_provider):
    """Create a test client whose lifespan uses the stub provider."""
    def build_service(settings):
        return RagService(settings, embedding_provider=stub_provider)

    app = create_app(test_settings)
    with patch("healthchat.main.RagService", side_effect=build_service):
        with TestClient(app) as client:
            yield client


def test_health(client):
    """Test health check reports index state after startup."""
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["rag"]["initialized"] is True
    assert body["rag"]["item_count"] == 3


def test_knowledge_routes_mounted(client):
    """Test the knowledge router is served under /api."""
    response = client.post("/api/knowledge/search", json={"query": "how to sleep better", "limit": 1})

    assert response.status_code == 200
    assert response.json()["results"][0]["id"] == "h1"


def test_metrics(client):
    """Test the Prometheus endpoint."""
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "healthchat_rag_queries_total" in response.text


def test_metrics_disabled(test_settings):
    """Test the metrics endpoint can be switched off."""
    settings = test_settings.model_copy(update={
        "monitoring": MonitoringSettings(metrics_enabled=False)
    })
    client = TestClient(create_app(settings))

    assert client.get("/metrics").status_code == 404
    assert client.get("/health").status_code == 200


def test_service_exception_handler(test_settings):
    """Test service exceptions become structured error responses."""
    app = create_app(test_settings)

    @app.get("/boom")
    async def boom():
        raise EmbeddingCredentialError("embed_one")

    client = TestClient(app, raise_server_exceptions=False)
    response = client.get("/boom")

    assert response.status_code == 401
    assert response.json()["error"] == "EMBEDDING_CREDENTIAL_ERROR"
    assert response.json()["details"] == {"operation": "embed_one"}
