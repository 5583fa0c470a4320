"""Tests for metrics functionality."""

import pytest
from fastapi.testclient import TestClient

from animalmatch.app import create_app
from animalmatch.core.metrics import setup_metrics

# Note: Prometheus registry reset is handled globally in conftest.py


@pytest.fixture
def app(settings, make_gate, sample_catalog):
    return create_app(settings, gate=make_gate(), catalog=sample_catalog)


@pytest.fixture
def client(app) -> TestClient:
    """Create test client."""
    return TestClient(app)


def test_metrics_endpoint(client: TestClient) -> None:
    """Test Prometheus metrics endpoint exists and returns metrics."""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]

    content = response.text
    assert "HELP" in content
    assert "TYPE" in content


def test_metrics_collect_after_request(client: TestClient) -> None:
    """Test that metrics are collected after making requests."""
    client.get("/api/animals", params={"name": "Anna"})

    response = client.get("/metrics")
    assert response.status_code == 200
    content = response.text

    assert "http_requests_total" in content
    assert 'handler="/api/animals"' in content


def test_setup_metrics_is_idempotent(app) -> None:
    assert app.state.metrics_initialized is True

    setup_metrics(app, "0.0.0")

    routes = [route.path for route in app.routes if getattr(route, "path", None) == "/metrics"]
    assert routes == ["/metrics"]
