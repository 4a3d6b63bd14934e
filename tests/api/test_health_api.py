"""API tests for health and metrics endpoints."""

import pytest


@pytest.mark.integration
class TestHealthEndpoint:
    """Tests for /health."""

    def test_health_without_redis(self, env_no_auth, api_client):
        """Test health reports services with snapshot storage disabled."""
        response = api_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["configuration"]["min_interval_ms"] == 1000
        assert data["services"]["polling"]["is_paused"] is False
        assert data["services"]["credentials"]["reaper"]["status"] == "running"
        storage = data["services"]["snapshot_storage"]
        assert storage["available"] is False
        assert storage["reason"] == "Redis connection (REDIS_URI) required"
        assert data["auth_enabled"] is False

    def test_health_is_open_with_auth(self, env_with_auth, api_client):
        """Test health needs no key and reports auth methods."""
        response = api_client.get("/health")

        assert response.status_code == 200
        assert response.json()["auth_enabled"] is True
        assert len(response.json()["auth_methods"]) == 2


@pytest.mark.integration
class TestMetricsEndpoints:
    """Tests for /metrics."""

    def test_prometheus_metrics(self, env_no_auth, api_client):
        """Test the Prometheus exposition format."""
        api_client.post("/api/v1/polling/job-1", json={"initial_interval_ms": 30_000})

        response = api_client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert 'jobwatch_gauge{name="polling_active_jobs"}' in response.text

    def test_metrics_summary(self, env_no_auth, api_client):
        """Test the JSON summary combines polling and vault state."""
        api_client.put("/api/v1/credentials/openai", json={"secret": "sk-1"})

        data = api_client.get("/metrics/summary").json()

        assert "timestamp" in data
        assert "operations" in data
        assert data["credentials"]["providers_with_credentials"] == 1
        assert "active_polls" in data["polling"]
