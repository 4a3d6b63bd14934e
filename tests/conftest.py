"""Shared test fixtures and configuration."""

import os
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from src.jobwatch.config import PollingConfig, ProberConfig, VaultConfig, reload_settings
from src.jobwatch.metrics import MetricsCollector
from src.jobwatch.models.providers import ConnectivityResult
from tests.fixtures.clock import FakeClock


@pytest.fixture
def clock():
    """Fixture providing a hand-driven clock."""
    return FakeClock()


@pytest.fixture
def metrics():
    """Fixture providing an isolated metrics collector."""
    return MetricsCollector()


@pytest.fixture
def polling_config():
    """Fixture providing the default polling policy."""
    return PollingConfig(
        min_interval_ms=1000,
        max_interval_ms=30_000,
        backoff_multiplier=1.5,
        max_retries=5,
        fast_progress_threshold=50,
        pause_on_background=True,
    )


@pytest.fixture
def vault_config():
    """Fixture providing vault settings with an 8 hour TTL."""
    return VaultConfig(default_ttl_seconds=8 * 60 * 60, sweep_interval_seconds=60)


@pytest.fixture
def prober_config():
    """Fixture providing prober settings with a short timeout."""
    return ProberConfig(probe_timeout=0.5, degraded_latency_ms=5000, providers=[])


@pytest.fixture
def mock_redis_client():
    """Fixture to mock the Redis client."""
    return AsyncMock()


@pytest.fixture
def fake_tester():
    """Connectivity tester that accepts every credential."""

    async def tester(provider_id, credential):
        return ConnectivityResult(success=True, latency_ms=12.0, message="ok")

    return tester


@pytest.fixture
def api_client(fake_tester):
    """
    Fixture to provide FastAPI test client with lifespan events.

    The prober is swapped for one backed by fake_tester so no request leaves
    the process.
    """
    from src.jobwatch.dependencies import get_prober
    from src.jobwatch.main import app
    from src.jobwatch.providers.prober import ProviderHealthProber

    with TestClient(app, raise_server_exceptions=False) as client:
        prober = ProviderHealthProber(
            client.app.state.vault, fake_tester, config=ProberConfig(probe_timeout=2.0)
        )
        app.dependency_overrides[get_prober] = lambda: prober
        yield client
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Fixture to provide valid authentication headers."""
    return {"Authorization": "Bearer test-key"}


@pytest.fixture
def api_key_headers():
    """Fixture to provide valid API key headers."""
    return {"X-API-Key": "test-key"}


@pytest.fixture
def env_no_auth():
    """Fixture to clear authentication environment variables."""
    with patch.dict(os.environ, {}, clear=True):
        reload_settings()
        yield
        reload_settings()


@pytest.fixture
def env_with_auth():
    """Fixture to set authentication environment variables."""
    with patch.dict(os.environ, {"JOBWATCH_KEY": "test-key"}, clear=True):
        reload_settings()
        yield
        reload_settings()
