"""HTTP adapters for the analysis API using httpx.

AnalysisAPIClient supplies the two collaborators the core needs from a host:
a status fetcher for the poll scheduler and a connectivity tester for the
provider prober. Transport failures are mapped onto the jobwatch error
taxonomy so the scheduler can tell retryable failures apart.
"""

import logging
import time
from typing import Any

import httpx

from .config import APIClientConfig
from .errors import StatusFetchError, TransientFetchError
from .models.polling import JobStatusReport
from .models.providers import ConnectivityResult, Credential

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class AnalysisAPIClient:
    """Async client for job status and provider test endpoints."""

    def __init__(
        self,
        config: APIClientConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the client.

        Args:
            config: API client settings (defaults from environment)
            client: Pre-built httpx client, mainly for tests with a mock transport
        """
        self.config = config if config is not None else APIClientConfig()
        self._owns_client = client is None

        if client is None:
            limits = httpx.Limits(
                max_keepalive_connections=self.config.max_connections,
                max_connections=self.config.max_connections,
                keepalive_expiry=30.0,
            )
            client = httpx.AsyncClient(
                base_url=self.config.base_url.rstrip("/"),
                timeout=self.config.request_timeout,
                limits=limits,
                headers={
                    "Accept": "application/json",
                    "Cache-Control": "no-cache",  # Always fetch fresh status
                },
            )
        self._client = client

        logger.info(
            f"Analysis API client initialized: base_url={self.config.base_url}, "
            f"timeout={self.config.request_timeout}s"
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, f"{API_PREFIX}{path}", **kwargs)
        except httpx.TimeoutException as e:
            raise TransientFetchError(
                f"Request timed out after {self.config.request_timeout}s"
            ) from e
        except httpx.RequestError as e:
            raise TransientFetchError(f"Request failed: {e}") from e

        if response.status_code >= 500 or response.status_code == 429:
            raise TransientFetchError(
                f"HTTP {response.status_code}: {response.reason_phrase}"
            )
        if response.status_code >= 400:
            raise StatusFetchError(f"HTTP {response.status_code}: {response.reason_phrase}")

        return response

    async def fetch_job_status(self, job_id: str) -> JobStatusReport:
        """
        Fetch the status of an analysis job.

        Args:
            job_id: Job identifier

        Returns:
            Parsed status report

        Raises:
            TransientFetchError: For timeouts, connection errors, 429 and 5xx
            StatusFetchError: For other HTTP errors or an unreadable body
        """
        response = await self._request("GET", f"/decompile/{job_id}")
        try:
            return JobStatusReport.model_validate(response.json())
        except ValueError as e:
            raise StatusFetchError(f"Invalid status payload for job {job_id}: {e}") from e

    async def test_provider(self, provider_id: str, credential: Credential) -> ConnectivityResult:
        """
        Ask the analysis API to test a provider credential.

        The secret travels in the request body only; it is never logged.

        Returns:
            Connectivity result; HTTP-level failures are raised, not wrapped
        """
        started = time.perf_counter()
        response = await self._request(
            "POST",
            f"/llm-providers/{provider_id}/test",
            json={"apiKey": credential.secret_value()},
        )
        latency_ms = (time.perf_counter() - started) * 1000

        try:
            payload = response.json()
        except ValueError as e:
            raise StatusFetchError(f"Invalid test payload for provider {provider_id}: {e}") from e

        return ConnectivityResult(
            success=payload.get("status") == "success" or payload.get("success") is True,
            latency_ms=latency_ms,
            message=payload.get("message"),
        )

    async def close(self):
        """Close the underlying client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
