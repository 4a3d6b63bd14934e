"""On-demand provider connectivity checks.

A probe marks the provider as ``testing``, calls the injected connectivity
tester with the vault's credential and records the outcome. Probes never raise:
every failure ends up in the returned ProviderHealth.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from ..config import ProberConfig
from ..errors import CredentialUnavailable
from ..metrics import MetricsCollector, get_metrics_collector
from ..models.providers import ConnectivityResult, Credential, HealthStatus, ProviderHealth
from .vault import CredentialVault

logger = logging.getLogger(__name__)

ConnectivityTester = Callable[
    [str, Credential], Awaitable["ConnectivityResult | Mapping[str, Any]"]
]


class ProviderHealthProber:
    """Tests providers and caches their latest health.

    Cached health for a provider is dropped whenever its credential changes in
    the vault, so the next read reports ``unknown`` until it is probed again.
    """

    def __init__(
        self,
        vault: CredentialVault,
        tester: ConnectivityTester,
        config: ProberConfig | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.vault = vault
        self.config = config if config is not None else ProberConfig()
        self._tester = tester
        self._metrics = metrics if metrics is not None else get_metrics_collector()
        self._health: dict[str, ProviderHealth] = {}
        self._generations: dict[str, int] = {}

        vault.add_invalidation_listener(self.invalidate)

    def get_health(self, provider_id: str) -> ProviderHealth:
        """Latest known health, ``unknown`` if never probed."""
        health = self._health.get(provider_id)
        if health is None:
            return ProviderHealth(
                provider_id=provider_id,
                status=HealthStatus.UNKNOWN,
                last_checked_at=datetime.now(timezone.utc),
            )
        return health

    def get_all_health(self) -> dict[str, ProviderHealth]:
        return dict(self._health)

    def invalidate(self, provider_id: str) -> None:
        """Forget cached health for a provider.

        Probes already running for it will not cache their result.
        """
        self._generations[provider_id] = self._generations.get(provider_id, 0) + 1
        if self._health.pop(provider_id, None) is not None:
            logger.debug(f"Dropped cached health for provider {provider_id}")

    async def test(self, provider_id: str, secret: str | None = None) -> ProviderHealth:
        """Probe one provider.

        Args:
            provider_id: Provider to test.
            secret: Optional secret to test instead of the stored credential
                (for checking a key before saving it).

        Returns:
            The resulting health; never ``testing``.
        """
        credential = self._resolve_credential(provider_id, secret)
        if credential is None:
            return self._record(
                provider_id,
                HealthStatus.UNAVAILABLE,
                error_message=str(CredentialUnavailable(provider_id)),
            )

        testing = ProviderHealth(
            provider_id=provider_id,
            status=HealthStatus.TESTING,
            last_checked_at=datetime.now(timezone.utc),
        )
        self._health[provider_id] = testing
        generation = self._generations.get(provider_id, 0)

        started = time.perf_counter()
        try:
            raw = await asyncio.wait_for(
                self._tester(provider_id, credential), timeout=self.config.probe_timeout
            )
            result = (
                raw
                if isinstance(raw, ConnectivityResult)
                else ConnectivityResult.model_validate(raw)
            )
        except asyncio.CancelledError:
            if self._health.get(provider_id) is testing:
                del self._health[provider_id]
            raise
        except asyncio.TimeoutError:
            elapsed_ms = (time.perf_counter() - started) * 1000
            return self._record(
                provider_id,
                HealthStatus.UNAVAILABLE,
                response_time_ms=elapsed_ms,
                error_message=f"Connectivity check timed out after {self.config.probe_timeout}s",
                generation=generation,
            )
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.warning(f"Connectivity check for {provider_id} failed: {type(e).__name__}: {e}")
            return self._record(
                provider_id,
                HealthStatus.UNAVAILABLE,
                response_time_ms=elapsed_ms,
                error_message=str(e) or type(e).__name__,
                generation=generation,
            )

        elapsed_ms = (time.perf_counter() - started) * 1000
        if not result.success:
            return self._record(
                provider_id,
                HealthStatus.UNAVAILABLE,
                response_time_ms=elapsed_ms,
                error_message=result.message or "Connectivity check failed",
                generation=generation,
            )

        if elapsed_ms > self.config.degraded_latency_ms:
            return self._record(
                provider_id,
                HealthStatus.DEGRADED,
                response_time_ms=elapsed_ms,
                error_message=f"Slow response ({elapsed_ms:.0f}ms)",
                generation=generation,
            )

        return self._record(
            provider_id, HealthStatus.HEALTHY, response_time_ms=elapsed_ms, generation=generation
        )

    async def test_all(self, provider_ids: Iterable[str] | None = None) -> dict[str, ProviderHealth]:
        """Probe several providers concurrently.

        Args:
            provider_ids: Providers to probe. Defaults to the configured
                providers plus every provider holding a credential.

        Returns:
            One result per provider, even when individual probes fail.
        """
        if provider_ids is None:
            targets = list(dict.fromkeys([*self.config.providers, *self.vault.provider_ids()]))
        else:
            targets = list(dict.fromkeys(provider_ids))

        outcomes = await asyncio.gather(
            *(self.test(provider_id) for provider_id in targets), return_exceptions=True
        )

        results: dict[str, ProviderHealth] = {}
        for provider_id, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Probe for {provider_id} raised {type(outcome).__name__}: {outcome}")
                outcome = self._record(
                    provider_id, HealthStatus.UNAVAILABLE, error_message=str(outcome)
                )
            results[provider_id] = outcome

        healthy = sum(1 for health in results.values() if health.status == HealthStatus.HEALTHY)
        logger.info(f"Probed {len(results)} providers ({healthy} healthy)")
        return results

    def _resolve_credential(self, provider_id: str, secret: str | None) -> Credential | None:
        if secret is None or not secret.strip():
            return self.vault.get(provider_id)

        # Probe-only credential, never stored
        now = time.time()
        return Credential(
            provider_id=provider_id,
            secret=secret.strip(),
            created_at=now,
            expires_at=now + self.config.probe_timeout,
        )

    def _record(
        self,
        provider_id: str,
        status: HealthStatus,
        response_time_ms: float | None = None,
        error_message: str | None = None,
        generation: int | None = None,
    ) -> ProviderHealth:
        health = ProviderHealth(
            provider_id=provider_id,
            status=status,
            last_checked_at=datetime.now(timezone.utc),
            response_time_ms=round(response_time_ms, 1) if response_time_ms is not None else None,
            error_message=error_message,
        )
        if generation is None or self._generations.get(provider_id, 0) == generation:
            self._health[provider_id] = health
        else:
            logger.info(f"Credential for {provider_id} changed during probe, result not cached")
        self._metrics.record_probe(provider_id, status.value, (response_time_ms or 0.0) / 1000)

        if status == HealthStatus.HEALTHY:
            logger.info(f"Provider {provider_id} healthy ({health.response_time_ms}ms)")
        else:
            logger.warning(f"Provider {provider_id} {status.value}: {error_message}")
        return health
