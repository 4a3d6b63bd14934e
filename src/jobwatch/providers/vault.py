"""In-memory, TTL-bound store for provider credentials.

Secrets live only in process memory for one session. Nothing in this module
writes to disk or Redis; export_state() returns metadata without the secret.
"""

from __future__ import annotations

import logging
from typing import Callable

from pydantic import SecretStr

from ..clock import Clock, LoopClock
from ..config import VaultConfig
from ..models.providers import Credential, CredentialInfo, VaultSummary

logger = logging.getLogger(__name__)

InvalidationListener = Callable[[str], None]


class CredentialVault:
    """Keyed store of short-lived provider secrets.

    An entry past its expiry is treated as absent whether or not the sweep has
    removed it yet. Every change to a provider's credential notifies the
    invalidation listeners so cached health for that provider is dropped.
    """

    def __init__(self, config: VaultConfig | None = None, clock: Clock | None = None) -> None:
        self.config = config if config is not None else VaultConfig()
        self._clock = clock if clock is not None else LoopClock()
        self._credentials: dict[str, Credential] = {}
        self._listeners: list[InvalidationListener] = []

    def __len__(self) -> int:
        return len(self._credentials)

    def __contains__(self, provider_id: object) -> bool:
        return isinstance(provider_id, str) and self.has_valid(provider_id)

    def add_invalidation_listener(self, listener: InvalidationListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def set(
        self,
        provider_id: str,
        secret: str | SecretStr,
        ttl: float | None = None,
        model: str | None = None,
    ) -> Credential:
        """Store or replace the credential for a provider.

        Args:
            provider_id: Provider identifier.
            secret: API key or token. Surrounding whitespace is stripped.
            ttl: Lifetime in seconds (defaults to the configured TTL).
            model: Preferred model for this provider.

        Returns:
            The stored credential.

        Raises:
            ValueError: If the provider id or secret is empty, or ttl is not positive.
        """
        raw = secret.get_secret_value() if isinstance(secret, SecretStr) else secret
        raw = (raw or "").strip()
        if not provider_id:
            raise ValueError("Provider id cannot be empty")
        if not raw:
            raise ValueError("API key cannot be empty")

        lifetime = self.config.default_ttl_seconds if ttl is None else ttl
        if lifetime <= 0:
            raise ValueError(f"Credential TTL must be positive, got {lifetime}")

        now = self._clock.time()
        credential = Credential(
            provider_id=provider_id,
            secret=SecretStr(raw),
            model=model,
            created_at=now,
            expires_at=now + lifetime,
        )
        self._credentials[provider_id] = credential

        logger.info(f"Stored credential for provider {provider_id} (ttl={lifetime:.0f}s)")
        self._invalidate(provider_id)
        return credential

    def get(self, provider_id: str) -> Credential | None:
        """Return the credential if present and unexpired; evict it otherwise."""
        credential = self._credentials.get(provider_id)
        if credential is None:
            return None

        if credential.is_expired(self._clock.time()):
            logger.info(f"Credential for provider {provider_id} expired")
            self._evict(provider_id)
            return None

        return credential

    def remove(self, provider_id: str) -> bool:
        """Remove a provider's credential; unknown ids are ignored."""
        if provider_id not in self._credentials:
            return False
        self._evict(provider_id)
        logger.info(f"Removed credential for provider {provider_id}")
        return True

    def has_valid(self, provider_id: str) -> bool:
        """Whether an unexpired credential exists, without exposing it."""
        return self.get(provider_id) is not None

    def provider_ids(self) -> list[str]:
        """Providers holding an unexpired credential."""
        return [provider_id for provider_id in list(self._credentials) if self.has_valid(provider_id)]

    def sweep(self) -> int:
        """Evict every expired credential.

        Returns:
            Number of credentials evicted.
        """
        now = self._clock.time()
        expired = [
            provider_id
            for provider_id, credential in self._credentials.items()
            if credential.is_expired(now)
        ]
        for provider_id in expired:
            self._evict(provider_id)

        if expired:
            logger.info(f"Swept {len(expired)} expired credentials")
        return len(expired)

    def clear(self) -> None:
        """Drop every credential (end of session)."""
        provider_ids = list(self._credentials)
        self._credentials.clear()
        for provider_id in provider_ids:
            self._invalidate(provider_id)
        logger.info(f"Cleared {len(provider_ids)} credentials")

    def get_summary(self) -> VaultSummary:
        now = self._clock.time()
        valid = [c for c in self._credentials.values() if not c.is_expired(now)]
        expiring = [c for c in valid if c.expires_at - now < self.config.expiring_soon_seconds]
        return VaultSummary(
            providers_with_credentials=len(valid),
            credentials_expiring_soon=len(expiring),
            provider_ids=sorted(c.provider_id for c in valid),
        )

    def export_state(self) -> list[CredentialInfo]:
        """Describe stored credentials without their secrets."""
        now = self._clock.time()
        return [
            CredentialInfo(
                provider_id=credential.provider_id,
                model=credential.model,
                created_at=credential.created_at,
                expires_at=credential.expires_at,
                expires_in_seconds=max(0.0, credential.expires_at - now),
            )
            for credential in self._credentials.values()
            if not credential.is_expired(now)
        ]

    def _evict(self, provider_id: str) -> None:
        self._credentials.pop(provider_id, None)
        self._invalidate(provider_id)

    def _invalidate(self, provider_id: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(provider_id)
            except Exception:
                logger.exception(f"Credential invalidation listener failed for {provider_id}")
