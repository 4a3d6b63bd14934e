"""Credential vault and provider health endpoints.

Secrets are accepted on write and never returned: listings describe stored
credentials by provider, model and expiry only.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Path

from ..auth import get_api_key
from ..dependencies import ProberDep, VaultDep
from ..models.providers import CredentialInfo, HealthStatus, ProviderHealth, VaultSummary
from ..models.responses import (
    CredentialRequest,
    ProviderHealthListResponse,
    ProviderProbeRequest,
    ProviderTestRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")


def _health_list(results: dict[str, ProviderHealth]) -> ProviderHealthListResponse:
    return ProviderHealthListResponse(
        providers=results,
        total_healthy=sum(1 for health in results.values() if health.status == HealthStatus.HEALTHY),
    )


@router.get("/credentials", response_model=VaultSummary)
async def get_credential_summary(
    vault: VaultDep,
    api_key: str | None = Depends(get_api_key),
) -> VaultSummary:
    """Count of stored credentials and how many expire soon."""
    return vault.get_summary()


@router.get("/credentials/details", response_model=list[CredentialInfo])
async def list_credentials(
    vault: VaultDep,
    api_key: str | None = Depends(get_api_key),
) -> list[CredentialInfo]:
    """Stored credentials without their secrets."""
    return vault.export_state()


@router.put("/credentials/{provider_id}", response_model=CredentialInfo)
async def store_credential(
    request: CredentialRequest,
    vault: VaultDep,
    provider_id: str = Path(..., min_length=1, max_length=100, description="Provider identifier"),
    api_key: str | None = Depends(get_api_key),
) -> CredentialInfo:
    """Store or replace a provider credential."""
    try:
        credential = vault.set(
            provider_id, request.secret, ttl=request.ttl_seconds, model=request.model
        )
    except ValueError as e:
        raise HTTPException(
            status_code=400,
            detail={"success": False, "error": str(e), "error_type": "validation_error"},
        ) from e

    return CredentialInfo(
        provider_id=credential.provider_id,
        model=credential.model,
        created_at=credential.created_at,
        expires_at=credential.expires_at,
        expires_in_seconds=credential.expires_at - credential.created_at,
    )


@router.delete("/credentials/{provider_id}")
async def remove_credential(
    vault: VaultDep,
    provider_id: str = Path(..., description="Provider identifier"),
    api_key: str | None = Depends(get_api_key),
):
    """Remove a provider credential. Unknown providers are not an error."""
    removed = vault.remove(provider_id)
    return {"success": True, "provider_id": provider_id, "removed": removed}


@router.delete("/credentials")
async def clear_credentials(
    vault: VaultDep,
    api_key: str | None = Depends(get_api_key),
):
    """Drop every stored credential."""
    count = len(vault)
    vault.clear()
    return {"success": True, "cleared": count}


@router.get("/providers/health", response_model=ProviderHealthListResponse)
async def get_providers_health(
    prober: ProberDep,
    api_key: str | None = Depends(get_api_key),
) -> ProviderHealthListResponse:
    """Latest known health of every probed provider."""
    return _health_list(prober.get_all_health())


@router.get("/providers/{provider_id}/health", response_model=ProviderHealth)
async def get_provider_health(
    prober: ProberDep,
    provider_id: str = Path(..., description="Provider identifier"),
    api_key: str | None = Depends(get_api_key),
) -> ProviderHealth:
    """Latest known health of one provider (``unknown`` if never probed)."""
    return prober.get_health(provider_id)


@router.post("/providers/test", response_model=ProviderHealthListResponse)
async def test_providers(
    prober: ProberDep,
    request: ProviderTestRequest | None = None,
    api_key: str | None = Depends(get_api_key),
) -> ProviderHealthListResponse:
    """Probe several providers concurrently."""
    provider_ids = request.provider_ids if request else None
    results = await prober.test_all(provider_ids)
    return _health_list(results)


@router.post("/providers/{provider_id}/test", response_model=ProviderHealth)
async def test_provider(
    prober: ProberDep,
    provider_id: str = Path(..., min_length=1, max_length=100, description="Provider identifier"),
    request: ProviderProbeRequest | None = None,
    api_key: str | None = Depends(get_api_key),
) -> ProviderHealth:
    """Probe one provider with its stored credential or a supplied key."""
    secret = request.secret if request else None
    return await prober.test(provider_id, secret=secret)
