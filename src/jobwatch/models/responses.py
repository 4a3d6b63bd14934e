"""Request and response models for API endpoints."""

from pydantic import BaseModel, Field, field_validator

from .providers import ProviderHealth

# Path segments under /api/v1/polling that cannot double as job ids
RESERVED_JOB_IDS = frozenset({"stats", "batch", "pause", "resume", "environment"})


class StartPollingRequest(BaseModel):
    """Request model for starting to poll a job."""
    initial_interval_ms: float | None = Field(
        None, gt=0, description="First polling delay (clamped to the configured bounds)"
    )


class BatchPollingRequest(BaseModel):
    """Request model for starting to poll several jobs."""
    job_ids: list[str] = Field(..., min_length=1, max_length=500, description="Jobs to poll")

    @field_validator("job_ids")
    @classmethod
    def reject_reserved_ids(cls, v: list[str]) -> list[str]:
        reserved = sorted(set(v) & RESERVED_JOB_IDS)
        if reserved:
            raise ValueError(f"Reserved job ids: {', '.join(reserved)}")
        return v


class PollingActionResponse(BaseModel):
    """Result of a start/stop/pause/resume call."""
    success: bool = True
    changed: bool = Field(..., description="Whether the call changed scheduler state")
    job_ids: list[str] = Field(default_factory=list, description="Jobs affected by the call")
    is_paused: bool = Field(False, description="Global pause flag after the call")


class CredentialRequest(BaseModel):
    """Request model for storing a provider credential."""
    secret: str = Field(..., min_length=1, max_length=4096, description="API key or token")
    model: str | None = Field(None, max_length=200, description="Preferred model")
    ttl_seconds: float | None = Field(
        None, gt=0, le=7 * 24 * 60 * 60, description="Credential lifetime (defaults to vault TTL)"
    )


class ProviderTestRequest(BaseModel):
    """Request model for probing several providers."""
    provider_ids: list[str] | None = Field(
        None, description="Providers to probe (defaults to configured and credentialed providers)"
    )


class ProviderHealthListResponse(BaseModel):
    """Response model for provider health listings."""
    providers: dict[str, ProviderHealth] = Field(..., description="Health per provider")
    total_healthy: int = Field(..., description="Number of healthy providers")


class ProviderProbeRequest(BaseModel):
    """Request model for probing a single provider."""
    secret: str | None = Field(
        None, max_length=4096, description="Key to test instead of the stored credential"
    )
