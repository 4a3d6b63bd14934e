"""Pydantic models for provider credentials and health."""

from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr


class HealthStatus(str, Enum):
    """Provider health states."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"
    TESTING = "testing"
    UNKNOWN = "unknown"


class Credential(BaseModel):
    """Short-lived provider secret held in memory by the vault.

    The secret is excluded from every dump and repr, so a credential can be
    handed to loggers or serializers without leaking it.
    """

    model_config = ConfigDict(frozen=True)

    provider_id: str = Field(..., min_length=1, description="Provider identifier")
    secret: SecretStr = Field(..., exclude=True, repr=False, description="API key or token")
    model: str | None = Field(None, description="Preferred model for this provider")
    created_at: float = Field(..., description="Clock time the credential was stored (seconds)")
    expires_at: float = Field(..., description="Clock time after which the credential is absent")

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def secret_value(self) -> str:
        """Return the raw secret for handing to a connectivity check."""
        return self.secret.get_secret_value()


class CredentialInfo(BaseModel):
    """Secret-free description of a stored credential."""

    provider_id: str
    model: str | None = None
    created_at: float
    expires_at: float
    expires_in_seconds: float


class VaultSummary(BaseModel):
    """Counts describing the vault contents."""

    providers_with_credentials: int = 0
    credentials_expiring_soon: int = 0
    provider_ids: list[str] = Field(default_factory=list)


class ConnectivityResult(BaseModel):
    """Outcome of a provider connectivity check."""

    model_config = ConfigDict(extra="ignore")

    success: bool = Field(..., description="Whether the provider accepted the credential")
    latency_ms: float | None = Field(
        None,
        validation_alias=AliasChoices("latency_ms", "latencyMs"),
        description="Latency reported by the check itself",
    )
    message: str | None = Field(None, description="Human-readable detail")


class ProviderHealth(BaseModel):
    """Health of a single provider as of its last probe."""

    provider_id: str = Field(..., description="Provider identifier")
    status: HealthStatus = Field(HealthStatus.UNKNOWN, description="Health status")
    last_checked_at: datetime = Field(..., description="Time of the last probe (UTC)")
    response_time_ms: float | None = Field(None, description="Measured probe duration")
    error_message: str | None = Field(None, description="Error message if the probe failed")
