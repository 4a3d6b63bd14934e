"""Pydantic models for polling state, provider credentials and API payloads."""

from .polling import (
    JobStatus,
    JobStatusReport,
    PollingSnapshot,
    PollingState,
    PollingStats,
    PollingStatus,
    PollPhase,
)
from .providers import (
    ConnectivityResult,
    Credential,
    CredentialInfo,
    HealthStatus,
    ProviderHealth,
    VaultSummary,
)

__all__ = [
    "ConnectivityResult",
    "Credential",
    "CredentialInfo",
    "HealthStatus",
    "JobStatus",
    "JobStatusReport",
    "PollPhase",
    "PollingSnapshot",
    "PollingState",
    "PollingStats",
    "PollingStatus",
    "ProviderHealth",
    "VaultSummary",
]
