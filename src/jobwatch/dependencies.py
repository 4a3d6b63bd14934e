"""Dependency injection providers for FastAPI.

Every long-lived component is created in the app lifespan and stored on
app.state; these providers hand them to route handlers.
"""

import logging
from typing import Annotated

from fastapi import Depends, Request

from .config import Settings, get_settings
from .providers.prober import ProviderHealthProber
from .providers.vault import CredentialVault
from .scheduler.gate import EnvironmentGate
from .scheduler.poller import PollScheduler

logger = logging.getLogger(__name__)


def _require_state(request: Request, name: str):
    if not hasattr(request.app.state, name):
        raise RuntimeError(f"{name} not initialized. Check app lifespan configuration.")
    return getattr(request.app.state, name)


def get_scheduler(request: Request) -> PollScheduler:
    """Get the poll scheduler from app state."""
    return _require_state(request, "scheduler")


def get_gate(request: Request) -> EnvironmentGate:
    """Get the environment gate from app state."""
    return _require_state(request, "gate")


def get_vault(request: Request) -> CredentialVault:
    """Get the credential vault from app state."""
    return _require_state(request, "vault")


def get_prober(request: Request) -> ProviderHealthProber:
    """Get the provider health prober from app state."""
    return _require_state(request, "prober")


def get_settings_dependency() -> Settings:
    """Get application settings."""
    return get_settings()


# Type aliases for cleaner route signatures
SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]
SchedulerDep = Annotated[PollScheduler, Depends(get_scheduler)]
GateDep = Annotated[EnvironmentGate, Depends(get_gate)]
VaultDep = Annotated[CredentialVault, Depends(get_vault)]
ProberDep = Annotated[ProviderHealthProber, Depends(get_prober)]
