"""Provider credentials and health.

This package provides the in-memory credential vault, its periodic reaper and
the provider health prober that shares the vault's credentials.
"""

from .prober import ConnectivityTester, ProviderHealthProber
from .reaper import CredentialReaper
from .vault import CredentialVault

__all__ = [
    "ConnectivityTester",
    "CredentialReaper",
    "CredentialVault",
    "ProviderHealthProber",
]
