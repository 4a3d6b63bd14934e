"""API key protection for the monitoring endpoints.

The key comes from ``JOBWATCH_KEY``. When it is unset or blank every endpoint
is open; otherwise callers present it as a Bearer token or an ``X-API-Key``
header.
"""

import hmac
import logging
import os

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings

logger = logging.getLogger(__name__)

API_KEY_ENV = "JOBWATCH_KEY"
API_KEY_HEADER = "x-api-key"

security = HTTPBearer(auto_error=False)


def _configured_key(settings: Settings | None) -> str | None:
    # Read the environment directly when no settings are given so tests can
    # flip the key without reloading the cached settings.
    key = settings.auth.api_key if settings is not None else os.environ.get(API_KEY_ENV)
    if key is None or not key.strip():
        return None
    return key


def is_auth_enabled(settings: Settings | None = None) -> bool:
    """True if a non-blank API key is configured."""
    return _configured_key(settings) is not None


def verify_api_key(api_key: str, settings: Settings | None = None) -> bool:
    """
    Compare a presented key with the configured one.

    Any key is accepted while authentication is disabled.
    """
    expected = _configured_key(settings)
    if expected is None:
        return True
    return hmac.compare_digest(api_key.encode(), expected.encode())


def _unauthorized(message: str, error_type: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"success": False, "error": message, "error_type": error_type},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_api_key(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str | None:
    """
    FastAPI dependency guarding the monitoring routes.

    A Bearer token takes priority over the ``X-API-Key`` header.

    Raises:
        HTTPException: 401 when authentication is enabled and the key is
            missing or wrong
    """
    if not is_auth_enabled():
        return None

    if credentials and credentials.credentials:
        api_key = credentials.credentials
    else:
        api_key = request.headers.get(API_KEY_HEADER)

    if not api_key:
        logger.warning("Monitoring API request without an API key")
        raise _unauthorized(
            "API key required. Provide via Authorization header or X-API-Key header",
            "authentication_required",
        )

    if not verify_api_key(api_key):
        logger.warning("Monitoring API request with an invalid API key")
        raise _unauthorized("Invalid API key", "authentication_failed")

    return api_key


def get_auth_status(settings: Settings | None = None) -> dict:
    """Authentication block reported by ``/health``."""
    enabled = is_auth_enabled(settings)
    methods = ["Authorization: Bearer <api_key>", "X-API-Key: <api_key>"]
    return {"auth_enabled": enabled, "auth_methods": methods if enabled else None}
