"""API key authentication for the FHIR endpoints."""

import logging
import secrets
from typing import Annotated

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from labflow.core.audit import log_auth_event
from labflow.core.config import settings

logger = logging.getLogger(__name__)

# API Key header security scheme
api_key_header = APIKeyHeader(
    name=settings.api_key_header,
    auto_error=False,  # Don't auto-error, we handle it manually
)


def verify_api_key(
    api_key: Annotated[str | None, Security(api_key_header)],
) -> str | None:
    """Verify API key if authentication is enabled.

    When auth is enabled:
    - Missing API key returns 401
    - Invalid API key returns 403

    When auth is disabled:
    - Returns None (no authentication required)

    Args:
        api_key: The API key from the request header

    Returns:
        The validated API key or None if auth disabled

    Raises:
        HTTPException: 401 if missing key, 403 if invalid key
    """
    if not settings.auth_enabled:
        return None

    if api_key is None:
        logger.warning("Missing API key in request")
        log_auth_event(success=False, reason="missing")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not secrets.compare_digest(api_key, settings.api_key):
        logger.warning("Invalid API key attempt")
        log_auth_event(success=False, reason="invalid")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    log_auth_event(success=True)
    return api_key
