"""API key authentication for maintenance endpoints.

Maintenance operations (such as triggering the rate limit sweeper from an
external scheduler) are protected by a static API key list from environment
variables. End-user login is handled by the auth routes, not here.
"""

from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import Header

from authguard.core.config import settings
from authguard.core.errors import ForbiddenAppError
from authguard.core.logging import hash_identifier

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> sorted(parse_api_keys("key1, key2 ,key1"))
        ['key1', 'key2']
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()

    return {key.strip() for key in keys_string.split(",") if key.strip()}


def validate_api_key(provided_key: str | None) -> None:
    """Validate that the provided API key matches a configured key.

    Pure validation logic without FastAPI dependencies for easy testing.

    Args:
        provided_key: API key to validate (None when the header is missing).

    Raises:
        ForbiddenAppError: If the key is missing or invalid, or auth is
            required but no keys are configured.
    """
    if not settings.app.api_key_required:
        return

    valid_keys = parse_api_keys(settings.app.api_keys)
    if not valid_keys:
        logger.error(
            "api_key_validation_failed",
            extra={"reason": "api_keys_not_configured"},
        )
        raise ForbiddenAppError(
            code="api_keys_not_configured",
            message="API key authentication is enabled but no valid keys are configured",
            details={"hint": "Set APP_API_KEYS or disable auth with APP_API_KEY_REQUIRED=false"},
        )

    if not provided_key:
        logger.warning("api_key_validation_failed", extra={"reason": "missing_api_key"})
        raise ForbiddenAppError(
            code="missing_api_key",
            message="Missing API key. Provide X-API-Key header.",
        )

    if not any(hmac.compare_digest(provided_key, key) for key in valid_keys):
        logger.warning(
            "api_key_validation_failed",
            extra={"reason": "invalid_api_key", "api_key_hash": hash_identifier(provided_key)},
        )
        raise ForbiddenAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency for API key authentication.

    Usage:
        @router.post("/maintenance/...", dependencies=[Depends(verify_api_key)])

    Raises:
        ForbiddenAppError: Rendered as HTTP 403 by the exception handlers.
    """
    validate_api_key(x_api_key)
    if x_api_key:
        logger.info("auth.success", extra={"api_key_hash": hash_identifier(x_api_key)})
