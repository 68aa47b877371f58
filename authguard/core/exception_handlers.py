"""Global exception handlers for consistent error responses.

Design:
- AppError subclasses → mapped HTTP status (400, 401, 403, 409, 429, 503)
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
- 429 responses carry Retry-After and X-RateLimit-* headers when enabled
"""

import logging
import math

from fastapi import Request
from fastapi.responses import JSONResponse

from authguard.core.config import settings
from authguard.core.errors import (
    AppError,
    AuthenticationAppError,
    ConflictAppError,
    CounterStoreUnavailableError,
    ForbiddenAppError,
    RateLimitedAppError,
)
from authguard.core.logging import get_request_id

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (AuthenticationAppError, 401),
    (ForbiddenAppError, 403),
    (ConflictAppError, 409),
    (RateLimitedAppError, 429),
    (CounterStoreUnavailableError, 503),
)


def status_for(exc: AppError) -> int:
    """HTTP status for a domain error; unmapped errors are client errors (400)."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


def _rate_limit_headers(exc: RateLimitedAppError) -> dict[str, str]:
    if not settings.rate_limit.include_headers:
        return {}

    details = exc.details or {}
    retry_after_ms = details.get("retry_after_ms", 0)
    headers = {
        "Retry-After": str(max(0, math.ceil(retry_after_ms / 1000))),
        "X-RateLimit-Remaining": str(details.get("remaining", 0)),
    }
    if "reset_at" in details:
        # Epoch seconds, matching the common X-RateLimit-Reset convention
        headers["X-RateLimit-Reset"] = str(details["reset_at"] // 1000)
    limit = (details.get("context") or {}).get("limit")
    if limit is not None:
        headers["X-RateLimit-Limit"] = str(limit)
    return headers


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    All responses include:
    - error.code: Machine-readable error code
    - error.message: Human-readable message
    - error.request_id: For distributed tracing
    - error.details: Optional structured context

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = status_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    headers = _rate_limit_headers(exc) if isinstance(exc, RateLimitedAppError) else None

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers or None,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message,
    so no stack traces leak to the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
