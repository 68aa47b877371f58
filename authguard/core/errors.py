"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    hint: str
    retry_after_ms: int
    reset_at: int
    remaining: int
    scope: str
    backend: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when credentials are rejected."""


class ForbiddenAppError(AppError):
    """Raised when an API key is missing or invalid."""


class ConflictAppError(AppError):
    """Raised when a resource already exists (e.g. a taken username)."""


class RateLimitedAppError(AppError):
    """Raised by the HTTP layer when a guard denies the request.

    A denial is a normal guard result; this error only carries it to the
    exception handler so it can be rendered as HTTP 429.
    """


class CounterStoreUnavailableError(AppError):
    """Raised by counter stores when the backend cannot be reached.

    Distinct from "record absent": stores return ``None`` for a missing key and
    raise this for infrastructure failures. Guards catch it and fail open.
    """
