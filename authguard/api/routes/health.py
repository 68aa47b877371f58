from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from authguard.core.rate_limit import get_guard_service
from authguard.services.guard_service import AuthGuardService

router = APIRouter(tags=["Health"])

_PROBE_KEY = "health:probe"


@router.get("/health")
def health_check() -> dict:
    """Liveness check used by load balancers and monitoring systems.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/health/ready")
def readiness_check(
    guard: Annotated[AuthGuardService, Depends(get_guard_service)],
) -> dict:
    """Readiness check that reads from the counter store.

    Guards fail open, so a store outage never blocks logins; this endpoint is
    where such an outage becomes visible (503 via the exception handlers).
    """

    guard.store.get(_PROBE_KEY)
    return {"status": "ok", "counter_store": type(guard.store).__name__}
