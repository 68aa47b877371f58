from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from authguard.core.auth import verify_api_key
from authguard.core.rate_limit import get_guard_service
from authguard.schemas.auth import CleanupResponse
from authguard.services.guard_service import AuthGuardService

router = APIRouter(prefix="/maintenance", tags=["Maintenance"])


@router.post(
    "/rate-limits/cleanup",
    response_model=CleanupResponse,
    dependencies=[Depends(verify_api_key)],
)
def cleanup_rate_limits(
    guard: Annotated[AuthGuardService, Depends(get_guard_service)],
) -> CleanupResponse:
    """Delete idle rate limit records; intended for an external scheduler."""
    return CleanupResponse(deleted=guard.cleanup_expired_records())
