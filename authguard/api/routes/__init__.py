from __future__ import annotations

from authguard.api.routes.auth import router as auth_router
from authguard.api.routes.health import router as health_router
from authguard.api.routes.maintenance import router as maintenance_router

__all__ = ["auth_router", "health_router", "maintenance_router"]
