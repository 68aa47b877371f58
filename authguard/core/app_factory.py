"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated instances.
"""

from __future__ import annotations

from fastapi import FastAPI

from authguard.api.routes import auth_router, health_router, maintenance_router
from authguard.core.config import settings
from authguard.core.exception_handlers import setup_exception_handlers
from authguard.core.logging import configure_logging
from authguard.core.middleware import request_id_middleware
from authguard.core.openapi import apply_openapi_customizations


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="AuthGuard API",
        description=(
            "Login and registration endpoints protected by multi-window per-IP "
            "rate limits, progressive per-username lockout and a per-IP "
            "registration cap, backed by a durable counter store."
        ),
        version="0.1.0",
        debug=settings.app.debug,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(auth_router, prefix="/v1")
    app.include_router(maintenance_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
