"""
FastAPI application for the clinic service.

Only wiring happens here: the container (database, REST clients, scheduler)
is built by the lifespan in ``visioncare.core.lifecycle``.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from visioncare.api.exception_handlers import register_exception_handlers
from visioncare.api.middleware import RequestLoggingMiddleware
from visioncare.api.router import api_router
from visioncare.config.settings import Settings, get_settings
from visioncare.core.lifecycle import lifespan

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create the clinic API.

    Args:
        settings: Optional settings override (tests pass their own)

    Returns:
        Application with request logging, domain error mapping and the
        ``/api/v1/clinic`` routes. Interactive docs only in debug mode.
    """
    settings = settings or get_settings()
    docs_prefix = settings.API_V1_STR if settings.DEBUG else None

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=settings.PROJECT_DESCRIPTION,
        version=settings.VERSION,
        docs_url=f"{docs_prefix}/docs" if docs_prefix else None,
        redoc_url=f"{docs_prefix}/redoc" if docs_prefix else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Added last, so CORS wraps the request logger
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.DEBUG else settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.API_V1_STR)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Liveness only; store reachability is under /clinic/health."""
        return {"status": "ok", "environment": settings.ENVIRONMENT, "version": settings.VERSION}

    logger.info(f"Clinic API created ({settings.ENVIRONMENT}), routes under {settings.API_V1_STR}/clinic")
    return app
