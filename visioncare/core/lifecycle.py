"""
Application lifecycle management using the FastAPI lifespan pattern.

Builds the ClinicContainer on startup, keeps it on ``app.state`` for the
request dependencies and closes it on shutdown.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from visioncare.config.settings import Settings, get_settings
from visioncare.core.container import ClinicContainer

logger = logging.getLogger(__name__)


class LifecycleManager:
    """
    Manages application lifecycle events.

    Handles startup initialization and graceful shutdown.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._container: ClinicContainer | None = None

    @property
    def container(self) -> ClinicContainer | None:
        return self._container

    async def startup(self) -> ClinicContainer:
        """
        Execute startup tasks.

        Called when the application starts.
        """
        if self._container is not None:
            logger.warning("Lifecycle already initialized, skipping startup")
            return self._container

        logger.info("Starting application lifecycle...")
        self._verify_configurations()

        container = ClinicContainer(self._settings)
        await container.start()

        if await container.database.ping():
            logger.info("Local database connectivity verified")
        else:
            logger.warning("Local database is not reachable, requests will fail until it is")

        self._container = container
        logger.info("Application lifecycle startup completed")
        return container

    async def shutdown(self) -> None:
        """
        Execute shutdown tasks.

        Called when the application stops.
        """
        if self._container is None:
            logger.warning("Lifecycle not initialized, skipping shutdown")
            return

        logger.info("Stopping application lifecycle...")
        await self._container.close()
        self._container = None
        logger.info("Application lifecycle shutdown completed")

    def _verify_configurations(self) -> None:
        """Verify critical application configurations."""
        if not self._settings.SCHEDULE_API_URL or not self._settings.SCHEDULE_API_KEY:
            logger.warning("SCHEDULE_API_URL/SCHEDULE_API_KEY not configured - schedule calls will fail")

        if not self._settings.CENTRAL_REGISTRY_URL or not self._settings.CENTRAL_REGISTRY_API_KEY:
            logger.warning("CENTRAL_REGISTRY_URL/CENTRAL_REGISTRY_API_KEY not configured - identity resolution will fail")

        if not self._settings.RECONCILIATION_ENABLED:
            logger.info("External status reconciliation is disabled via RECONCILIATION_ENABLED=False")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Usage:
        app = FastAPI(lifespan=lifespan)
    """
    settings: Settings = getattr(app.state, "settings", None) or get_settings()
    lifecycle = LifecycleManager(settings)

    # Startup
    app.state.container = await lifecycle.startup()

    yield  # Application runs here

    # Shutdown
    await lifecycle.shutdown()
