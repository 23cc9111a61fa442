"""
Application entry point.

Only wires logging, Sentry and the application factory together.
"""

import logging

import sentry_sdk

from visioncare.config.settings import get_settings
from visioncare.core.app_factory import create_app
from visioncare.core.shared.logger import configure_logging

settings = get_settings()
configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT, settings.LOG_FILE)

logger = logging.getLogger(__name__)

# Error tracking, only when a DSN is configured
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        send_default_pii=False,
        environment=settings.ENVIRONMENT,
        release=settings.VERSION,
    )

app = create_app(settings)

if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")
    uvicorn.run(
        "visioncare.main:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.DEBUG,
    )
