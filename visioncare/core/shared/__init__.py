"""Shared utilities."""

from visioncare.core.shared.logger import (
    ContextLogger,
    configure_logging,
    get_job_logger,
    get_logger,
    get_service_logger,
)

__all__ = [
    "ContextLogger",
    "configure_logging",
    "get_job_logger",
    "get_logger",
    "get_service_logger",
]
