"""Background jobs."""

from .reconciliation_scheduler import ReconciliationScheduler

__all__ = ["ReconciliationScheduler"]
