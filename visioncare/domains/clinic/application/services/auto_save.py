"""
Consultation Auto-Saver

Coalesces rapid edits of one consultation into a single write after a quiet
period. The pending timer can be cancelled, and pending edits are flushed,
never dropped, when the clinician navigates away or finalizes.
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from visioncare.core.domain.exceptions import DomainException
from visioncare.core.shared.merge import deep_merge

from ..dto import FinalizationResult
from ...domain.entities import Consultation
from .consultation_lifecycle import ConsultationLifecycleManager

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 2.0


class ConsultationAutoSaver:
    """Debounced writer for one open consultation.

    Usage:
        async with ConsultationAutoSaver(lifecycle, consultation_id) as saver:
            saver.stage({"anamnesis": "..."})
            saver.stage({"physical_exam": {"visual_acuity": {"right_eye": "20/20"}}})
        # leaving the block flushes whatever is still pending
    """

    def __init__(
        self,
        lifecycle: ConsultationLifecycleManager,
        consultation_id: str,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        self._lifecycle = lifecycle
        self._consultation_id = consultation_id
        self._debounce = debounce_seconds
        self._pending: dict[str, Any] = {}
        self._timer: asyncio.Task | None = None
        self._lock = asyncio.Lock()
        self.last_error: DomainException | None = None

    @property
    def consultation_id(self) -> str:
        return self._consultation_id

    @property
    def pending(self) -> dict[str, Any]:
        """Edits not yet written."""
        return dict(self._pending)

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def stage(self, changes: Mapping[str, Any]) -> None:
        """Queue edits and restart the quiet-period timer.

        Must be called from a running event loop.
        """
        if not changes:
            return
        self._pending = deep_merge(self._pending, changes)
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._flush_after_quiet_period())

    def cancel(self) -> None:
        """Stop the pending timer, keeping the edits for the next flush."""
        self._cancel_timer()

    async def flush(self) -> Consultation | None:
        """Write pending edits now.

        Returns:
            The updated consultation, or None when there was nothing to write.

        Raises:
            DomainException: The write failed. Edits stay pending.
        """
        self._cancel_timer()
        async with self._lock:
            if not self._pending:
                return None
            changes, self._pending = self._pending, {}
            try:
                consultation = await self._lifecycle.update(self._consultation_id, changes)
            except DomainException as e:
                # Newer edits staged meanwhile win over the failed batch
                self._pending = deep_merge(changes, self._pending)
                self.last_error = e
                raise
            self.last_error = None
            return consultation

    async def finalize(self, clinical_fields: Mapping[str, Any] | None = None) -> FinalizationResult:
        """Flush pending edits, then finalize the consultation."""
        await self.flush()
        return await self._lifecycle.finalize(self._consultation_id, clinical_fields)

    async def aclose(self) -> None:
        """Flush on navigation away."""
        await self.flush()

    async def __aenter__(self) -> "ConsultationAutoSaver":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def _flush_after_quiet_period(self) -> None:
        await asyncio.sleep(self._debounce)
        # This task is the timer: detach it so flush() does not cancel itself
        self._timer = None
        try:
            await self.flush()
        except DomainException as e:
            logger.warning(f"Auto-save of consultation {self._consultation_id} failed, edits kept pending: {e.message}")

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()
