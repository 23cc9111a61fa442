"""
Shared helpers for SQLAlchemy repositories

Translate driver errors into the domain taxonomy: unique violations become
ConflictError, everything else UpstreamError.
"""

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from visioncare.core.domain.exceptions import ConflictError, UpstreamError

logger = logging.getLogger(__name__)

LOCAL_STORE = "local_store"


def is_unique_violation(error: IntegrityError) -> bool:
    message = str(error).lower()
    return "unique constraint" in message or "duplicate key" in message or "23505" in message


class SQLAlchemyRepository:
    """Base class holding the session and the error translation."""

    def __init__(self, session: AsyncSession):
        """
        Initialize repository.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def _execute(self, statement: Any) -> Any:
        try:
            return await self.session.execute(statement)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Local store query failed: {e}")
            raise UpstreamError(LOCAL_STORE, "Local database query failed", e) from e

    async def _commit(self, entity_type: str, key_field: str, key_value: Any) -> None:
        """Commit, mapping a unique violation on the natural key to ConflictError."""
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            if is_unique_violation(e):
                raise ConflictError(entity_type, key_field, key_value) from e
            logger.error(f"Integrity error writing {entity_type} {key_value}: {e}")
            raise UpstreamError(LOCAL_STORE, f"Could not write {entity_type}", e) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Local store write failed for {entity_type} {key_value}: {e}")
            raise UpstreamError(LOCAL_STORE, f"Could not write {entity_type}", e) from e
