"""
Async database access for the local store.

The engine and session factory belong to a ``Database`` instance owned by
the application container; nothing here is created at import time.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote_plus

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from visioncare.config.settings import Settings

logger = logging.getLogger(__name__)


def get_async_database_url(settings: Settings) -> str:
    """Build the asyncpg database URL"""
    if not settings.DB_NAME:
        raise ValueError("Database name is required (DB_NAME)")

    user = quote_plus(settings.DB_USER or "postgres")
    host = settings.DB_HOST or "localhost"
    port = settings.DB_PORT or 5432

    if settings.DB_PASSWORD:
        password = quote_plus(settings.DB_PASSWORD)
        return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{settings.DB_NAME}"
    return f"postgresql+asyncpg://{user}@{host}:{port}/{settings.DB_NAME}"


def create_async_database_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine (NullPool in development, pooled otherwise)"""
    engine_config: dict[str, Any] = {
        "echo": settings.DB_ECHO,
        "pool_pre_ping": True,
    }

    if settings.is_development:
        logger.info("Creating async database engine for DEVELOPMENT (NullPool)")
        engine_config["poolclass"] = NullPool
    else:
        logger.info("Creating async database engine for PRODUCTION (pooled)")
        engine_config.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_recycle=settings.DB_POOL_RECYCLE,
            pool_timeout=settings.DB_POOL_TIMEOUT,
        )

    return create_async_engine(get_async_database_url(settings), **engine_config)


class Database:
    """Engine and session factory of the local store."""

    def __init__(self, settings: Settings, engine: AsyncEngine | None = None) -> None:
        self._engine = engine or create_async_database_engine(settings)
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Context manager for a session; rolls back on error."""
        async with self._session_factory() as session:
            try:
                yield session
            except Exception as e:
                logger.error(f"Async database error: {e}")
                await session.rollback()
                raise

    async def ping(self) -> bool:
        """Check connectivity (used by the health endpoint)."""
        try:
            async with self._engine.connect() as connection:
                await connection.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    async def dispose(self) -> None:
        await self._engine.dispose()
        logger.info("Database engine disposed")
