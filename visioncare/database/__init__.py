"""Local database (SQLAlchemy async)."""

from visioncare.database.async_db import Database, get_async_database_url
from visioncare.database.base import Base, TimestampMixin

__all__ = ["Base", "Database", "TimestampMixin", "get_async_database_url"]
