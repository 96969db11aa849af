"""Relational database connection module."""

from src.core.database.base import metadata
from src.core.database.engine import (
    AsyncDatabaseConnection,
    create_engine_from_settings,
    create_tables,
    init_async_database,
    ping_database,
    shutdown_async_database,
)


__all__ = [
    "AsyncDatabaseConnection",
    "create_engine_from_settings",
    "create_tables",
    "init_async_database",
    "metadata",
    "ping_database",
    "shutdown_async_database",
]
