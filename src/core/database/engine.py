"""Async relational database connection using SQLAlchemy.

Provides:
- Async engine / connection pool management
- Table creation for development and tests
- A connectivity probe used by the health endpoints

Services never reach for a global engine: they receive the ``AsyncEngine``
created here through their constructor.
"""

from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import event, func, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from src.config.settings import Settings, get_settings
from src.core.database.base import metadata


logger = structlog.get_logger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Build an ``AsyncEngine`` for ``settings.database_url``.

    SQLite URLs get foreign key enforcement, and in-memory SQLite shares a
    single connection so every session sees the same database.
    """
    url = make_url(settings.database_url)
    options: dict[str, Any] = {"echo": settings.database_echo}

    if url.get_backend_name() == "sqlite":
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
            options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow
        options["pool_pre_ping"] = settings.database_pool_pre_ping

    engine = create_async_engine(url, **options)

    if url.get_backend_name() == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    return engine


class AsyncDatabaseConnection:
    """Process-level owner of the async engine.

    Only the application lifespan talks to this class; everything else gets
    the engine handed to it.
    """

    _engine: AsyncEngine | None = None

    @classmethod
    def connect(cls, settings: Settings | None = None) -> AsyncEngine:
        """Create the engine if needed and return it."""
        if cls._engine is not None:
            return cls._engine

        settings = settings or get_settings()
        cls._engine = create_engine_from_settings(settings)
        logger.info(
            "database_engine_created",
            backend=cls._engine.url.get_backend_name(),
            host=cls._engine.url.host,
            database=cls._engine.url.database,
        )
        return cls._engine

    @classmethod
    async def disconnect(cls) -> None:
        """Dispose of the engine and its pooled connections."""
        if cls._engine is not None:
            await cls._engine.dispose()
            cls._engine = None
            logger.info("database_engine_disposed")


async def create_tables(engine: AsyncEngine) -> None:
    """Create every registered table that does not exist yet."""
    # Table modules register themselves on the shared metadata when imported
    import src.comments.models  # noqa: F401, PLC0415
    import src.posts.models  # noqa: F401, PLC0415

    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    logger.info("database_tables_created", tables=sorted(metadata.tables))


async def ping_database(engine: AsyncEngine) -> datetime:
    """Run a trivial query and return the database clock.

    Raises:
        SQLAlchemyError: If the database cannot be reached.
    """
    async with engine.connect() as conn:
        result = await conn.execute(select(func.current_timestamp()))
        return result.scalar_one()


async def init_async_database(settings: Settings | None = None) -> AsyncEngine:
    """Create the engine, optionally create tables, and verify connectivity.

    Raises:
        ConnectionError: If the database cannot be reached.
    """
    settings = settings or get_settings()
    engine = AsyncDatabaseConnection.connect(settings)

    try:
        if settings.database_create_tables:
            await create_tables(engine)
        await ping_database(engine)
    except SQLAlchemyError as e:
        logger.error("database_connection_failed", error=str(e))
        await AsyncDatabaseConnection.disconnect()
        raise ConnectionError(f"Failed to connect to database: {e}") from e

    logger.info("database_connected")
    return engine


async def shutdown_async_database() -> None:
    await AsyncDatabaseConnection.disconnect()
