"""Shared fixtures.

The environment is set before any ``src`` import so the cached settings
point at an in-memory SQLite database and skip Redis.
"""

import os
import tempfile
from collections.abc import AsyncGenerator, Callable, Iterator
from datetime import UTC, datetime, timedelta

import pytest


_UPLOADS_DIR = tempfile.mkdtemp(prefix="reloc-uploads-")

os.environ.update(
    {
        "ENVIRONMENT": "testing",
        "DATABASE_URL": "sqlite+aiosqlite://",
        "DATABASE_CREATE_TABLES": "true",
        "REDIS_ENABLED": "false",
        "RATE_LIMIT_ENABLED": "false",
        "LOG_TO_FILE": "false",
        "LOG_REQUESTS": "false",
        "LOG_LEVEL": "WARNING",
        "FIREBASE_ENABLED": "false",
        "UPLOADS_DIR": _UPLOADS_DIR,
    }
)

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine  # noqa: E402

from src.comments.models import comments_table  # noqa: E402
from src.config import Settings, get_settings  # noqa: E402
from src.core.database.engine import (  # noqa: E402
    create_engine_from_settings,
    create_tables,
)
from src.posts.models import posts_table  # noqa: E402


get_settings.cache_clear()

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def uploads_dir() -> str:
    return _UPLOADS_DIR


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Test client running the full application lifespan."""
    from src.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database with every table created."""
    db_engine = create_engine_from_settings(settings)
    await create_tables(db_engine)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def insert_post(engine: AsyncEngine) -> Callable:
    """Insert a post row and return its id."""

    async def _insert(author: str = "alice", content: str = "hello") -> int:
        async with engine.begin() as conn:
            result = await conn.execute(
                posts_table.insert()
                .values(author=author, content=content, timestamp=BASE_TIME)
                .returning(posts_table.c.id)
            )
            return result.scalar_one()

    return _insert


@pytest.fixture
def insert_comment(engine: AsyncEngine) -> Callable:
    """Insert a comment row with a timestamp offset from ``BASE_TIME``.

    ``comment_id`` may be forced so tests can mirror literal scenarios.
    """

    async def _insert(
        post_id: int,
        ts: int,
        parent_comment_id: int | None = None,
        comment_id: int | None = None,
        author: str = "bob",
        text: str = "nice",
    ) -> int:
        values = {
            "post_id": post_id,
            "author": author,
            "text": text,
            "parent_comment_id": parent_comment_id,
            "timestamp": BASE_TIME + timedelta(seconds=ts),
        }
        if comment_id is not None:
            values["id"] = comment_id
        async with engine.begin() as conn:
            result = await conn.execute(
                comments_table.insert().values(**values).returning(comments_table.c.id)
            )
            return result.scalar_one()

    return _insert
