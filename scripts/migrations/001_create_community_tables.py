"""Migration 001: Create the community tables.

Creates ``posts`` and ``comments`` (with the self-referencing
``parent_comment_id`` and both cascading foreign keys) in the database
configured by ``DATABASE_URL``. Tables that already exist are left alone.

Usage:
    uv run python -m scripts.migrations.001_create_community_tables
    uv run python -m scripts.migrations.001_create_community_tables --down
"""

import asyncio
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import structlog
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

from src.comments.models import comments_table
from src.config.settings import get_settings
from src.core.database.engine import create_engine_from_settings
from src.posts.models import posts_table


logger = structlog.get_logger(__name__)


# Parents before children; reversed for drops
TABLES = [posts_table, comments_table]


async def migrate_up(engine: AsyncEngine) -> tuple[int, int]:
    """Create missing tables.

    Returns:
        Tuple of (applied_count, skipped_count)
    """
    async with engine.begin() as conn:
        existing = set(await conn.run_sync(lambda c: inspect(c).get_table_names()))

        applied = 0
        skipped = 0
        for table in TABLES:
            if table.name in existing:
                logger.info("migration_skipped_exists", table=table.name)
                skipped += 1
                continue
            await conn.run_sync(table.create)
            logger.info("migration_applied", table=table.name)
            applied += 1

    return applied, skipped


async def migrate_down(engine: AsyncEngine) -> None:
    """Drop the community tables. All posts and comments are lost."""
    async with engine.begin() as conn:
        for table in reversed(TABLES):
            await conn.run_sync(table.drop, checkfirst=True)
            logger.warning("migration_reverted", table=table.name)


async def run_migration(down: bool = False) -> None:
    """Run the migration."""
    settings = get_settings()
    engine = create_engine_from_settings(settings)

    logger.info(
        "migration_starting",
        migration="001_create_community_tables",
        backend=engine.url.get_backend_name(),
        database=engine.url.database,
        direction="down" if down else "up",
    )

    try:
        if down:
            await migrate_down(engine)
        else:
            applied, skipped = await migrate_up(engine)
            logger.info(
                "migration_completed",
                migration="001_create_community_tables",
                applied=applied,
                skipped=skipped,
            )
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(run_migration(down="--down" in sys.argv[1:]))
