"""Database models for community posts.

Table ``posts``: one row per post, newest first in listings. ``likes`` is a
plain counter incremented in place.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    Table,
    Text,
    func,
)

from src.core.database.base import metadata


posts_table = Table(
    "posts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("author", String(255), nullable=False),
    Column("content", Text, nullable=False, default=""),
    Column("type", String(50), nullable=True),
    Column("media_url", Text, nullable=True),
    Column("is_video", Boolean, nullable=False, default=False),
    Column("likes", Integer, nullable=False, default=0, server_default="0"),
    Column(
        "timestamp",
        DateTime(timezone=True),
        nullable=False,
        index=True,
        server_default=func.current_timestamp(),
    ),
)


@dataclass
class Post:
    """Community post entity."""

    id: int
    author: str
    content: str
    type: str | None
    media_url: str | None
    is_video: bool
    likes: int
    timestamp: datetime

    @classmethod
    def from_row(cls, row: Any) -> "Post":
        """Create Post from a result row."""
        return cls(
            id=row.id,
            author=row.author,
            content=row.content or "",
            type=row.type,
            media_url=row.media_url,
            is_video=bool(row.is_video),
            likes=row.likes or 0,
            timestamp=row.timestamp,
        )


def new_post_values(
    author: str,
    content: str,
    post_type: str | None = None,
    media_url: str | None = None,
    is_video: bool = False,
) -> dict[str, Any]:
    """Column values for inserting a new post."""
    return {
        "author": author,
        "content": content,
        "type": post_type,
        "media_url": media_url,
        "is_video": is_video,
        "likes": 0,
        "timestamp": datetime.now(UTC),
    }
