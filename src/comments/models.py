"""Database models for threaded post comments.

Architecture: adjacency list. ``parent_comment_id`` references the parent
comment (NULL for root comments) and the replies of a post form a forest.
Both foreign keys cascade, so deleting a post removes its comments and
deleting a comment removes its replies.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Table, Text, func

from src.core.database.base import metadata


comments_table = Table(
    "comments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "post_id",
        Integer,
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("author", String(255), nullable=False),
    Column("text", Text, nullable=False),
    Column(
        "parent_comment_id",
        Integer,
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    ),
    Column(
        "timestamp",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.current_timestamp(),
    ),
)


@dataclass
class Comment:
    """A comment on a post.

    ``replies`` is only populated in the tree view built by
    ``build_comment_tree``; it is never persisted.
    """

    id: int
    post_id: int
    author: str
    text: str
    parent_comment_id: int | None
    timestamp: datetime
    replies: list["Comment"] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.parent_comment_id is None

    @classmethod
    def from_row(cls, row: Any) -> "Comment":
        """Create Comment from a result row."""
        return cls(
            id=row.id,
            post_id=row.post_id,
            author=row.author,
            text=row.text,
            parent_comment_id=row.parent_comment_id,
            timestamp=row.timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        """Nested dict form, replies included."""
        return {
            "id": self.id,
            "post_id": self.post_id,
            "author": self.author,
            "text": self.text,
            "parent_comment_id": self.parent_comment_id,
            "timestamp": self.timestamp,
            "replies": [reply.to_dict() for reply in self.replies],
        }


def new_comment_values(
    post_id: int,
    author: str,
    text: str,
    parent_comment_id: int | None = None,
) -> dict[str, Any]:
    """Column values for inserting a new comment."""
    return {
        "post_id": post_id,
        "author": author,
        "text": text,
        "parent_comment_id": parent_comment_id,
        "timestamp": datetime.now(UTC),
    }
