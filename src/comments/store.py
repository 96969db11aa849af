"""Relational access for comments.

``CommentStore`` owns every SQL statement touching the ``comments`` table.
It receives an ``AsyncEngine`` explicitly, so tests can hand it an
in-memory SQLite engine.
"""

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from src.posts.models import posts_table

from .exceptions import CommentStoreUnavailableError
from .models import Comment, comments_table, new_comment_values


if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine
    from sqlalchemy.sql import Select


logger = structlog.get_logger(__name__)


def post_comments_query(post_id: int) -> "Select":
    """Recursive query for every comment hanging off a post's roots.

    Starts from the post's root comments and follows parent to child edges
    until no rows match. Rows come back oldest first, ties broken by id.
    """
    c = comments_table.c
    tree = (
        select(c.id, c.post_id, c.author, c.text, c.parent_comment_id, c.timestamp)
        .where(c.post_id == post_id, c.parent_comment_id.is_(None))
        .cte("comment_tree", recursive=True)
    )
    child = comments_table.alias("child")
    tree = tree.union_all(
        select(
            child.c.id,
            child.c.post_id,
            child.c.author,
            child.c.text,
            child.c.parent_comment_id,
            child.c.timestamp,
        ).select_from(child.join(tree, child.c.parent_comment_id == tree.c.id))
    )
    return select(tree).order_by(tree.c.timestamp.asc(), tree.c.id.asc())


class CommentStore:
    """Comment persistence on a relational database."""

    def __init__(self, engine: "AsyncEngine"):
        self.engine = engine

    async def fetch_post_comments(self, post_id: int) -> list[Comment]:
        """Every comment attached directly or transitively to a post.

        Returns an empty list when the post has no comments.

        Raises:
            CommentStoreUnavailableError: If the query fails.
        """
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(post_comments_query(post_id))
                comments = [Comment.from_row(row) for row in result]
        except SQLAlchemyError as e:
            logger.exception("comments_fetch_failed", post_id=post_id, error=str(e))
            raise CommentStoreUnavailableError from e

        logger.debug("comments_fetched", post_id=post_id, count=len(comments))
        return comments

    async def insert_comment(
        self,
        post_id: int,
        author: str,
        text: str,
        parent_comment_id: int | None = None,
    ) -> Comment:
        """Persist a comment and return the stored row.

        Raises:
            CommentStoreUnavailableError: If the insert fails.
        """
        stmt = (
            comments_table.insert()
            .values(new_comment_values(post_id, author, text, parent_comment_id))
            .returning(*comments_table.c)
        )
        try:
            async with self.engine.begin() as conn:
                row = (await conn.execute(stmt)).one()
        except SQLAlchemyError as e:
            logger.exception(
                "comment_insert_failed",
                post_id=post_id,
                parent_comment_id=parent_comment_id,
                error=str(e),
            )
            raise CommentStoreUnavailableError from e

        return Comment.from_row(row)

    async def get_comment(self, comment_id: int) -> Comment | None:
        """Single comment by id, or None."""
        stmt = select(comments_table).where(comments_table.c.id == comment_id)
        try:
            async with self.engine.connect() as conn:
                row = (await conn.execute(stmt)).first()
        except SQLAlchemyError as e:
            logger.exception("comment_fetch_failed", comment_id=comment_id, error=str(e))
            raise CommentStoreUnavailableError from e

        return Comment.from_row(row) if row is not None else None

    async def post_exists(self, post_id: int) -> bool:
        stmt = select(posts_table.c.id).where(posts_table.c.id == post_id)
        try:
            async with self.engine.connect() as conn:
                return (await conn.execute(stmt)).first() is not None
        except SQLAlchemyError as e:
            logger.exception("post_lookup_failed", post_id=post_id, error=str(e))
            raise CommentStoreUnavailableError from e
