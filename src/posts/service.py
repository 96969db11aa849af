"""Post service layer.

Business logic for listing, creating and liking community posts.
"""

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from .models import Post, new_post_values, posts_table


if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from src.storage.local import LocalMediaStorage


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class PostError(Exception):
    """Base post error."""

    def __init__(self, message: str, code: str = "post_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class PostNotFoundError(PostError):
    """Post not found."""

    def __init__(self, message: str = "Post not found"):
        super().__init__(message, "post_not_found")


class PostValidationError(PostError):
    """Invalid post input."""

    def __init__(self, message: str):
        super().__init__(message, "validation_error")


class PostStoreUnavailableError(PostError):
    """Database query failed."""

    def __init__(self, message: str = "Server error"):
        super().__init__(message, "store_unavailable")


# ==============================================================================
# Post Service
# ==============================================================================


class PostService:
    """Service for community posts."""

    def __init__(
        self,
        engine: "AsyncEngine",
        media_storage: "LocalMediaStorage | None" = None,
    ):
        self.engine = engine
        self.media_storage = media_storage

    @property
    def max_media_size(self) -> int:
        """Largest media file accepted, in bytes.

        Raises:
            PostValidationError: If media uploads are not enabled.
        """
        if self.media_storage is None:
            raise PostValidationError("Media uploads are not enabled")
        return self.media_storage.max_file_size

    async def list_posts(self) -> list[Post]:
        """All posts, newest first."""
        stmt = select(posts_table).order_by(
            posts_table.c.timestamp.desc(), posts_table.c.id.desc()
        )
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(stmt)
                return [Post.from_row(row) for row in result]
        except SQLAlchemyError as e:
            logger.exception("posts_fetch_failed", error=str(e))
            raise PostStoreUnavailableError from e

    async def get_post(self, post_id: int) -> Post:
        stmt = select(posts_table).where(posts_table.c.id == post_id)
        try:
            async with self.engine.connect() as conn:
                row = (await conn.execute(stmt)).first()
        except SQLAlchemyError as e:
            logger.exception("post_fetch_failed", post_id=post_id, error=str(e))
            raise PostStoreUnavailableError from e

        if row is None:
            raise PostNotFoundError
        return Post.from_row(row)

    async def create_post(
        self,
        author: str | None,
        content: str | None,
        post_type: str | None = None,
        is_video: bool = False,
        media: bytes | None = None,
        media_filename: str | None = None,
    ) -> Post:
        """Create a post, storing the optional media file first.

        Raises:
            PostValidationError: Missing author, or neither content nor media.
            StorageError: Media could not be stored.
            PostStoreUnavailableError: Insert failed.
        """
        author = (author or "").strip()
        content = (content or "").strip()
        if not author:
            raise PostValidationError("Author is required")
        if not content and not media:
            raise PostValidationError("Post needs content or a media file")

        media_url = None
        if media:
            if self.media_storage is None:
                raise PostValidationError("Media uploads are not enabled")
            media_url = await self.media_storage.save(media, media_filename)

        stmt = (
            posts_table.insert()
            .values(
                new_post_values(
                    author=author,
                    content=content,
                    post_type=post_type or None,
                    media_url=media_url,
                    is_video=is_video,
                )
            )
            .returning(*posts_table.c)
        )
        try:
            async with self.engine.begin() as conn:
                row = (await conn.execute(stmt)).one()
        except SQLAlchemyError as e:
            logger.exception("post_insert_failed", author=author, error=str(e))
            if media_url and self.media_storage is not None:
                await self.media_storage.delete(media_url)
            raise PostStoreUnavailableError from e

        post = Post.from_row(row)
        logger.info("post_created", post_id=post.id, has_media=media_url is not None)
        return post

    async def like_post(self, post_id: int) -> int:
        """Increment the like counter and return the new count."""
        stmt = (
            update(posts_table)
            .where(posts_table.c.id == post_id)
            .values(likes=posts_table.c.likes + 1)
            .returning(posts_table.c.likes)
        )
        try:
            async with self.engine.begin() as conn:
                likes = (await conn.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.exception("post_like_failed", post_id=post_id, error=str(e))
            raise PostStoreUnavailableError from e

        if likes is None:
            raise PostNotFoundError
        logger.info("post_liked", post_id=post_id, likes=likes)
        return likes
