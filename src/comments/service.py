"""Comment service layer.

Validates input, then orchestrates the store and the tree builder:

- ``list_comments``: recursive fetch, then nesting into reply trees
- ``add_comment``: root comments and replies, with the parent checked to
  belong to the same post
"""

import structlog

from .exceptions import (
    CommentPostNotFoundError,
    CommentTreeIntegrityError,
    CommentValidationError,
)
from .models import Comment
from .store import CommentStore
from .tree import build_comment_tree


logger = structlog.get_logger(__name__)


MAX_AUTHOR_LENGTH = 255
MAX_TEXT_LENGTH = 10000


def _validate_id(value: int | None, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise CommentValidationError(f"Invalid {name}")
    return value


class CommentService:
    """Service for post comments."""

    def __init__(self, store: CommentStore):
        self.store = store

    async def list_comments(self, post_id: int) -> list[Comment]:
        """Comments of a post as a forest of root comments with nested replies.

        Raises:
            CommentValidationError: If ``post_id`` is not a positive integer.
            CommentStoreUnavailableError: If the store fails.
            CommentTreeIntegrityError: If stored rows do not form a forest.
        """
        post_id = _validate_id(post_id, "post id")
        rows = await self.store.fetch_post_comments(post_id)

        try:
            tree = build_comment_tree(rows)
        except CommentTreeIntegrityError as e:
            logger.error(
                "comment_tree_integrity_error",
                post_id=post_id,
                comment_ids=e.comment_ids,
                error=e.message,
            )
            raise

        logger.debug("comments_listed", post_id=post_id, total=len(rows), roots=len(tree))
        return tree

    async def add_comment(
        self,
        post_id: int,
        author: str | None,
        text: str | None,
        parent_comment_id: int | None = None,
    ) -> Comment:
        """Add a root comment, or a reply when ``parent_comment_id`` is given.

        Raises:
            CommentValidationError: Empty author/text, bad ids, or a parent
                that does not exist on this post. Nothing is inserted.
            CommentPostNotFoundError: If the post does not exist.
            CommentStoreUnavailableError: If the store fails.
        """
        author = (author or "").strip()
        text = (text or "").strip()
        if not author or not text:
            raise CommentValidationError
        if len(author) > MAX_AUTHOR_LENGTH:
            raise CommentValidationError(
                f"Author must be at most {MAX_AUTHOR_LENGTH} characters"
            )
        if len(text) > MAX_TEXT_LENGTH:
            raise CommentValidationError(
                f"Text must be at most {MAX_TEXT_LENGTH} characters"
            )

        post_id = _validate_id(post_id, "post id")
        if parent_comment_id is not None:
            parent_comment_id = _validate_id(parent_comment_id, "parent comment id")

        if not await self.store.post_exists(post_id):
            raise CommentPostNotFoundError(post_id)

        if parent_comment_id is not None:
            parent = await self.store.get_comment(parent_comment_id)
            if parent is None or parent.post_id != post_id:
                raise CommentValidationError("Parent comment not found on this post")

        comment = await self.store.insert_comment(
            post_id=post_id,
            author=author,
            text=text,
            parent_comment_id=parent_comment_id,
        )
        logger.info(
            "comment_created",
            comment_id=comment.id,
            post_id=post_id,
            parent_comment_id=parent_comment_id,
        )
        return comment
