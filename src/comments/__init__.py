"""Threaded comments on community posts.

Note: Router is not exported here to avoid circular imports.
Import directly from src.comments.router when needed.
"""

from .exceptions import (
    CommentError,
    CommentPostNotFoundError,
    CommentStoreUnavailableError,
    CommentTreeIntegrityError,
    CommentValidationError,
)
from .models import Comment, comments_table
from .service import CommentService
from .store import CommentStore
from .tree import build_comment_tree, count_comments


__all__ = [
    "Comment",
    "CommentError",
    "CommentPostNotFoundError",
    "CommentService",
    "CommentStore",
    "CommentStoreUnavailableError",
    "CommentTreeIntegrityError",
    "CommentValidationError",
    "build_comment_tree",
    "comments_table",
    "count_comments",
]
