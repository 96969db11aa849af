"""Community posts module.

Note: Router is not exported here to avoid circular imports.
Import directly from src.posts.router when needed.
"""

from .models import Post, posts_table
from .service import (
    PostError,
    PostNotFoundError,
    PostService,
    PostStoreUnavailableError,
    PostValidationError,
)


__all__ = [
    "Post",
    "PostError",
    "PostNotFoundError",
    "PostService",
    "PostStoreUnavailableError",
    "PostValidationError",
    "posts_table",
]
