"""Pydantic schemas for post comments.

Field names follow the stored row shape
(``id, post_id, author, text, parent_comment_id, timestamp``) so clients see
the same keys whether they read a single comment or a nested thread.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateCommentRequest(BaseModel):
    """Request to add a comment or a reply.

    Author and text are checked by the service so that missing values are a
    400, not a schema error.
    """

    author: str | None = None
    text: str | None = None
    parent_comment_id: int | None = Field(
        default=None, description="Comment being replied to; omit for a root comment"
    )


# ==============================================================================
# Response Schemas
# ==============================================================================


class CommentResponse(BaseModel):
    """A comment with its nested replies."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    post_id: int
    author: str
    text: str
    parent_comment_id: int | None = None
    timestamp: datetime
    replies: list["CommentResponse"] = Field(default_factory=list)

    @classmethod
    def from_comment(cls, comment: Any) -> "CommentResponse":
        """Create response from a Comment entity, replies included."""
        return cls.model_validate(comment)


class CommentCreatedResponse(BaseModel):
    """Confirmation for a newly added comment."""

    message: str = "Comment added successfully"
    comment: CommentResponse


CommentResponse.model_rebuild()
