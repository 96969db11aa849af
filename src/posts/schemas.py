"""Pydantic schemas for community posts."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class PostResponse(BaseModel):
    """A community post."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    author: str
    content: str
    type: str | None = None
    media_url: str | None = None
    is_video: bool = False
    likes: int = 0
    timestamp: datetime

    @classmethod
    def from_post(cls, post: Any) -> "PostResponse":
        return cls.model_validate(post)


class LikeResponse(BaseModel):
    """Result of liking a post."""

    success: bool = True
    likes: int
