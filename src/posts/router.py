"""Community post API endpoints.

Provides routes for:
- Listing posts (newest first)
- Creating a post with an optional media file
- Liking a post
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, File, Form, UploadFile, status

from src.storage.dependencies import handle_storage_error
from src.storage.service import StorageError, read_upload_limited

from .dependencies import PostServiceDep, handle_post_error
from .schemas import LikeResponse, PostResponse
from .service import PostError


logger = structlog.get_logger(__name__)


router = APIRouter(prefix="/api/posts", tags=["posts"])


@router.get(
    "",
    response_model=list[PostResponse],
    summary="List posts",
)
async def list_posts(post_service: PostServiceDep) -> list[PostResponse]:
    """Get all posts, newest first."""
    try:
        posts = await post_service.list_posts()
    except PostError as e:
        raise handle_post_error(e) from e
    return [PostResponse.from_post(post) for post in posts]


@router.post(
    "",
    response_model=PostResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create post",
)
async def create_post(
    post_service: PostServiceDep,
    author: Annotated[str, Form(max_length=255)],
    content: Annotated[str, Form()] = "",
    type: Annotated[str | None, Form(max_length=50)] = None,  # noqa: A002
    is_video: Annotated[bool, Form()] = False,
    media: Annotated[UploadFile | None, File(description="Image or video")] = None,
) -> PostResponse:
    """Create a post. The optional ``media`` file is stored under /uploads."""
    media_bytes = None
    media_filename = None

    try:
        if media is not None and media.filename:
            media_bytes = await read_upload_limited(media, post_service.max_media_size)
            media_filename = media.filename
        post = await post_service.create_post(
            author=author,
            content=content,
            post_type=type,
            is_video=is_video,
            media=media_bytes,
            media_filename=media_filename,
        )
    except PostError as e:
        raise handle_post_error(e) from e
    except StorageError as e:
        raise handle_storage_error(e) from e

    return PostResponse.from_post(post)


@router.post(
    "/{post_id}/like",
    response_model=LikeResponse,
    summary="Like post",
)
async def like_post(post_id: int, post_service: PostServiceDep) -> LikeResponse:
    """Increment a post's like counter."""
    try:
        likes = await post_service.like_post(post_id)
    except PostError as e:
        raise handle_post_error(e) from e
    return LikeResponse(likes=likes)
