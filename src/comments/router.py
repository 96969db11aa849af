"""Comment API endpoints, nested under their post.

- GET  /api/posts/{post_id}/comments: threaded comments of a post
- POST /api/posts/{post_id}/comments: add a comment or a reply
"""

import structlog
from fastapi import APIRouter, status

from .dependencies import CommentServiceDep, handle_comment_error
from .exceptions import CommentError
from .schemas import CommentCreatedResponse, CommentResponse, CreateCommentRequest


logger = structlog.get_logger(__name__)


router = APIRouter(prefix="/api/posts", tags=["comments"])


@router.get(
    "/{post_id}/comments",
    response_model=list[CommentResponse],
    summary="List post comments",
)
async def list_post_comments(
    post_id: int,
    comment_service: CommentServiceDep,
) -> list[CommentResponse]:
    """Get all comments of a post with replies nested under their parent.

    Root comments and replies are ordered oldest first.
    """
    try:
        tree = await comment_service.list_comments(post_id)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return [CommentResponse.from_comment(comment) for comment in tree]


@router.post(
    "/{post_id}/comments",
    response_model=CommentCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add comment",
)
async def add_post_comment(
    post_id: int,
    data: CreateCommentRequest,
    comment_service: CommentServiceDep,
) -> CommentCreatedResponse:
    """Add a comment, or a reply when ``parent_comment_id`` is set."""
    try:
        comment = await comment_service.add_comment(
            post_id=post_id,
            author=data.author,
            text=data.text,
            parent_comment_id=data.parent_comment_id,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
    return CommentCreatedResponse(comment=CommentResponse.from_comment(comment))
