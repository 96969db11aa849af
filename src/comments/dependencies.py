"""FastAPI dependencies for the comment system."""

from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, Request, status

from .exceptions import CommentError
from .service import CommentService


logger = structlog.get_logger(__name__)


async def get_comment_service(request: Request) -> CommentService:
    """Get comment service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "comment_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Comment service unavailable",
        )
    return app_state.comment_service


CommentServiceDep = Annotated[CommentService, Depends(get_comment_service)]


def handle_comment_error(error: CommentError) -> HTTPException:
    """Convert comment errors to HTTP exceptions.

    Server-side failures (store and integrity errors) become a generic 500;
    the global handler masks their detail.
    """
    status_map = {
        "validation_error": status.HTTP_400_BAD_REQUEST,
        "post_not_found": status.HTTP_404_NOT_FOUND,
        "data_integrity_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "store_unavailable": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("comment_request_failed", code=error.code, error=error.message)

    return HTTPException(
        status_code=status_code,
        detail=error.message if status_code < 500 else "Server error",
    )
