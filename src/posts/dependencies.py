"""FastAPI dependencies for posts."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import PostError, PostService


async def get_post_service(request: Request) -> PostService:
    """Get post service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "post_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Post service unavailable",
        )
    return app_state.post_service


PostServiceDep = Annotated[PostService, Depends(get_post_service)]


def handle_post_error(error: PostError) -> HTTPException:
    """Convert post errors to HTTP exceptions."""
    status_map = {
        "post_not_found": status.HTTP_404_NOT_FOUND,
        "validation_error": status.HTTP_400_BAD_REQUEST,
        "store_unavailable": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.message,
    )
