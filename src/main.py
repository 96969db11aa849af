"""Reloc Community API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.comments.router import router as comments_router
from src.comments.service import CommentService
from src.comments.store import CommentStore
from src.config import get_settings
from src.core.context import get_request_id
from src.core.database import init_async_database, shutdown_async_database
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import (
    OriginCheckMiddleware,
    RateLimitMiddleware,
    RequestContextMiddleware,
    SecurityHeadersMiddleware,
    cors_origin_pattern,
)
from src.core.redis import get_redis, init_redis, shutdown_redis
from src.health import db_router as health_db_router
from src.health import router as health_router
from src.posts.router import router as posts_router
from src.posts.service import PostService
from src.storage.local import LocalMediaStorage
from src.storage.router import router as storage_router


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


# Application state for dependency injection
class AppState:
    """Application state container."""

    engine: AsyncEngine | None = None
    media_storage: LocalMediaStorage | None = None
    post_service: PostService | None = None
    comment_service: CommentService | None = None


app_state = AppState()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    The database is required: startup fails if it cannot be reached.
    Redis only backs rate limiting, so the app keeps running without it.
    """
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    app_state.media_storage = LocalMediaStorage(settings)
    app_state.media_storage.ensure_directory()

    # Initialize Redis (non-critical - app works without it)
    if settings.redis_enabled:
        try:
            await init_redis()
            logger.info("redis_initialized")
        except Exception as e:
            logger.warning(
                "redis_init_skipped",
                error=str(e),
                message="Running without Redis - rate limiting disabled",
            )

    try:
        app_state.engine = await init_async_database(settings)
    except ConnectionError:
        logger.exception("database_init_failed")
        await shutdown_redis()
        raise
    app.state.engine = app_state.engine
    logger.info("database_initialized")

    app_state.post_service = PostService(
        engine=app_state.engine,
        media_storage=app_state.media_storage,
    )
    app.state.post_service = app_state.post_service
    logger.info("post_service_initialized")

    app_state.comment_service = CommentService(store=CommentStore(app_state.engine))
    app.state.comment_service = app_state.comment_service
    logger.info("comment_service_initialized")

    yield

    # Shutdown
    logger.info("shutting_down_application")
    app.state.post_service = None
    app.state.comment_service = None
    await shutdown_redis()
    await shutdown_async_database()
    app_state.engine = None
    logger.info("application_stopped")


def _endpoint_index() -> dict[str, str]:
    return {
        "health": "GET /health",
        "db_test": "GET /db-test",
        "posts": "GET /api/posts",
        "create_post": "POST /api/posts",
        "like_post": "POST /api/posts/:id/like",
        "comments": "GET /api/posts/:id/comments",
        "add_comment": "POST /api/posts/:id/comments",
        "upload": "POST /api/upload",
    }


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug stays False so Starlette never renders stack traces; the handlers
    # below log full details and return safe messages.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Reloc community feed - posts, threaded comments and uploads",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Middleware added last runs first: request context wraps everything,
    # so rate-limited and rejected-origin responses still carry a request id.
    if settings.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            redis_getter=get_redis,
            limit=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
            path_prefix=settings.rate_limit_path_prefix,
            trust_proxy=settings.trust_proxy,
        )

    if settings.security_headers_enabled:
        app.add_middleware(
            SecurityHeadersMiddleware,
            content_security_policy=settings.content_security_policy,
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=cors_origin_pattern(settings.cors_origins),
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    app.add_middleware(OriginCheckMiddleware, allowed_origins=settings.cors_origins)

    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            message = "Endpoint not found"
        elif exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR:
            message = str(exc.detail)
        else:
            message = "Server error"

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": message,
                "status_code": exc.status_code,
                "request_id": request_id,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors.

        A body that is not valid JSON is a 400; everything else a 422 with
        per-field details.
        """
        request_id = _get_request_id_safe(request)
        errors = exc.errors()

        logger.warning(
            "validation_error",
            errors=errors,
            path=request.url.path,
            method=request.method,
        )

        if any(err.get("type") == "json_invalid" for err in errors):
            return ORJSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={
                    "error": True,
                    "message": "Invalid JSON payload",
                    "status_code": 400,
                    "request_id": request_id,
                },
            )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in errors
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        Full details are logged; the client only sees a generic message.
        """
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "Server error",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(health_db_router)
    app.include_router(posts_router)
    app.include_router(comments_router)
    app.include_router(storage_router)

    # Post media saved by LocalMediaStorage
    app.mount(
        settings.uploads_url_path,
        StaticFiles(directory=settings.uploads_dir, check_dir=False),
        name="uploads",
    )

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, Any]:
        """Root endpoint."""
        return {
            "message": "Reloc Community API is running...",
            "version": settings.app_version,
            "timestamp": datetime.now(UTC).isoformat(),
            "endpoints": _endpoint_index(),
        }

    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.api_reload,
        log_config=None,
    )


if __name__ == "__main__":
    run()
