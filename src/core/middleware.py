"""HTTP middleware.

- RequestContextMiddleware: request id / trace id context and request logging
- SecurityHeadersMiddleware: CSP and the usual hardening headers
- OriginCheckMiddleware: 403 for cross-origin requests from unlisted origins
- RateLimitMiddleware: fixed-window per-IP limit backed by Redis counters
"""

import re
import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response, status
from fastapi.responses import ORJSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.core.context import (
    clear_context,
    get_request_id,
    set_client_ip,
    set_correlation_id,
    set_request_id,
    set_trace_id,
)


logger = structlog.get_logger(__name__)


def resolve_client_ip(request: Request) -> str | None:
    """Get the client IP address, honouring reverse proxy headers."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        # First entry is the original client
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return None


def cors_origin_pattern(origins: list[str]) -> str | None:
    """Regex matching any origin that starts with one of ``origins``.

    Returns None when ``origins`` contains ``*`` (every origin is allowed).
    """
    if "*" in origins:
        return None
    prefixes = "|".join(re.escape(origin) for origin in origins)
    return f"(?:{prefixes}).*" if prefixes else "(?!)"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Set up request context for logging and log request start/finish."""

    REQUEST_ID_HEADER = "X-Request-ID"
    TRACE_ID_HEADER = "X-Trace-ID"
    CORRELATION_ID_HEADER = "X-Correlation-ID"
    TRACEPARENT_HEADER = "traceparent"

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = exclude_paths or ["/health"]

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        start_time = time.perf_counter()

        request_id = set_request_id(request.headers.get(self.REQUEST_ID_HEADER))
        trace_id = request.headers.get(self.TRACE_ID_HEADER) or self._extract_traceparent(
            request.headers.get(self.TRACEPARENT_HEADER)
        )
        if trace_id:
            set_trace_id(trace_id)
        correlation_id = request.headers.get(self.CORRELATION_ID_HEADER)
        if correlation_id:
            set_correlation_id(correlation_id)
        set_client_ip(resolve_client_ip(request))

        request.state.request_id = request_id
        should_log = self.log_requests and not self._should_exclude(request.url.path)

        if should_log:
            logger.info(
                "request_started",
                method=request.method,
                path=request.url.path,
                query=str(request.query_params) if request.query_params else None,
                user_agent=request.headers.get("user-agent"),
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise
        else:
            if should_log:
                log_method = (
                    logger.warning if response.status_code >= 400 else logger.info
                )
                log_method(
                    "request_completed",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
            response.headers[self.REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()

    def _should_exclude(self, path: str) -> bool:
        return any(path.startswith(excluded) for excluded in self.exclude_paths)

    def _extract_traceparent(self, traceparent: str | None) -> str | None:
        """Extract the trace id from a W3C ``traceparent`` header.

        Format: {version}-{trace-id}-{parent-id}-{trace-flags}
        """
        if not traceparent:
            return None
        parts = traceparent.split("-")
        if len(parts) >= 2:
            return parts[1]
        return None


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add hardening headers to every response."""

    def __init__(self, app: ASGIApp, content_security_policy: str) -> None:
        super().__init__(app)
        self.headers = {
            "Content-Security-Policy": content_security_policy,
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "SAMEORIGIN",
            "X-DNS-Prefetch-Control": "off",
            "Referrer-Policy": "no-referrer",
            "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
            "Cross-Origin-Opener-Policy": "same-origin",
            "Cross-Origin-Resource-Policy": "same-origin",
        }

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response


class OriginCheckMiddleware(BaseHTTPMiddleware):
    """Reject requests whose ``Origin`` is not an allowed prefix.

    Requests without an ``Origin`` header (same-origin, curl, mobile apps)
    pass. Matching uses ``cors_origin_pattern`` so it agrees with the CORS
    middleware that runs inside it.
    """

    MESSAGE = "CORS policy violation"

    def __init__(self, app: ASGIApp, allowed_origins: list[str]) -> None:
        super().__init__(app)
        pattern = cors_origin_pattern(allowed_origins)
        self.pattern = re.compile(pattern) if pattern is not None else None

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        origin = request.headers.get("origin")
        if origin and self.pattern is not None and not self.pattern.fullmatch(origin):
            logger.warning(
                "cors_origin_rejected",
                origin=origin,
                method=request.method,
                path=request.url.path,
            )
            return ORJSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={
                    "error": True,
                    "message": self.MESSAGE,
                    "status_code": status.HTTP_403_FORBIDDEN,
                    "request_id": get_request_id() or None,
                },
            )
        return await call_next(request)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window rate limit per client IP.

    Counters live in Redis under ``ratelimit:{ip}:{window_start}`` and expire
    with the window. Without a Redis client the limiter lets requests through.
    Responses carry ``RateLimit-Limit``, ``RateLimit-Remaining`` and
    ``RateLimit-Reset`` headers.

    The client IP is the socket peer address. ``X-Forwarded-For`` and
    ``X-Real-IP`` are only honoured with ``trust_proxy``, since any client
    can set them.
    """

    MESSAGE = "Too many requests from this IP, please try again later."

    def __init__(
        self,
        app: ASGIApp,
        redis_getter: Callable[[], object | None],
        limit: int = 100,
        window_seconds: int = 15 * 60,
        path_prefix: str = "/api",
        trust_proxy: bool = False,
    ) -> None:
        super().__init__(app)
        self.redis_getter = redis_getter
        self.limit = limit
        self.window_seconds = window_seconds
        self.path_prefix = path_prefix
        self.trust_proxy = trust_proxy

    def _client_key(self, request: Request) -> str:
        if self.trust_proxy:
            return resolve_client_ip(request) or "unknown"
        return request.client.host if request.client else "unknown"

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        redis = self.redis_getter()
        if redis is None or not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        client_ip = self._client_key(request)
        now = int(time.time())
        window_start = now - (now % self.window_seconds)
        reset_in = window_start + self.window_seconds - now
        key = f"ratelimit:{client_ip}:{window_start}"

        try:
            pipe = redis.pipeline()
            pipe.incr(key)
            pipe.expire(key, self.window_seconds)
            count, _ = await pipe.execute()
        except RedisError as e:
            logger.warning("rate_limit_check_failed", error=str(e))
            return await call_next(request)

        remaining = max(self.limit - int(count), 0)
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(remaining),
            "RateLimit-Reset": str(reset_in),
        }

        if int(count) > self.limit:
            logger.warning(
                "rate_limit_exceeded",
                client_ip=client_ip,
                path=request.url.path,
                count=int(count),
            )
            return ORJSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "error": True,
                    "message": self.MESSAGE,
                    "status_code": status.HTTP_429_TOO_MANY_REQUESTS,
                    "request_id": get_request_id() or None,
                },
                headers={**headers, "Retry-After": str(reset_in)},
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response


__all__ = [
    "OriginCheckMiddleware",
    "RateLimitMiddleware",
    "RequestContextMiddleware",
    "SecurityHeadersMiddleware",
    "cors_origin_pattern",
    "resolve_client_ip",
]
