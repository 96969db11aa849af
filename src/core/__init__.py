# Core infrastructure
from src.core.context import (
    clear_context,
    get_client_ip,
    get_context,
    get_correlation_id,
    get_request_id,
    get_trace_id,
    set_client_ip,
    set_correlation_id,
    set_request_id,
    set_trace_id,
)
from src.core.database import init_async_database, shutdown_async_database
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import (
    OriginCheckMiddleware,
    RateLimitMiddleware,
    RequestContextMiddleware,
    SecurityHeadersMiddleware,
)


__all__ = [
    "OriginCheckMiddleware",
    "RateLimitMiddleware",
    "RequestContextMiddleware",
    "SecurityHeadersMiddleware",
    "clear_context",
    "configure_structlog",
    "get_client_ip",
    "get_context",
    "get_correlation_id",
    "get_logger",
    "get_request_id",
    "get_trace_id",
    "init_async_database",
    "set_client_ip",
    "set_correlation_id",
    "set_request_id",
    "set_trace_id",
    "shutdown_async_database",
]
