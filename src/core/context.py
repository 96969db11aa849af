"""Request context tracking using contextvars.

Each request gets an id (taken from ``X-Request-ID`` or generated) plus the
optional trace/correlation ids and the client address. Log processors read
these so every event emitted while serving a request carries them.
"""

from contextvars import ContextVar
from typing import Any
from uuid import uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
client_ip_var: ContextVar[str | None] = ContextVar("client_ip", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_trace_id() -> str | None:
    return trace_id_var.get()


def set_trace_id(trace_id: str | None) -> None:
    trace_id_var.set(trace_id)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None) -> None:
    correlation_id_var.set(correlation_id)


def get_client_ip() -> str | None:
    return client_ip_var.get()


def set_client_ip(client_ip: str | None) -> None:
    client_ip_var.set(client_ip)


def get_context() -> dict[str, Any]:
    """Return the populated context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    trace_id = get_trace_id()
    if trace_id:
        context["trace_id"] = trace_id

    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id

    client_ip = get_client_ip()
    if client_ip:
        context["client_ip"] = client_ip

    return context


def clear_context() -> None:
    """Reset all context variables.

    Called at the end of each request to prevent leakage between requests.
    """
    request_id_var.set("")
    trace_id_var.set(None)
    correlation_id_var.set(None)
    client_ip_var.set(None)
