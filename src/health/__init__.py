"""Health check endpoints."""

from src.health.router import db_router, router


__all__ = ["db_router", "router"]
