"""Fintrack HTTP API routers."""

from fintrack.api.auth import router as auth_router
from fintrack.api.health import router as health_router

__all__ = ["auth_router", "health_router"]
