"""Fintrack Backend - FastAPI Application Factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fintrack.api import auth_router, health_router
from fintrack.core import engine, settings, setup_logging
from fintrack.core.logging import get_logger
from fintrack.middleware import SecurityHeadersMiddleware

# Import all models to ensure they're registered with Base for Alembic
from fintrack.models import RefreshToken, TokenBlacklist, User  # noqa: F401
from fintrack.services.errors import StorageError
from fintrack.services.session_cleanup import SessionCleanupScheduler

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    scheduler = SessionCleanupScheduler()
    app.state.session_cleanup = scheduler
    await scheduler.start()

    yield

    logger.info("Shutting down...")
    await scheduler.stop()
    await engine.dispose()


async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    """Report persistence failures as a retryable 503 without internals."""
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage unavailable"},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Personal-finance bookkeeping API",
        version=settings.app_version,
        lifespan=lifespan,
        # API schema is only published while debugging
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    app.add_exception_handler(StorageError, storage_error_handler)  # type: ignore[arg-type]

    app.add_middleware(SecurityHeadersMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
    )

    app.include_router(health_router)  # Health at root level
    app.include_router(auth_router)  # Auth at /auth

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
        }

    return app


# Application instance
app = create_app()
