"""FastAPI application entry point and lifecycle management."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from freelance_plans.database import StorageUnavailableError, get_database
from freelance_plans.logging_config import configure_logging, get_logger
from freelance_plans.middleware import ContextMiddleware, RequestLoggingMiddleware

__version__ = "0.1.0"

# Initialize logger
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager.

    Prepares the database, seeds the plan catalog and runs the expiry
    sweeper for as long as the app is up.
    """
    from freelance_plans.config import get_config
    from freelance_plans.repositories.plan_catalog import get_plan_catalog
    from freelance_plans.services.expiry_sweeper import ExpirySweeper
    from freelance_plans.services.subscription_engine import get_subscription_engine

    logger.info("service_starting", version=__version__)

    config = get_config()
    database = get_database()
    if config.database.create_tables:
        database.create_all()
    if config.service.seed_plans:
        get_plan_catalog().seed_plans(config.seed_plans)

    sweeper = ExpirySweeper(
        get_subscription_engine(),
        interval_seconds=config.service.expiry_sweep_interval_seconds,
    )
    sweeper.start()
    app.state.expiry_sweeper = sweeper

    logger.info("service_started", status="ready", dialect=database.dialect)
    try:
        yield
    finally:
        logger.info("service_shutting_down")
        await sweeper.stop()
        logger.info("service_stopped")


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    # Configure logging
    log_level = os.getenv("LOG_LEVEL", "INFO")
    json_format = os.getenv("LOG_FORMAT", "json").lower() == "json"
    configure_logging(log_level=log_level, json_format=json_format)

    app = FastAPI(
        title="Freelance Plans",
        description="Subscription plans and freelancer subscription lifecycle",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    include_request_details = os.getenv("LOG_REQUEST_DETAILS", "true").lower() == "true"
    app.add_middleware(RequestLoggingMiddleware, include_request_details=include_request_details)
    app.add_middleware(ContextMiddleware)

    # Register routers
    from freelance_plans.api.admin import router as admin_router
    from freelance_plans.api.auth import router as auth_router
    from freelance_plans.api.plans import router as plans_router
    from freelance_plans.api.subscriptions import router as subscriptions_router

    app.include_router(auth_router)
    app.include_router(plans_router)
    app.include_router(subscriptions_router)
    app.include_router(admin_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Service banner."""
        return {
            "service": "freelance-plans",
            "status": "running",
            "version": __version__,
        }

    @app.get("/health")
    def health() -> JSONResponse:
        """Detailed health check."""
        database = get_database()
        healthy = database.ping()
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "degraded",
                "database": "connected" if healthy else "unavailable",
                "dialect": database.dialect,
            },
        )

    @app.exception_handler(StorageUnavailableError)
    async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError) -> JSONResponse:
        """Surface store outages as 503; the caller decides whether to retry."""
        logger.error("storage_unavailable_response", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=503,
            content={
                "detail": {
                    "error": "storage_unavailable",
                    "message": "Subscription storage is temporarily unavailable",
                }
            },
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": {
                    "error": "internal_server_error",
                    "message": "An unexpected error occurred",
                }
            },
        )

    logger.info("app_created", endpoints=len(app.routes))
    return app


# Create app instance
app = create_app()
