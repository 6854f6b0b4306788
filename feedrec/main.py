"""
Main FastAPI application entry point.
Configures logging, exception handlers, middleware, and routers.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from feedrec.api.dependencies import get_cache, get_feature_engineer
from feedrec.api.routers import behavior_router, feed_router, health_router
from feedrec.config import get_settings
from feedrec.config.logging import configure_logging
from feedrec.core.exceptions import AppException, ValidationError
from feedrec.core.telemetry import setup_telemetry


# =============================================================================
# Lifespan (Startup/Shutdown)
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    logger = logging.getLogger(__name__)
    settings = get_settings()

    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Cache backend: {'redis' if settings.REDIS_URL else 'in-memory'}")
    logger.info(f"Rank diversity enabled: {settings.APPLY_RANK_DIVERSITY}")

    # Workers outlive individual requests
    interest_queue = get_feature_engineer().interest_queue
    await interest_queue.start()

    yield

    # Shutdown
    logger.info("Shutting down application")
    await interest_queue.stop(drain=True)
    await get_cache().close()


# =============================================================================
# Exception Handlers
# =============================================================================


async def app_exception_handler(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    """Handle custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Report malformed query/body parameters in the standard error format."""
    error = ValidationError(
        "Invalid request parameters",
        details={"errors": [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
            for e in exc.errors()
        ]},
    )
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected exceptions - return generic error."""
    logger = logging.getLogger(__name__)
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            }
        },
    )


# =============================================================================
# Application Factory
# =============================================================================


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Configure structured logging
    configure_logging(debug=settings.DEBUG)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
        Short-Video Recommendation API

        A hand-weighted recommendation pipeline for personalized video feeds.

        ## Pipeline
        - Multi-strategy recall: collaborative, content, hot, follow, new, random fill
        - Cached user and video features
        - Weighted ranking on CTR, completion, engagement, hotness and freshness
        - Filtering for watch history, quality, category diversity and blocks
        - Behavior feedback into per-category interest scores
        - Observability: JSON logs, Prometheus, OpenTelemetry
        """,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Register exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Include routers
    app.include_router(health_router)
    app.include_router(feed_router)
    app.include_router(behavior_router)

    # Setup Telemetry (Metrics & Tracing)
    setup_telemetry(app)

    return app


# Create application instance
app = create_app()


# =============================================================================
# Development Entry Point
# =============================================================================


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "feedrec.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
