"""
FastAPI application entry point.

Configures the application with:
- Lifespan handlers for database setup
- CORS middleware
- Correlation ID middleware
- Health and readiness checks
- API routes
"""

import importlib
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from yardgate import __version__
from yardgate.api import api_router
from yardgate.core.config import get_settings
from yardgate.core.logging import (
    get_correlation_id,
    get_logger,
    set_correlation_id,
    setup_logging,
)
from yardgate.infrastructure.db.session import close_db, init_db, ping_db

# Initialize logging
setup_logging()
logger = get_logger(__name__)

# Module each OCR engine needs at runtime
OCR_ENGINE_MODULES = {
    "easyocr": "easyocr",
    "paddleocr": "paddleocr",
}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str = __version__


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    status: str
    database_connected: bool
    ocr_ready: bool


def ocr_engine_available(engine: str) -> bool:
    """Whether the configured OCR engine's package can be imported."""
    module = OCR_ENGINE_MODULES.get(engine)
    if module is None:
        return True
    try:
        importlib.import_module(module)
    except ImportError:
        return False
    return True


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Handles startup and shutdown tasks:
    - Startup: Create database tables
    - Shutdown: Dispose of connections
    """
    logger.info("application_starting")

    try:
        await init_db()
        logger.info("database_initialized")
    except Exception as e:
        logger.error("startup_failed", error=str(e))
        raise

    logger.info("application_started", ocr_engine=get_settings().ocr_engine)

    yield

    logger.info("application_shutting_down")
    await close_db()
    logger.info("application_shutdown_complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Yard Gate Service",
        description="Container gate intake with ISO 6346 validation and OCR",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else ["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        """Add correlation ID to each request."""
        set_correlation_id(request.headers.get("X-Correlation-ID"))

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = get_correlation_id()

        return response

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["health"],
    )
    async def health_check() -> HealthResponse:
        """
        Basic liveness check.

        Returns 200 if the application is running.
        """
        return HealthResponse(status="healthy")

    @app.get(
        "/ready",
        response_model=ReadinessResponse,
        tags=["health"],
    )
    async def readiness_check() -> ReadinessResponse:
        """
        Readiness check for load balancers.

        Returns 200 only if the database answers and the configured
        OCR engine can be loaded.
        """
        database_connected = await ping_db()
        ocr_ready = ocr_engine_available(settings.ocr_engine)

        all_ready = database_connected and ocr_ready

        response = ReadinessResponse(
            status="ready" if all_ready else "not_ready",
            database_connected=database_connected,
            ocr_ready=ocr_ready,
        )

        if not all_ready:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content=response.model_dump(),
            )

        return response

    app.include_router(api_router)

    return app


# Create app instance
app = create_app()
