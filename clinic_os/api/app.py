"""FastAPI application for ClinicOS."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinic_os import __version__
from clinic_os.api.middleware import RequestLoggingMiddleware
from clinic_os.api.routes import health, scheduling
from clinic_os.config import get_settings
from clinic_os.scheduling import (
    ComputationError,
    SchedulingEngine,
    SchedulingError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting ClinicOS API")

    if getattr(app.state, "engine", None) is None:
        app.state.engine = SchedulingEngine(settings=get_settings())

    logger.info("ClinicOS API started successfully")

    yield

    logger.info("Shutting down ClinicOS API")


def create_app(engine: Optional[SchedulingEngine] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    An *engine* passed in is used as-is, which lets callers inject their own
    historical data and pricing collaborators.
    """
    settings = get_settings()

    app = FastAPI(
        title="ClinicOS Scheduling API",
        description="Scheduling optimization for clinic operations",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health.router, tags=["health"])
    app.include_router(scheduling.router, prefix="/api/v1", tags=["scheduling"])

    # Exception handlers
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=422,
            content={
                "error": "Validation failed",
                "issues": [issue.model_dump(mode="json") for issue in exc.issues],
            },
        )

    @app.exception_handler(ComputationError)
    async def computation_error_handler(request: Request, exc: ComputationError):
        return JSONResponse(
            status_code=500,
            content={
                "error": "Scheduling computation failed",
                "detail": str(exc) if settings.debug_mode else None,
            },
        )

    @app.exception_handler(SchedulingError)
    async def scheduling_error_handler(request: Request, exc: SchedulingError):
        return JSONResponse(
            status_code=400,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.debug_mode else None,
            },
        )

    return app
