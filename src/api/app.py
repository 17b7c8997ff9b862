"""FastAPI application entry point with global error handling."""
from __future__ import annotations

import os
import sys

# Add src/ to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import get_settings
from core.db import init_db, validate_database
from core.exceptions import (
    CommitBlockedError,
    ConfigurationError,
    ConfirmationRequiredError,
    ExternalServiceError,
    FolderRequiredError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    PropBrainError,
    RateLimitError,
    ServiceUnavailableError,
    ValidationError,
    VisitCompletionError,
)
from core.logging_config import get_logger, setup_logging
from domain.intake import IntakeSessionStore
from api.routes import (
    documents,
    folders,
    health,
    intake,
    itineraries,
    properties,
    visits,
    workspace,
)

LOGGER = get_logger(__name__)

# Most specific first; the first match wins
STATUS_BY_ERROR = (
    (ValidationError, 400),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (CommitBlockedError, 409),
    (ConfirmationRequiredError, 409),
    (InvalidTransitionError, 409),
    (FolderRequiredError, 409),
    (VisitCompletionError, 409),
    (RateLimitError, 429),
    (ServiceUnavailableError, 503),
    (ExternalServiceError, 502),
)


def status_for(exc: PropBrainError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Sets up logging, creates missing tables and owns the intake session store.
    Startup continues when the database is not ready so health checks can answer.
    """
    settings = get_settings()
    setup_logging(level=settings.log_level, json_format=settings.log_format == "json")

    LOGGER.info(
        "API application starting",
        extra={"extra_data": {
            "environment": settings.environment,
            "enabled_services": settings.get_enabled_services(),
        }},
    )

    db_status = validate_database()
    if db_status["status"] == "error":
        LOGGER.error(
            "Database validation failed - app will start without database",
            extra={"extra_data": {"errors": db_status["errors"]}},
        )
    elif db_status["status"] == "missing_tables":
        LOGGER.warning(
            "Missing database tables detected - creating",
            extra={"extra_data": {"missing": db_status["tables_missing"]}},
        )
        init_result = init_db()
        if init_result["status"] == "error":
            LOGGER.error(f"Failed to create missing tables: {init_result.get('error')}")

    if getattr(app.state, "intake_store", None) is None:
        app.state.intake_store = IntakeSessionStore(debounce_seconds=settings.address_debounce_seconds)

    yield

    app.state.intake_store.close_all()
    LOGGER.info("API application shutting down")


def create_app(intake_store: Optional[IntakeSessionStore] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        intake_store: Pre-built intake store (tests inject stubbed services here).
    """
    settings = get_settings()
    application = FastAPI(
        title="PropBrain",
        description="Real-estate acquisition tracker API",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    application.state.intake_store = intake_store

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # Global Exception Handler
    # -------------------------------------------------------------------------

    @application.exception_handler(PropBrainError)
    async def app_error_handler(request: Request, exc: PropBrainError) -> JSONResponse:
        """Map domain errors onto HTTP statuses with a stable error code."""
        status = status_for(exc)
        extra = {"extra_data": {"path": request.url.path, "code": exc.code}}
        if status >= 500:
            LOGGER.error(f"Application error: {exc}", exc_info=True, extra=extra)
        else:
            LOGGER.warning(f"Request rejected: {exc}", extra=extra)

        content = {"error": exc.code, "message": str(exc)}
        if isinstance(exc, VisitCompletionError):
            content["inconsistent"] = exc.inconsistent
        if isinstance(exc, ConfigurationError):
            content["message"] = "Service misconfiguration"
        return JSONResponse(status_code=status, content=content)

    # -------------------------------------------------------------------------
    # Include Routers
    # -------------------------------------------------------------------------
    application.include_router(health.router, prefix="/health", tags=["Health"])
    application.include_router(workspace.router, prefix="/workspace", tags=["Workspace"])
    application.include_router(folders.router, prefix="/folders", tags=["Folders"])
    application.include_router(properties.router, prefix="/properties", tags=["Properties"])
    application.include_router(intake.router, prefix="/intake", tags=["Intake"])
    application.include_router(visits.router, prefix="/visits", tags=["Visits"])
    application.include_router(documents.router, prefix="/documents", tags=["Documents"])
    application.include_router(itineraries.router, prefix="/itineraries", tags=["Itineraries"])
    application.include_router(itineraries.public_router, prefix="/shared", tags=["Shared"])

    return application


app = create_app()
