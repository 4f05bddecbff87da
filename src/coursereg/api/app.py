"""FastAPI application setup."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from coursereg import __version__
from coursereg.api.dependencies import close_engine, init_engine
from coursereg.api.models import APIResponse
from coursereg.api.routes import courses, payments, registrations, students
from coursereg.catalog import CourseExistsError, PrerequisiteCycleError
from coursereg.drops import CannotDropCompletedError
from coursereg.enrollment import (
    BulkAdmissionError,
    CourseUnavailableError,
    CreditLimitExceededError,
    DuplicateEnrollmentError,
    PrerequisitesNotMetError,
)
from coursereg.payments import AlreadyPaidError
from coursereg.store import (
    EngineError,
    InvalidStateError,
    NotFoundError,
    RejectedError,
    StorageError,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from coursereg.config import EngineConfig

logger = logging.getLogger(__name__)

HTTP_422_UNPROCESSABLE = 422

# Most specific class first
ERROR_STATUS: list[tuple[type[EngineError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (DuplicateEnrollmentError, status.HTTP_409_CONFLICT),
    (AlreadyPaidError, status.HTTP_409_CONFLICT),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (CannotDropCompletedError, status.HTTP_409_CONFLICT),
    (CourseExistsError, status.HTTP_409_CONFLICT),
    (PrerequisiteCycleError, status.HTTP_409_CONFLICT),
    (CourseUnavailableError, HTTP_422_UNPROCESSABLE),
    (PrerequisitesNotMetError, HTTP_422_UNPROCESSABLE),
    (CreditLimitExceededError, HTTP_422_UNPROCESSABLE),
    (BulkAdmissionError, HTTP_422_UNPROCESSABLE),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(exc: EngineError) -> int:
    """HTTP status code for an engine error."""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    init_engine(app.state.db_path, config=app.state.config)
    yield
    # Shutdown
    close_engine()


def create_app(db_path: str | None = None, config: EngineConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="coursereg API",
        description="REST API for the course registration engine",
        version=__version__,
        lifespan=lifespan,
    )

    # Store config for lifespan manager
    app.state.db_path = db_path
    app.state.config = config

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(RejectedError)
    async def rejected_handler(_request: Request, exc: RejectedError) -> JSONResponse:
        return JSONResponse(
            status_code=status_for(exc),
            content=APIResponse[None](
                data=None, error=str(exc), code=exc.code, details=exc.details()
            ).model_dump(mode="json"),
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(_request: Request, exc: StorageError) -> JSONResponse:
        logger.warning("Storage error: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=APIResponse[None](
                data=None, error="Storage temporarily unavailable", code="storage_error"
            ).model_dump(mode="json"),
        )

    @app.exception_handler(EngineError)
    async def engine_error_handler(_request: Request, exc: EngineError) -> JSONResponse:
        logger.error("Unhandled engine error: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=APIResponse[None](data=None, error="Internal server error").model_dump(
                mode="json"
            ),
        )

    # Include routers
    app.include_router(registrations.router, prefix="/api/v1")
    app.include_router(students.router, prefix="/api/v1")
    app.include_router(payments.router, prefix="/api/v1")
    app.include_router(courses.router, prefix="/api/v1")

    return app
