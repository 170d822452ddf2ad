"""FastAPI application for the LabFlow FHIR store."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from labflow.api import metadata_router, resource_routers
from labflow.api.responses import FHIRResponse, error_response, outcome_response
from labflow.core.config import settings
from labflow.core.database import close_db, init_db
from labflow.core.errors import LabFlowError
from labflow.schemas.base import IssueType

logger = logging.getLogger(__name__)

# HTTP status -> OperationOutcome issue code for errors raised by FastAPI itself
HTTP_ISSUE_CODES = {
    status.HTTP_401_UNAUTHORIZED: IssueType.SECURITY,
    status.HTTP_403_FORBIDDEN: IssueType.SECURITY,
    status.HTTP_404_NOT_FOUND: IssueType.NOT_FOUND,
    status.HTTP_405_METHOD_NOT_ALLOWED: IssueType.INVALID,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events:
    - Startup: Create tables in debug mode
    - Shutdown: Dispose of database connections
    """
    if settings.debug:
        init_db()
    logger.info(f"{settings.app_name} {settings.app_version} ready")

    yield

    close_db()


app = FastAPI(
    title=settings.app_name,
    description="FHIR R4 API for laboratory patients, observations, diagnostic reports and orders.",
    version=settings.app_version,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(metadata_router)
for resource_router in resource_routers:
    app.include_router(resource_router)


@app.exception_handler(LabFlowError)
async def labflow_error_handler(request: Request, exc: LabFlowError) -> FHIRResponse:
    """Render engine errors as OperationOutcome."""
    return error_response(exc)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> FHIRResponse:
    """Render HTTP errors (auth failures, unknown routes) as OperationOutcome."""
    issue_code = HTTP_ISSUE_CODES.get(exc.status_code, IssueType.EXCEPTION)
    return outcome_response(
        issue_code,
        str(exc.detail),
        exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> FHIRResponse:
    """Render malformed request bodies and parameters as a 400 OperationOutcome."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    logger.warning(f"Rejected malformed request to {request.url.path}: {problems}")
    return outcome_response(
        IssueType.STRUCTURE,
        f"Invalid request: {problems}",
        status.HTTP_400_BAD_REQUEST,
    )


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check endpoint for liveness checks."""
    return {
        "status": "healthy",
        "service": "labflow",
        "version": settings.app_version,
        "timestamp": datetime.now(UTC).isoformat(),
    }
