"""Response helpers shared by the FHIR routers."""

from email.utils import format_datetime
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse

from labflow.core.errors import LabFlowError
from labflow.schemas.base import IssueType
from labflow.schemas.bundle import OperationOutcome, OperationOutcomeIssue
from labflow.services.bundle import build_operation_outcome
from labflow.services.resource_service import RecordSummary

FHIR_JSON = "application/fhir+json"
ACCEPTED_CONTENT_TYPES = ("application/json", FHIR_JSON)


class FHIRResponse(JSONResponse):
    """JSON response served as ``application/fhir+json``."""

    media_type = FHIR_JSON


def base_url(request: Request) -> str:
    """Server base URL (scheme, host and root path) without trailing slash."""
    return str(request.base_url).rstrip("/")


def resource_response(
    summary: RecordSummary,
    status_code: int = status.HTTP_200_OK,
    location: str | None = None,
) -> FHIRResponse:
    """Resource body with ETag and Last-Modified headers."""
    headers = {
        "ETag": summary.etag,
        "Last-Modified": format_datetime(summary.last_updated, usegmt=True),
    }
    if location is not None:
        headers["Location"] = location
    return FHIRResponse(content=summary.resource, status_code=status_code, headers=headers)


def error_response(error: LabFlowError) -> FHIRResponse:
    """OperationOutcome body with the status code mapped from the error."""
    outcome = build_operation_outcome(error)
    return FHIRResponse(content=outcome.model_dump(mode="json"), status_code=error.status_code)


def outcome_response(
    issue_code: IssueType,
    diagnostics: str,
    status_code: int,
    headers: dict[str, Any] | None = None,
) -> FHIRResponse:
    """OperationOutcome for failures raised outside the resource engine."""
    outcome = OperationOutcome(
        issue=[OperationOutcomeIssue(code=issue_code, diagnostics=diagnostics)]
    )
    return FHIRResponse(
        content=outcome.model_dump(mode="json"),
        status_code=status_code,
        headers=headers,
    )
