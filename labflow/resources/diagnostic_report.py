"""DiagnosticReport resource descriptor (lab panels grouping observations)."""

from typing import Any

from labflow.models.diagnostic_report import DiagnosticReportRecord
from labflow.resources.base import ReferenceSpec, ResourceSchema, SearchParam, require
from labflow.resources.fhir import (
    as_list,
    first_code,
    first_coding,
    lower,
    reference_id,
    reference_string,
    text,
    to_datetime,
    upper,
)
from labflow.schemas.base import ResourceType, SearchParamType


def extract(document: dict) -> dict[str, Any]:
    code, code_display = first_coding(document.get("code"))

    period = document.get("effectivePeriod")
    effective = document.get("effectiveDateTime") or (
        period.get("start") if isinstance(period, dict) else None
    )

    result_ids = [
        result_id
        for result_id in (reference_id(result) for result in as_list(document.get("result")))
        if result_id
    ]

    return {
        "subject_id": reference_id(document.get("subject")),
        "code": text(code),
        "code_display": text(code_display),
        "status": lower(document.get("status")),
        "category": upper(first_code(document.get("category"))),
        "effective_date_time": to_datetime(effective),
        "issued": to_datetime(document.get("issued")),
        "result_ids": ",".join(result_ids) or None,
        "conclusion": text(document.get("conclusion")),
    }


def validate(document: dict) -> None:
    require(
        document.get("status"),
        "DiagnosticReport must have a status (registered, partial, preliminary, final, etc.)",
    )
    require(
        isinstance(document.get("code"), dict) and document["code"],
        "DiagnosticReport must have a code (e.g., LOINC code for panel type)",
    )
    require(
        reference_string(document.get("subject")),
        "DiagnosticReport must have a subject reference (patient)",
    )


DIAGNOSTIC_REPORT_SCHEMA = ResourceSchema(
    resource_type=ResourceType.DIAGNOSTIC_REPORT,
    model=DiagnosticReportRecord,
    extract=extract,
    validate=validate,
    description="Laboratory reports grouping related observations",
    references=(
        ReferenceSpec("subject", ResourceType.PATIENT.value),
        ReferenceSpec("result", ResourceType.OBSERVATION.value, many=True),
        ReferenceSpec("basedOn", ResourceType.SERVICE_REQUEST.value, many=True),
    ),
    search_params=(
        SearchParam(
            "patient",
            SearchParamType.REFERENCE,
            "subject_id",
            "The patient the report is about",
            target=ResourceType.PATIENT.value,
        ),
        SearchParam(
            "subject",
            SearchParamType.REFERENCE,
            "subject_id",
            "The subject of the report",
            target=ResourceType.PATIENT.value,
        ),
        SearchParam("code", SearchParamType.TOKEN, "code", "The code of the report (panel type)"),
        SearchParam(
            "category",
            SearchParamType.TOKEN,
            "category",
            "Service section (LAB, HM, CH, ...)",
            normalize=str.upper,
        ),
        SearchParam(
            "status",
            SearchParamType.TOKEN,
            "status",
            "The status of the report",
            normalize=str.lower,
        ),
        SearchParam(
            "date",
            SearchParamType.DATE,
            "effective_date_time",
            "Clinically relevant time of the report",
        ),
        SearchParam("issued", SearchParamType.DATE, "issued", "When the report was issued"),
        SearchParam(
            "result",
            SearchParamType.REFERENCE,
            "result_ids",
            "An observation included in the report",
            target=ResourceType.OBSERVATION.value,
            list_column=True,
        ),
    ),
)
