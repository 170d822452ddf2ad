"""ServiceRequest resource descriptor (laboratory orders)."""

from typing import Any

from labflow.models.service_request import ServiceRequestRecord
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
)
from labflow.schemas.base import ResourceType, SearchParamType


def extract(document: dict) -> dict[str, Any]:
    code, code_display = first_coding(document.get("code"))
    performers = [p for p in as_list(document.get("performer")) if reference_string(p)]

    return {
        "subject_id": reference_id(document.get("subject")),
        "code": text(code),
        "code_display": text(code_display),
        "status": lower(document.get("status")),
        "intent": lower(document.get("intent")),
        "category": text(first_code(document.get("category"))),
        "priority": lower(document.get("priority")),
        "authored_on": to_datetime(document.get("authoredOn")),
        "requester_id": reference_string(document.get("requester")),
        "performer_id": reference_string(performers[0]) if performers else None,
        "occurrence_date_time": to_datetime(document.get("occurrenceDateTime")),
    }


def validate(document: dict) -> None:
    require(
        document.get("status"),
        "ServiceRequest must have a status "
        "(draft, active, on-hold, revoked, completed, entered-in-error, unknown)",
    )
    require(
        document.get("intent"),
        "ServiceRequest must have an intent (proposal, plan, directive, order, "
        "original-order, reflex-order, filler-order, instance-order, option)",
    )
    require(
        reference_string(document.get("subject")),
        "ServiceRequest must have a subject reference (patient)",
    )


SERVICE_REQUEST_SCHEMA = ResourceSchema(
    resource_type=ResourceType.SERVICE_REQUEST,
    model=ServiceRequestRecord,
    extract=extract,
    validate=validate,
    description="Laboratory test orders",
    references=(
        ReferenceSpec("subject", ResourceType.PATIENT.value),
        ReferenceSpec("requester", ResourceType.PATIENT.value, external=True),
        ReferenceSpec("performer", ResourceType.PATIENT.value, many=True, external=True),
    ),
    search_params=(
        SearchParam(
            "patient",
            SearchParamType.REFERENCE,
            "subject_id",
            "The patient the order is for",
            target=ResourceType.PATIENT.value,
        ),
        SearchParam(
            "subject",
            SearchParamType.REFERENCE,
            "subject_id",
            "The subject of the order",
            target=ResourceType.PATIENT.value,
        ),
        SearchParam("code", SearchParamType.TOKEN, "code", "What is being requested (LOINC)"),
        SearchParam(
            "status",
            SearchParamType.TOKEN,
            "status",
            "The status of the order",
            normalize=str.lower,
        ),
        SearchParam(
            "intent",
            SearchParamType.TOKEN,
            "intent",
            "proposal | plan | directive | order | ...",
            normalize=str.lower,
        ),
        SearchParam("category", SearchParamType.TOKEN, "category", "Classification of the order"),
        SearchParam(
            "priority",
            SearchParamType.TOKEN,
            "priority",
            "routine | urgent | asap | stat",
            normalize=str.lower,
        ),
        SearchParam("authored", SearchParamType.DATE, "authored_on", "When the order was signed"),
        SearchParam(
            "occurrence",
            SearchParamType.DATE,
            "occurrence_date_time",
            "When the service should occur",
        ),
        SearchParam(
            "requester",
            SearchParamType.TOKEN,
            "requester_id",
            "Who ordered the service (full reference, e.g. Practitioner/123)",
        ),
        SearchParam(
            "performer",
            SearchParamType.TOKEN,
            "performer_id",
            "Requested performer (full reference)",
        ),
    ),
)
