"""Observation resource descriptor (laboratory results)."""

from typing import Any

from labflow.models.observation import ObservationRecord
from labflow.resources.base import ReferenceSpec, ResourceSchema, SearchParam, require
from labflow.resources.fhir import (
    first_code,
    first_coding,
    lower,
    number,
    reference_id,
    reference_string,
    text,
    to_datetime,
)
from labflow.schemas.base import ResourceType, SearchParamType


def _effective(document: dict) -> Any:
    period = document.get("effectivePeriod")
    return (
        document.get("effectiveDateTime")
        or (period.get("start") if isinstance(period, dict) else None)
        or document.get("effectiveInstant")
    )


def extract(document: dict) -> dict[str, Any]:
    code, code_display = first_coding(document.get("code"))
    value_code, _ = first_coding(document.get("valueCodeableConcept"))

    quantity = document.get("valueQuantity")
    if not isinstance(quantity, dict):
        quantity = {}

    return {
        "subject_id": reference_id(document.get("subject")),
        "code": text(code),
        "code_display": text(code_display),
        "status": lower(document.get("status")),
        "category": lower(first_code(document.get("category"))),
        "effective_date_time": to_datetime(_effective(document)),
        "value_quantity": number(quantity.get("value")),
        "value_unit": text(quantity.get("unit")) or text(quantity.get("code")),
        "value_code": text(value_code),
    }


def validate(document: dict) -> None:
    require(
        document.get("status"),
        "Observation must have a status (registered, preliminary, final, etc.)",
    )
    require(
        isinstance(document.get("code"), dict) and document["code"],
        "Observation must have a code (e.g., LOINC code)",
    )
    require(
        reference_string(document.get("subject")),
        "Observation must have a subject reference (patient)",
    )


OBSERVATION_SCHEMA = ResourceSchema(
    resource_type=ResourceType.OBSERVATION,
    model=ObservationRecord,
    extract=extract,
    validate=validate,
    description="Laboratory test results and measurements",
    references=(ReferenceSpec("subject", ResourceType.PATIENT.value),),
    search_params=(
        SearchParam(
            "patient",
            SearchParamType.REFERENCE,
            "subject_id",
            "The patient the observation is about",
            target=ResourceType.PATIENT.value,
        ),
        SearchParam(
            "subject",
            SearchParamType.REFERENCE,
            "subject_id",
            "The subject the observation is about",
            target=ResourceType.PATIENT.value,
        ),
        SearchParam("code", SearchParamType.TOKEN, "code", "The code of the observation (LOINC)"),
        SearchParam(
            "category",
            SearchParamType.TOKEN,
            "category",
            "Classification of the observation (e.g. laboratory)",
            normalize=str.lower,
        ),
        SearchParam(
            "status",
            SearchParamType.TOKEN,
            "status",
            "The status of the observation",
            normalize=str.lower,
        ),
        SearchParam(
            "date",
            SearchParamType.DATE,
            "effective_date_time",
            "Clinically relevant time of the observation",
        ),
        SearchParam(
            "value-quantity",
            SearchParamType.NUMBER,
            "value_quantity",
            "The numeric value of the observation",
        ),
    ),
)
