"""Patient resource descriptor."""

from typing import Any

from labflow.models.patient import PatientRecord
from labflow.resources.base import ResourceSchema, SearchParam, require
from labflow.resources.fhir import as_list, lower, parse_date, text, to_date
from labflow.schemas.base import ResourceType, SearchParamType

GENDERS = ("male", "female", "other", "unknown")


def _names(document: dict) -> list[dict]:
    return [name for name in as_list(document.get("name")) if isinstance(name, dict)]


def extract(document: dict) -> dict[str, Any]:
    """Derive the searchable Patient columns from a document."""
    names = _names(document)
    first_name = names[0] if names else {}
    given = [g for g in as_list(first_name.get("given")) if isinstance(g, str)]

    name_parts: list[str] = []
    for name in names:
        name_parts.extend(
            part
            for part in [name.get("family"), name.get("text"), *as_list(name.get("given"))]
            if isinstance(part, str) and part
        )

    identifiers = [i for i in as_list(document.get("identifier")) if isinstance(i, dict)]

    return {
        "family_name": text(first_name.get("family")),
        "given_name": text(given[0]) if given else None,
        "name_text": " ".join(name_parts).lower() or None,
        "identifier": text(identifiers[0].get("value")) if identifiers else None,
        "birth_date": to_date(document.get("birthDate")),
        "gender": lower(document.get("gender")),
    }


def validate(document: dict) -> None:
    require(
        _names(document) or as_list(document.get("identifier")),
        "Patient must have at least one name or identifier",
    )

    birth_date = document.get("birthDate")
    if birth_date is not None:
        try:
            parse_date(str(birth_date))
        except ValueError:
            require(False, f"Invalid birthDate format: '{birth_date}'. Expected format: YYYY-MM-DD")

    gender = document.get("gender")
    if gender is not None:
        require(
            isinstance(gender, str) and gender.lower() in GENDERS,
            f"Invalid gender value: '{gender}'. Valid values: male, female, other, unknown",
        )


PATIENT_SCHEMA = ResourceSchema(
    resource_type=ResourceType.PATIENT,
    model=PatientRecord,
    extract=extract,
    validate=validate,
    description="Demographics of a person receiving laboratory services",
    search_params=(
        SearchParam(
            "name",
            SearchParamType.STRING,
            "name_text",
            "Any part of the patient name (family, given or text)",
            normalize=str.lower,
        ),
        SearchParam("family", SearchParamType.STRING, "family_name", "Family name"),
        SearchParam("given", SearchParamType.STRING, "given_name", "Given name"),
        SearchParam("identifier", SearchParamType.TOKEN, "identifier", "Patient identifier (MRN)"),
        SearchParam("birthdate", SearchParamType.DATE, "birth_date", "Date of birth"),
        SearchParam(
            "gender",
            SearchParamType.TOKEN,
            "gender",
            "Administrative gender (male | female | other | unknown)",
            normalize=str.lower,
            allowed=GENDERS,
        ),
    ),
)
