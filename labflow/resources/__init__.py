"""Resource schema descriptors for every hosted FHIR resource type."""

from labflow.core.errors import UnsupportedResourceTypeError
from labflow.resources.base import (
    COMMON_SEARCH_PARAMS,
    ReferenceSpec,
    ResourceSchema,
    SearchParam,
)
from labflow.resources.diagnostic_report import DIAGNOSTIC_REPORT_SCHEMA
from labflow.resources.observation import OBSERVATION_SCHEMA
from labflow.resources.patient import PATIENT_SCHEMA
from labflow.resources.service_request import SERVICE_REQUEST_SCHEMA

SCHEMAS: dict[str, ResourceSchema] = {
    schema.type_name: schema
    for schema in (
        PATIENT_SCHEMA,
        OBSERVATION_SCHEMA,
        DIAGNOSTIC_REPORT_SCHEMA,
        SERVICE_REQUEST_SCHEMA,
    )
}


def is_hosted(resource_type: str) -> bool:
    """Whether this server stores resources of ``resource_type``."""
    return resource_type in SCHEMAS


def get_schema(resource_type: str) -> ResourceSchema:
    """Look up the descriptor for a hosted resource type.

    Raises:
        UnsupportedResourceTypeError: If the type is not hosted here.
    """
    schema = SCHEMAS.get(resource_type)
    if schema is None:
        raise UnsupportedResourceTypeError(resource_type)
    return schema


__all__ = [
    "COMMON_SEARCH_PARAMS",
    "SCHEMAS",
    "ReferenceSpec",
    "ResourceSchema",
    "SearchParam",
    "get_schema",
    "is_hosted",
    "PATIENT_SCHEMA",
    "OBSERVATION_SCHEMA",
    "DIAGNOSTIC_REPORT_SCHEMA",
    "SERVICE_REQUEST_SCHEMA",
]
