"""CapabilityStatement endpoint.

GET /metadata describes what this server can do. The resource list and
search parameters are generated from the resource schema descriptors, so
the statement always matches the routes actually served.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request

from labflow.api.responses import FHIR_JSON, FHIRResponse, base_url
from labflow.core.config import settings
from labflow.resources import SCHEMAS, ResourceSchema

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Metadata"])

FHIR_VERSION = "4.0.1"

INTERACTIONS = (
    ("read", "Read {type} by ID (includeDeleted=true returns soft-deleted records)"),
    ("search-type", "Search for {type} resources"),
    ("create", "Create a new {type} resource"),
    ("update", "Replace an existing {type} resource"),
    ("delete", "Soft delete a {type} resource"),
)


def resource_capability(schema: ResourceSchema) -> dict[str, Any]:
    """CapabilityStatement.rest.resource entry for one resource type."""
    type_name = schema.type_name
    return {
        "type": type_name,
        "profile": f"http://hl7.org/fhir/StructureDefinition/{type_name}",
        "documentation": schema.description,
        "interaction": [
            {"code": code, "documentation": documentation.format(type=type_name)}
            for code, documentation in INTERACTIONS
        ],
        "versioning": "versioned",
        "readHistory": False,
        "updateCreate": False,
        "conditionalCreate": False,
        "conditionalRead": "not-supported",
        "conditionalUpdate": False,
        "conditionalDelete": "not-supported",
        "searchParam": [
            {
                "name": param.name,
                "type": param.type.value,
                "documentation": param.documentation,
            }
            for param in schema.all_search_params
        ],
    }


def capability_statement(url: str) -> dict[str, Any]:
    """Build the server CapabilityStatement."""
    if settings.auth_enabled:
        security = f"API key required in the {settings.api_key_header} header."
    else:
        security = "No authentication required."

    return {
        "resourceType": "CapabilityStatement",
        "status": "active",
        "date": datetime.now(UTC).date().isoformat(),
        "kind": "instance",
        "fhirVersion": FHIR_VERSION,
        "format": ["json", FHIR_JSON],
        "software": {"name": settings.app_name, "version": settings.app_version},
        "implementation": {
            "description": "Laboratory results store with FHIR R4 search",
            "url": url,
        },
        "rest": [
            {
                "mode": "server",
                "documentation": "FHIR endpoint for laboratory results exchange",
                "security": {"description": security},
                "resource": [resource_capability(schema) for schema in SCHEMAS.values()],
            }
        ],
    }


@router.get("/metadata", response_class=FHIRResponse, summary="Server capability statement")
def get_capability_statement(request: Request) -> FHIRResponse:
    logger.info("GET /metadata - returning CapabilityStatement")
    return FHIRResponse(content=capability_statement(base_url(request)))
