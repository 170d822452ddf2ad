"""FHIR REST endpoints for every hosted resource type.

One router per resource type is built from its schema descriptor, so all
four types share the same interactions:

- GET    /{Type}              search (searchset Bundle)
- GET    /{Type}/{id}         read (``includeDeleted=true`` for audit reads)
- POST   /{Type}              create
- PUT    /{Type}/{id}         update
- DELETE /{Type}/{id}         soft delete
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from labflow.api.responses import (
    ACCEPTED_CONTENT_TYPES,
    FHIRResponse,
    base_url,
    resource_response,
)
from labflow.core.database import get_db
from labflow.core.errors import UnsupportedMediaTypeError
from labflow.core.security import verify_api_key
from labflow.resources import SCHEMAS, ResourceSchema
from labflow.services.resource_service import RecordSummary, ResourceService

logger = logging.getLogger(__name__)

# Type alias for database session dependency (avoids B008 linting issue)
DbSession = Annotated[Session, Depends(get_db)]

ResourceBody = Annotated[dict[str, Any], Body(description="FHIR resource JSON")]


def require_json_body(request: Request) -> None:
    """Reject request bodies that are not JSON or FHIR JSON."""
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type not in ACCEPTED_CONTENT_TYPES:
        logger.warning(f"Rejected content type '{content_type}' on {request.url.path}")
        raise UnsupportedMediaTypeError(
            "Content-Type must be application/json or application/fhir+json"
        )


def build_resource_router(schema: ResourceSchema) -> APIRouter:
    """Create the router serving one resource type."""
    type_name = schema.type_name
    router = APIRouter(
        prefix=f"/{type_name}",
        tags=[type_name],
        dependencies=[Depends(verify_api_key)],
    )

    @router.get(
        "",
        response_class=FHIRResponse,
        summary=f"Search {type_name} resources",
        description=f"Search {type_name} resources. Supports _count (1-100) and _offset paging.",
    )
    def search(request: Request, db: DbSession) -> FHIRResponse:
        params = list(request.query_params.multi_items())
        logger.info(f"GET {type_name} - search with {len(params)} parameters")

        bundle = ResourceService(db).search(type_name, params, base_url(request))
        return FHIRResponse(content=bundle)

    @router.get(
        "/{resource_id}",
        response_class=FHIRResponse,
        summary=f"Read a {type_name} by id",
    )
    def read(
        resource_id: str,
        db: DbSession,
        include_deleted: Annotated[bool, Query(alias="includeDeleted")] = False,
    ) -> FHIRResponse:
        logger.info(f"GET {type_name}/{resource_id}")
        record = ResourceService(db).get_by_id(type_name, resource_id, include_deleted=include_deleted)
        return resource_response(RecordSummary.from_record(type_name, record))

    @router.post(
        "",
        response_class=FHIRResponse,
        status_code=status.HTTP_201_CREATED,
        summary=f"Create a {type_name}",
        dependencies=[Depends(require_json_body)],
    )
    def create(request: Request, document: ResourceBody, db: DbSession) -> FHIRResponse:
        logger.info(f"POST {type_name} - creating resource")
        service = ResourceService(db)
        summary = service.create(type_name, document)
        service.commit()

        location = f"{base_url(request)}/{type_name}/{summary.id}/_history/{summary.version_id}"
        return resource_response(summary, status.HTTP_201_CREATED, location=location)

    @router.put(
        "/{resource_id}",
        response_class=FHIRResponse,
        summary=f"Update a {type_name}",
        dependencies=[Depends(require_json_body)],
    )
    def update(resource_id: str, document: ResourceBody, db: DbSession) -> FHIRResponse:
        logger.info(f"PUT {type_name}/{resource_id}")
        service = ResourceService(db)
        summary = service.update(type_name, resource_id, document)
        service.commit()
        return resource_response(summary)

    @router.delete(
        "/{resource_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        summary=f"Soft delete a {type_name}",
    )
    def delete(resource_id: str, db: DbSession) -> Response:
        logger.info(f"DELETE {type_name}/{resource_id}")
        service = ResourceService(db)
        service.delete(type_name, resource_id)
        service.commit()
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router


routers = [build_resource_router(schema) for schema in SCHEMAS.values()]
