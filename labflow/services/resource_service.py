"""Resource service: the single entry point for reads, writes and searches.

Write path: document validation -> id checks -> reference validation ->
lifecycle transition (document and extracted columns written together).
Nothing is added to the session until every check has passed, so a failed
request never leaves a partial mutation behind. The service flushes; the
caller commits through ``commit()``.
"""

import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from labflow.core.audit import AuditAction, log_audit, log_search
from labflow.core.database import ResourceRecordMixin
from labflow.core.errors import (
    DuplicateResourceError,
    InvalidResourceError,
    ResourceNotFoundError,
    StoreError,
)
from labflow.resources import ResourceSchema, get_schema
from labflow.resources.fhir import ID_PATTERN, ensure_utc
from labflow.schemas.base import ResourceType
from labflow.services.bundle import build_searchset, resource_with_meta
from labflow.services.lifecycle import LifecycleManager, utcnow
from labflow.services.pagination import PaginationPlanner
from labflow.services.references import ReferenceValidator
from labflow.services.search import SearchTranslator

logger = logging.getLogger(__name__)


@dataclass
class RecordSummary:
    """Outcome of a successful write."""

    resource_type: str
    id: str
    version_id: int
    last_updated: datetime
    is_deleted: bool = False
    resource: dict[str, Any] = field(default_factory=dict)

    @property
    def etag(self) -> str:
        return f'W/"{self.version_id}"'

    @classmethod
    def from_record(cls, resource_type: str, record: ResourceRecordMixin) -> "RecordSummary":
        return cls(
            resource_type=resource_type,
            id=record.id,
            version_id=record.version_id,
            last_updated=ensure_utc(record.last_updated),
            is_deleted=record.is_deleted,
            resource=resource_with_meta(record),
        )


class ResourceService:
    """Create, read, update, soft delete and search hosted FHIR resources.

    Usage:
        service = ResourceService(session)
        summary = service.create("Patient", {"resourceType": "Patient", ...})
        service.commit()
        bundle = service.search("Patient", [("family", "Smith")], "http://host/fhir")
    """

    def __init__(
        self,
        session: Session,
        clock: Callable[[], datetime] = utcnow,
        pagination: PaginationPlanner | None = None,
    ) -> None:
        self._session = session
        self._references = ReferenceValidator(session)
        self._lifecycle = LifecycleManager(session, clock)
        self._pagination = pagination or PaginationPlanner()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, resource_type: str, document: Any) -> RecordSummary:
        """Store a new resource.

        The id is taken from the document when present, otherwise a UUID is
        generated. Ids are never reused, including ids of deleted records.

        Raises:
            InvalidResourceError: Document failed validation
            DuplicateResourceError: The id is already taken
            InvalidReferenceError: A reference does not resolve
            StoreError: Persistence failure
        """
        schema = get_schema(resource_type)
        document = self._prepare(schema, document)

        resource_id = document.get("id") or str(uuid4())
        self._check_id(resource_id)

        with self._store_errors(f"create {schema.type_name}"):
            if self._session.get(schema.model, resource_id) is not None:
                raise self._duplicate(schema, resource_id)

            self._references.check_references(document, schema.references)

            try:
                record = self._lifecycle.create(
                    schema.model,
                    resource_id,
                    {**document, "id": resource_id},
                    schema.extract,
                )
            except IntegrityError:
                # Lost a race with a concurrent create of the same id
                self._session.rollback()
                raise self._duplicate(schema, resource_id) from None

            summary = RecordSummary.from_record(schema.type_name, record)

        logger.info(f"Created {schema.type_name}/{resource_id}")
        self._audit(AuditAction.CREATE, schema, record, summary.version_id)
        return summary

    def update(self, resource_type: str, resource_id: str, document: Any) -> RecordSummary:
        """Replace the document of an existing, non-deleted resource.

        Raises:
            ResourceNotFoundError: No live record with that id
            InvalidResourceError: Document failed validation or its id
                differs from ``resource_id``
            InvalidReferenceError: A reference does not resolve
            StoreError: Persistence failure
        """
        schema = get_schema(resource_type)

        with self._store_errors(f"update {schema.type_name}"):
            record = self._load(schema, resource_id)
            document = self._prepare(schema, document)

            body_id = document.get("id")
            if body_id and body_id != resource_id:
                raise InvalidResourceError(
                    f"Resource ID '{body_id}' does not match URL ID '{resource_id}'"
                )

            self._references.check_references(document, schema.references)

            self._lifecycle.update(record, {**document, "id": resource_id}, schema.extract)
            summary = RecordSummary.from_record(schema.type_name, record)

        logger.info(f"Updated {schema.type_name}/{resource_id} to version {summary.version_id}")
        self._audit(AuditAction.UPDATE, schema, record, summary.version_id)
        return summary

    def delete(self, resource_type: str, resource_id: str) -> RecordSummary:
        """Soft delete a resource. The record stays readable for audit.

        Raises:
            ResourceNotFoundError: No live record with that id
            StoreError: Persistence failure
        """
        schema = get_schema(resource_type)

        with self._store_errors(f"delete {schema.type_name}"):
            record = self._load(schema, resource_id)
            self._lifecycle.delete(record)
            summary = RecordSummary.from_record(schema.type_name, record)

        logger.info(f"Soft deleted {schema.type_name}/{resource_id} at version {summary.version_id}")
        self._audit(AuditAction.DELETE, schema, record, summary.version_id)
        return summary

    def commit(self) -> None:
        """Commit the unit of work, rolling back on failure."""
        with self._store_errors("commit"):
            self._session.commit()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(
        self,
        resource_type: str,
        resource_id: str,
        include_deleted: bool = False,
    ) -> ResourceRecordMixin:
        """Fetch one record.

        Deleted records are only returned when ``include_deleted`` is set,
        which supports audit reads.

        Raises:
            ResourceNotFoundError: No such record (or deleted and not requested)
        """
        schema = get_schema(resource_type)
        with self._store_errors(f"read {schema.type_name}"):
            record = self._load(schema, resource_id, include_deleted=include_deleted)

        self._audit(
            AuditAction.READ,
            schema,
            record,
            record.version_id,
            details={"include_deleted": True} if include_deleted else None,
        )
        return record

    def search(
        self,
        resource_type: str,
        params: Sequence[tuple[str, str]],
        base_url: str,
    ) -> dict[str, Any]:
        """Run a search and return a searchset Bundle as JSON.

        Paging and filter values are validated before any query runs.

        Args:
            resource_type: Hosted resource type
            params: Query parameters as ordered (name, value) pairs
            base_url: Server base URL used for fullUrl and links

        Raises:
            InvalidParameterError: Bad paging or filter value
            StoreError: Persistence failure
        """
        schema = get_schema(resource_type)
        page, filters = self._pagination.plan(params)
        predicates = SearchTranslator(schema).translate(filters)
        model = schema.model

        with self._store_errors(f"search {schema.type_name}"):
            total = self._session.scalar(
                select(func.count()).select_from(model).where(*predicates)
            )
            records = []
            if page.count > 0:
                stmt = self._pagination.paginate(select(model).where(*predicates), model, page)
                records = list(self._session.scalars(stmt).all())

        type_url = f"{base_url.rstrip('/')}/{schema.type_name}"
        links = self._pagination.build_links(type_url, filters, page, total or 0)
        bundle = build_searchset(type_url, records, total or 0, links)

        logger.info(
            f"Search {schema.type_name}: {len(records)} of {total} "
            f"(count={page.count}, offset={page.offset})"
        )
        log_search(schema.type_name, total or 0, filters)
        return bundle.model_dump(mode="json")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _prepare(self, schema: ResourceSchema, document: Any) -> dict:
        if not isinstance(document, dict) or not document:
            raise InvalidResourceError(f"{schema.type_name} resource is required")

        submitted_type = document.get("resourceType")
        if submitted_type != schema.type_name:
            raise InvalidResourceError(
                f"Resource type '{submitted_type}' does not match endpoint '{schema.type_name}'"
            )

        schema.validate(document)
        return document

    @staticmethod
    def _check_id(resource_id: Any) -> None:
        if not isinstance(resource_id, str) or not ID_PATTERN.match(resource_id):
            raise InvalidResourceError(
                f"Invalid resource ID '{resource_id}'. "
                "IDs must be 1-64 letters, digits, '-' or '.'"
            )

    def _load(
        self,
        schema: ResourceSchema,
        resource_id: str,
        include_deleted: bool = False,
    ) -> ResourceRecordMixin:
        record = self._session.get(schema.model, resource_id)
        if record is None or (record.is_deleted and not include_deleted):
            logger.warning(f"{schema.type_name} {resource_id} not found")
            raise ResourceNotFoundError(schema.type_name, resource_id)
        return record

    @staticmethod
    def _duplicate(schema: ResourceSchema, resource_id: str) -> DuplicateResourceError:
        logger.warning(f"{schema.type_name} {resource_id} already exists")
        return DuplicateResourceError(f"{schema.type_name} with ID '{resource_id}' already exists")

    @contextmanager
    def _store_errors(self, action: str) -> Iterator[None]:
        """Translate persistence failures into StoreError after a rollback."""
        try:
            yield
        except SQLAlchemyError as e:
            logger.exception(f"Store failure during {action}")
            self._session.rollback()
            raise StoreError() from e

    def _audit(
        self,
        action: AuditAction,
        schema: ResourceSchema,
        record: ResourceRecordMixin,
        version_id: int,
        details: dict | None = None,
    ) -> None:
        if schema.resource_type == ResourceType.PATIENT:
            patient_id = record.id
        else:
            patient_id = getattr(record, "subject_id", None)
        log_audit(
            action=action,
            resource_type=schema.type_name,
            resource_id=record.id,
            version_id=version_id,
            patient_id=patient_id,
            details=details,
        )
