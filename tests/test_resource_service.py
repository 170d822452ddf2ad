"""Tests for ResourceService: the create/read/update/delete/search entry point."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from documents import diagnostic_report, observation, patient, service_request
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from labflow.core.errors import (
    DuplicateResourceError,
    InvalidReferenceError,
    InvalidResourceError,
    ResourceNotFoundError,
    StoreError,
    UnsupportedResourceTypeError,
)
from labflow.models import DiagnosticReportRecord, ObservationRecord, PatientRecord
from labflow.resources.fhir import ensure_utc
from labflow.services import ResourceService

BASE = "http://test"


def _count(db_session: Session, model) -> int:
    return db_session.scalar(select(func.count()).select_from(model))


class TestCreate:
    """Tests for storing new resources."""

    def test_create_patient_with_id(self, service: ResourceService) -> None:
        """A patient with a given id is stored at version 1."""
        summary = service.create("Patient", patient(resource_id="P1"))
        service.commit()

        assert summary.id == "P1"
        assert summary.version_id == 1
        assert summary.etag == 'W/"1"'
        assert summary.resource["meta"]["versionId"] == "1"
        assert summary.resource["meta"]["lastUpdated"].endswith("Z")

    def test_generated_id(self, service: ResourceService) -> None:
        """A document without an id gets a generated one."""
        summary = service.create("Patient", patient())
        assert len(summary.id) == 36
        assert summary.resource["id"] == summary.id

    def test_searchable_after_create(self, service: ResourceService) -> None:
        """A created patient is found by family and birthdate."""
        service.create("Patient", patient(resource_id="P1"))
        service.commit()

        bundle = service.search("Patient", [("family", "Smith"), ("birthdate", "1980-05-15")], BASE)

        assert bundle["total"] == 1
        entry = bundle["entry"][0]
        assert entry["fullUrl"] == f"{BASE}/Patient/P1"
        assert entry["resource"]["id"] == "P1"

    def test_round_trip_preserves_document(self, service: ResourceService) -> None:
        """Elements not used for search come back unchanged."""
        document = observation(
            resource_id="obs1",
            note=[{"text": "Hemolysed sample"}],
            interpretation=[{"coding": [{"code": "N"}]}],
        )
        service.create("Patient", patient(resource_id="P1"))
        service.create("Observation", document)
        service.commit()

        resource = service.search("Observation", [("_id", "obs1")], BASE)["entry"][0]["resource"]
        for key, value in document.items():
            assert resource[key] == value

    def test_missing_subject_stores_nothing(
        self, service: ResourceService, db_session: Session
    ) -> None:
        """A dangling reference rejects the write without persisting anything."""
        with pytest.raises(InvalidReferenceError) as exc_info:
            service.create("Observation", observation(subject="Patient/P404", resource_id="obs1"))

        assert exc_info.value.diagnostics == "Referenced patient 'Patient/P404' does not exist"
        service.commit()
        assert _count(db_session, ObservationRecord) == 0

    def test_duplicate_id(self, service: ResourceService) -> None:
        """Creating the same id twice is a conflict."""
        service.create("Patient", patient(resource_id="P1"))
        service.commit()

        with pytest.raises(DuplicateResourceError) as exc_info:
            service.create("Patient", patient(resource_id="P1"))
        assert exc_info.value.diagnostics == "Patient with ID 'P1' already exists"

    def test_deleted_id_not_reused(self, service: ResourceService) -> None:
        """Ids of deleted resources stay taken."""
        service.create("Patient", patient(resource_id="P1"))
        service.delete("Patient", "P1")
        service.commit()

        with pytest.raises(DuplicateResourceError):
            service.create("Patient", patient(resource_id="P1"))

    @pytest.mark.parametrize("bad_id", ["has space", "a/b", "x" * 65])
    def test_invalid_id(self, service: ResourceService, bad_id: str) -> None:
        """Ids must be 1-64 letters, digits, '-' or '.'."""
        with pytest.raises(InvalidResourceError, match="Invalid resource ID"):
            service.create("Patient", patient(resource_id=bad_id))

    def test_wrong_resource_type(self, service: ResourceService) -> None:
        """The body's resourceType must match the endpoint."""
        with pytest.raises(InvalidResourceError) as exc_info:
            service.create("Patient", observation())
        assert exc_info.value.diagnostics == (
            "Resource type 'Observation' does not match endpoint 'Patient'"
        )

    @pytest.mark.parametrize("document", [None, {}, [], "Patient"])
    def test_empty_body(self, service: ResourceService, document: object) -> None:
        """A missing or non-object body is rejected."""
        with pytest.raises(InvalidResourceError, match="Patient resource is required"):
            service.create("Patient", document)

    def test_unknown_type(self, service: ResourceService) -> None:
        """Types the server does not host are rejected."""
        with pytest.raises(UnsupportedResourceTypeError):
            service.create("Medication", {"resourceType": "Medication"})

    def test_report_with_results(self, service: ResourceService, db_session: Session) -> None:
        """A report referencing existing observations and an order is stored."""
        service.create("Patient", patient(resource_id="P1"))
        service.create("Observation", observation(resource_id="obs1"))
        service.create("ServiceRequest", service_request(resource_id="sr1"))
        service.create(
            "DiagnosticReport",
            diagnostic_report(
                resource_id="dr1",
                results=("Observation/obs1",),
                basedOn=[{"reference": "ServiceRequest/sr1"}],
            ),
        )
        service.commit()

        record = db_session.get(DiagnosticReportRecord, "dr1")
        assert record is not None
        assert record.result_ids == "obs1"

    def test_report_with_missing_order(self, service: ResourceService) -> None:
        """basedOn must point at a stored ServiceRequest."""
        service.create("Patient", patient(resource_id="P1"))
        with pytest.raises(InvalidReferenceError, match="servicerequest 'ServiceRequest/sr404'"):
            service.create(
                "DiagnosticReport",
                diagnostic_report(basedOn=[{"reference": "ServiceRequest/sr404"}]),
            )


class TestRead:
    """Tests for reading by id."""

    def test_get_by_id(self, service: ResourceService) -> None:
        """A live record is returned."""
        service.create("Patient", patient(resource_id="P1"))
        record = service.get_by_id("Patient", "P1")
        assert record.id == "P1"

    def test_unknown_id(self, service: ResourceService) -> None:
        """An unknown id is not found."""
        with pytest.raises(ResourceNotFoundError) as exc_info:
            service.get_by_id("Patient", "P404")
        assert exc_info.value.diagnostics == "Patient with ID 'P404' not found"

    def test_deleted_hidden_unless_requested(self, service: ResourceService) -> None:
        """Deleted records are only readable for audit."""
        service.create("Patient", patient(resource_id="P1"))
        service.delete("Patient", "P1")
        service.commit()

        with pytest.raises(ResourceNotFoundError):
            service.get_by_id("Patient", "P1")

        record = service.get_by_id("Patient", "P1", include_deleted=True)
        assert record.is_deleted is True
        assert record.version_id == 2


class TestUpdate:
    """Tests for replacing resources."""

    def test_version_and_timestamp(self, db_session: Session) -> None:
        """An update bumps the version by one and never lowers last_updated."""
        t0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
        instants = iter([t0, t0 + timedelta(seconds=30)])
        service = ResourceService(db_session, clock=lambda: next(instants))

        created = service.create("Patient", patient(resource_id="P1"))
        updated = service.update("Patient", "P1", patient(resource_id="P1", family="Jones"))
        service.commit()

        assert updated.version_id == created.version_id + 1
        assert updated.last_updated >= created.last_updated
        assert updated.resource["meta"]["versionId"] == "2"

    def test_search_reflects_update(self, service: ResourceService) -> None:
        """Extracted fields follow the new document."""
        service.create("Patient", patient(resource_id="P1"))
        service.update("Patient", "P1", patient(resource_id="P1", family="Jones"))
        service.commit()

        assert service.search("Patient", [("family", "Smith")], BASE)["total"] == 0
        assert service.search("Patient", [("family", "Jones")], BASE)["total"] == 1

    def test_body_without_id_takes_url_id(self, service: ResourceService) -> None:
        """A body without an id is stored under the URL id."""
        service.create("Patient", patient(resource_id="P1"))
        summary = service.update("Patient", "P1", patient(family="Jones"))
        assert summary.resource["id"] == "P1"

    def test_id_mismatch(self, service: ResourceService) -> None:
        """The body id must match the URL id."""
        service.create("Patient", patient(resource_id="P1"))
        with pytest.raises(InvalidResourceError) as exc_info:
            service.update("Patient", "P1", patient(resource_id="P2"))
        assert exc_info.value.diagnostics == "Resource ID 'P2' does not match URL ID 'P1'"

    def test_update_unknown(self, service: ResourceService) -> None:
        """Updating a missing id is not found."""
        with pytest.raises(ResourceNotFoundError):
            service.update("Patient", "P404", patient(resource_id="P404"))

    def test_update_deleted(self, service: ResourceService) -> None:
        """Deleted resources cannot be updated."""
        service.create("Patient", patient(resource_id="P1"))
        service.delete("Patient", "P1")
        with pytest.raises(ResourceNotFoundError):
            service.update("Patient", "P1", patient(resource_id="P1"))

    def test_invalid_update_leaves_record(
        self, service: ResourceService, db_session: Session
    ) -> None:
        """A rejected update does not touch the stored version."""
        service.create("Patient", patient(resource_id="P1"))
        service.create("Observation", observation(resource_id="obs1"))
        service.commit()

        with pytest.raises(InvalidReferenceError):
            service.update("Observation", "obs1", observation(subject="Patient/P404"))

        record = db_session.get(ObservationRecord, "obs1")
        assert record.version_id == 1
        assert record.subject_id == "P1"


class TestDelete:
    """Tests for soft delete."""

    def test_deleted_hidden_from_search(
        self, service: ResourceService, db_session: Session
    ) -> None:
        """Deleted resources are excluded from search but kept in the store."""
        service.create("Patient", patient(resource_id="P1"))
        summary = service.delete("Patient", "P1")
        service.commit()

        assert summary.version_id == 2
        assert summary.is_deleted is True
        assert service.search("Patient", [], BASE)["total"] == 0
        assert _count(db_session, PatientRecord) == 1

    def test_delete_twice(self, service: ResourceService) -> None:
        """A second delete is not found."""
        service.create("Patient", patient(resource_id="P1"))
        service.delete("Patient", "P1")
        with pytest.raises(ResourceNotFoundError):
            service.delete("Patient", "P1")

    def test_referencing_new_resource_to_deleted(self, service: ResourceService) -> None:
        """New observations cannot point at a deleted patient."""
        service.create("Patient", patient(resource_id="P1"))
        service.delete("Patient", "P1")
        with pytest.raises(InvalidReferenceError):
            service.create("Observation", observation(subject="Patient/P1"))


class TestStoreFailures:
    """Tests for persistence failure handling."""

    def test_store_error_hides_detail(self, service: ResourceService, db_session: Session) -> None:
        """Database errors surface as a generic StoreError."""
        failure = OperationalError("SELECT 1", {}, Exception("disk I/O error"))
        with patch.object(db_session, "scalar", side_effect=failure):
            with pytest.raises(StoreError) as exc_info:
                service.search("Patient", [], BASE)
        assert exc_info.value.diagnostics == "Internal storage error"
        assert "disk" not in exc_info.value.diagnostics
