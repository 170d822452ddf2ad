"""SQLAlchemy ORM models for the LabFlow FHIR store.

All resource models share ResourceRecordMixin which provides:
- id: FHIR logical id
- document: full resource JSON
- created_at / last_updated: timestamps
- version_id: mutation counter
- is_deleted: soft-delete flag

Models:
- PatientRecord
- ObservationRecord
- DiagnosticReportRecord
- ServiceRequestRecord
"""

from labflow.core.database import Base, ResourceRecordMixin
from labflow.models.diagnostic_report import DiagnosticReportRecord
from labflow.models.observation import ObservationRecord
from labflow.models.patient import PatientRecord
from labflow.models.service_request import ServiceRequestRecord

__all__ = [
    "Base",
    "ResourceRecordMixin",
    "PatientRecord",
    "ObservationRecord",
    "DiagnosticReportRecord",
    "ServiceRequestRecord",
]
