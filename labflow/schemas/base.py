"""Base schemas and enums for the LabFlow FHIR API."""

from enum import Enum


class ResourceType(str, Enum):
    """FHIR resource types stored by this server."""

    PATIENT = "Patient"
    OBSERVATION = "Observation"
    DIAGNOSTIC_REPORT = "DiagnosticReport"
    SERVICE_REQUEST = "ServiceRequest"


class IssueSeverity(str, Enum):
    """OperationOutcome issue severity."""

    FATAL = "fatal"
    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"


class IssueType(str, Enum):
    """OperationOutcome issue codes used by this server."""

    INVALID = "invalid"
    STRUCTURE = "structure"
    REQUIRED = "required"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not-found"
    SECURITY = "security"
    EXCEPTION = "exception"


class SearchParamType(str, Enum):
    """FHIR search parameter types supported by the search translator."""

    TOKEN = "token"
    STRING = "string"
    DATE = "date"
    NUMBER = "number"
    REFERENCE = "reference"


class LinkRelation(str, Enum):
    """Navigation link relations on a searchset Bundle."""

    SELF = "self"
    FIRST = "first"
    PREVIOUS = "previous"
    NEXT = "next"
