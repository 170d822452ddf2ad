"""Typed errors raised by the resource engine.

Every error carries the FHIR issue code, a diagnostic string naming the
offending parameter, field or reference, and the HTTP status the boundary
layer should use. The API layer renders them as OperationOutcome resources.
"""

from fastapi import status

from labflow.schemas.base import IssueType


class LabFlowError(Exception):
    """Base class for all engine errors."""

    issue_code: IssueType = IssueType.EXCEPTION
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, diagnostics: str) -> None:
        super().__init__(diagnostics)
        self.diagnostics = diagnostics


class ValidationError(LabFlowError):
    """Malformed or out-of-range input. Always caller-fixable."""

    issue_code = IssueType.INVALID
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidParameterError(ValidationError):
    """A search or paging parameter failed validation or type coercion."""

    def __init__(self, parameter: str, diagnostics: str) -> None:
        super().__init__(diagnostics)
        self.parameter = parameter


class InvalidResourceError(ValidationError):
    """A submitted document is missing required content or is malformed."""


class UnsupportedMediaTypeError(ValidationError):
    """The request body was not sent as JSON."""

    issue_code = IssueType.STRUCTURE
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE


class DuplicateResourceError(ValidationError):
    """A create supplied an id that is already taken (deleted records included)."""

    issue_code = IssueType.DUPLICATE
    status_code = status.HTTP_409_CONFLICT


class InvalidReferenceError(LabFlowError):
    """A document references a missing, wrong-typed or deleted resource."""

    issue_code = IssueType.INVALID
    status_code = status.HTTP_400_BAD_REQUEST

    NOT_FOUND = "not-found"
    WRONG_TYPE = "wrong-type"

    def __init__(
        self,
        reference: str,
        expected_type: str,
        reason: str,
        field: str | None = None,
    ) -> None:
        if reason == self.WRONG_TYPE:
            diagnostics = (
                f"Reference '{reference}' in {field or 'document'} "
                f"must point to a {expected_type} resource"
            )
        else:
            diagnostics = f"Referenced {expected_type.lower()} '{reference}' does not exist"
        super().__init__(diagnostics)
        self.reference = reference
        self.expected_type = expected_type
        self.reason = reason
        self.field = field


class ResourceNotFoundError(LabFlowError):
    """The target id does not exist or is hidden by soft-delete policy."""

    issue_code = IssueType.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(f"{resource_type} with ID '{resource_id}' not found")
        self.resource_type = resource_type
        self.resource_id = resource_id


class StoreError(LabFlowError):
    """Underlying persistence failure. Diagnostics never leak storage detail."""

    issue_code = IssueType.EXCEPTION
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, diagnostics: str = "Internal storage error") -> None:
        super().__init__(diagnostics)


class UnsupportedResourceTypeError(LabFlowError):
    """The request names a resource type this server does not host."""

    issue_code = IssueType.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource_type: str) -> None:
        super().__init__(f"Resource type '{resource_type}' is not supported")
        self.resource_type = resource_type
