"""Audit logging for resource access and lifecycle events.

Every create, update, soft delete, read and search of a clinical resource
emits one audit event on the dedicated ``audit`` logger. Soft-deleted records
are retained for audit reads, so deletes are logged with the version they
produced.

This audit log should be routed to a secure, append-only sink in
production for compliance purposes.
"""

import logging
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

# Separate audit logger for security-critical events
audit_logger = logging.getLogger("audit")


class AuditAction(str, Enum):
    """Types of auditable actions."""

    # Resource access
    READ = "read"
    SEARCH = "search"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    # Authentication
    AUTH_SUCCESS = "auth_success"
    AUTH_FAILURE = "auth_failure"


class AuditEvent(BaseModel):
    """Audit event record."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    action: AuditAction = Field(..., description="Type of action performed")
    resource_type: str = Field(..., description="FHIR resource type")
    resource_id: str | None = Field(None, description="Logical id of the resource")
    version_id: int | None = Field(None, description="Version produced or read")
    patient_id: str | None = Field(None, description="Patient the data belongs to")
    details: dict | None = Field(None, description="Additional context")
    success: bool = Field(True, description="Whether action succeeded")


def log_audit(
    action: AuditAction,
    resource_type: str,
    resource_id: str | None = None,
    version_id: int | None = None,
    patient_id: str | None = None,
    details: dict | None = None,
    success: bool = True,
) -> AuditEvent:
    """Log an audit event.

    Args:
        action: Type of action being audited
        resource_type: FHIR resource type
        resource_id: Logical id of the resource
        version_id: Resource version produced or read
        patient_id: Patient the data belongs to
        details: Additional context
        success: Whether the action succeeded

    Returns:
        The created AuditEvent
    """
    event = AuditEvent(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        version_id=version_id,
        patient_id=patient_id,
        details=details,
        success=success,
    )

    log_level = logging.INFO if success else logging.WARNING
    audit_logger.log(
        log_level,
        f"AUDIT: {action.value} {resource_type}"
        f"{f'/{resource_id}' if resource_id else ''}"
        f"{f' v{version_id}' if version_id is not None else ''}"
        f"{f' patient={patient_id}' if patient_id else ''}"
        f" success={success}",
        extra={"audit_event": event.model_dump()},
    )

    return event


def log_search(resource_type: str, total: int, parameters: list[tuple[str, str]]) -> AuditEvent:
    """Log a search over one resource type.

    Only parameter names are recorded; filter values may contain PHI.
    """
    return log_audit(
        action=AuditAction.SEARCH,
        resource_type=resource_type,
        details={"parameters": sorted({name for name, _ in parameters}), "total": total},
    )


def log_auth_event(success: bool, reason: str | None = None) -> AuditEvent:
    """Log an API key authentication attempt."""
    action = AuditAction.AUTH_SUCCESS if success else AuditAction.AUTH_FAILURE
    return log_audit(
        action=action,
        resource_type="auth",
        details={"reason": reason} if reason else None,
        success=success,
    )
