"""Core application configuration and utilities."""

from labflow.core.audit import AuditAction, AuditEvent, log_audit, log_auth_event, log_search
from labflow.core.config import settings
from labflow.core.database import Base, get_db
from labflow.core.errors import (
    DuplicateResourceError,
    InvalidParameterError,
    InvalidReferenceError,
    InvalidResourceError,
    LabFlowError,
    ResourceNotFoundError,
    StoreError,
    UnsupportedMediaTypeError,
    UnsupportedResourceTypeError,
    ValidationError,
)
from labflow.core.security import verify_api_key

__all__ = [
    # Config
    "settings",
    # Database
    "Base",
    "get_db",
    # Errors
    "LabFlowError",
    "ValidationError",
    "InvalidParameterError",
    "InvalidResourceError",
    "DuplicateResourceError",
    "InvalidReferenceError",
    "ResourceNotFoundError",
    "StoreError",
    "UnsupportedMediaTypeError",
    "UnsupportedResourceTypeError",
    # Security
    "verify_api_key",
    # Audit
    "AuditAction",
    "AuditEvent",
    "log_audit",
    "log_auth_event",
    "log_search",
]
