"""Pydantic schemas for the LabFlow FHIR API."""

from labflow.schemas.base import (
    IssueSeverity,
    IssueType,
    LinkRelation,
    ResourceType,
    SearchParamType,
)
from labflow.schemas.bundle import (
    Bundle,
    BundleEntry,
    BundleEntrySearch,
    BundleLink,
    OperationOutcome,
    OperationOutcomeIssue,
)

__all__ = [
    # Enums
    "IssueSeverity",
    "IssueType",
    "LinkRelation",
    "ResourceType",
    "SearchParamType",
    # Envelopes
    "Bundle",
    "BundleEntry",
    "BundleEntrySearch",
    "BundleLink",
    "OperationOutcome",
    "OperationOutcomeIssue",
]
