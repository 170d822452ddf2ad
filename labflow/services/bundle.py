"""Result bundle assembler.

A request produces exactly one of two envelopes: a searchset Bundle for a
successful search, or an OperationOutcome describing a single failure.
"""

import copy
from collections.abc import Sequence
from typing import Any

from labflow.core.database import ResourceRecordMixin
from labflow.core.errors import LabFlowError
from labflow.resources.fhir import format_instant
from labflow.schemas.base import IssueSeverity
from labflow.schemas.bundle import (
    Bundle,
    BundleEntry,
    BundleLink,
    OperationOutcome,
    OperationOutcomeIssue,
)


def resource_with_meta(record: ResourceRecordMixin) -> dict[str, Any]:
    """Return a copy of the stored document with id and meta populated.

    The stored document is never modified.
    """
    resource = copy.deepcopy(record.document)
    resource["id"] = record.id

    meta = dict(resource.get("meta") or {})
    meta["versionId"] = str(record.version_id)
    meta["lastUpdated"] = format_instant(record.last_updated)
    resource["meta"] = meta
    return resource


def build_searchset(
    type_url: str,
    records: Sequence[ResourceRecordMixin],
    total: int,
    links: list[BundleLink],
) -> Bundle:
    """Wrap one page of matches in a searchset Bundle.

    Args:
        type_url: Absolute URL of the resource type endpoint, used for fullUrl
        records: The records on this page, in result order
        total: Number of matches across all pages
        links: Navigation links from the pagination planner
    """
    return Bundle(
        total=total,
        link=links,
        entry=[
            BundleEntry(fullUrl=f"{type_url}/{record.id}", resource=resource_with_meta(record))
            for record in records
        ],
    )


def build_operation_outcome(
    error: LabFlowError,
    severity: IssueSeverity = IssueSeverity.ERROR,
) -> OperationOutcome:
    """Describe a failed request as an OperationOutcome with one issue."""
    return OperationOutcome(
        issue=[
            OperationOutcomeIssue(
                severity=severity,
                code=error.issue_code,
                diagnostics=error.diagnostics,
            )
        ]
    )
