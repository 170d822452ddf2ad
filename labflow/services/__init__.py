"""Services for the LabFlow FHIR store.

Services implement the resource engine:
- ReferenceValidator: write-time reference integrity
- SearchTranslator: search parameters to SQL predicates
- PaginationPlanner: page bounds and navigation links
- Bundle assembly: searchset Bundles and OperationOutcomes
- LifecycleManager: versioning and soft delete
- ResourceService: the entry point tying them together
"""

from labflow.services.bundle import (
    build_operation_outcome,
    build_searchset,
    resource_with_meta,
)
from labflow.services.lifecycle import (
    LifecycleManager,
    LifecycleState,
    Transition,
    state_of,
)
from labflow.services.pagination import PageRequest, PaginationPlanner
from labflow.services.references import ReferenceValidator
from labflow.services.resource_service import RecordSummary, ResourceService
from labflow.services.search import SearchTranslator

__all__ = [
    # Bundle
    "build_operation_outcome",
    "build_searchset",
    "resource_with_meta",
    # Lifecycle
    "LifecycleManager",
    "LifecycleState",
    "Transition",
    "state_of",
    # Pagination
    "PageRequest",
    "PaginationPlanner",
    # References
    "ReferenceValidator",
    # Resource service
    "RecordSummary",
    "ResourceService",
    # Search
    "SearchTranslator",
]
