"""Resource schema descriptors.

One ResourceSchema per hosted resource type drives the whole engine: the
model it is stored in, the pure extraction and validation functions for its
documents, the reference fields the validator must resolve and the search
parameters the translator understands.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from labflow.core.database import ResourceRecordMixin
from labflow.core.errors import InvalidResourceError
from labflow.schemas.base import ResourceType, SearchParamType


@dataclass(frozen=True)
class SearchParam:
    """A named search parameter mapped onto one record column.

    Attributes:
        name: Query parameter name (``patient``, ``date``, ``_id``, ...)
        type: FHIR search parameter type
        column: Record attribute the comparison runs against
        documentation: Human readable description (CapabilityStatement)
        normalize: Applied to token values before comparison; must be the
            normaliser used when the column was extracted
        allowed: Closed value set for token parameters; anything else is
            rejected as an invalid parameter
        target: Expected resource type for reference parameters
        list_column: The column holds a comma-joined id list
    """

    name: str
    type: SearchParamType
    column: str
    documentation: str = ""
    normalize: Callable[[str], str] | None = None
    allowed: tuple[str, ...] | None = None
    target: str | None = None
    list_column: bool = False


@dataclass(frozen=True)
class ReferenceSpec:
    """A reference element of a document that must resolve at write time.

    Attributes:
        path: Top-level element name (``subject``, ``result``, ...)
        target: Resource type the reference must point to
        many: The element is an array of references
        external: Targets of types this server does not host are accepted
            without lookup (e.g. Practitioner, Organization)
    """

    path: str
    target: str
    many: bool = False
    external: bool = False


# Parameters every resource type supports
COMMON_SEARCH_PARAMS: tuple[SearchParam, ...] = (
    SearchParam(
        name="_id",
        type=SearchParamType.TOKEN,
        column="id",
        documentation="Logical id of the resource",
    ),
    SearchParam(
        name="_lastUpdated",
        type=SearchParamType.DATE,
        column="last_updated",
        documentation="When the resource version last changed",
    ),
)


@dataclass(frozen=True)
class ResourceSchema:
    """Everything the engine needs to know about one resource type."""

    resource_type: ResourceType
    model: type[ResourceRecordMixin]
    extract: Callable[[dict], dict[str, Any]]
    validate: Callable[[dict], None]
    search_params: tuple[SearchParam, ...] = ()
    references: tuple[ReferenceSpec, ...] = ()
    description: str = ""
    _params_by_name: dict[str, SearchParam] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        columns = set(self.model.extracted_columns()) | {"id", "last_updated"}
        for param in COMMON_SEARCH_PARAMS + self.search_params:
            if param.column not in columns:
                raise ValueError(
                    f"Search parameter '{param.name}' targets unknown column "
                    f"'{param.column}' on {self.resource_type.value}"
                )
            self._params_by_name[param.name] = param

    @property
    def type_name(self) -> str:
        return self.resource_type.value

    @property
    def all_search_params(self) -> tuple[SearchParam, ...]:
        return COMMON_SEARCH_PARAMS + self.search_params

    def search_param(self, name: str) -> SearchParam | None:
        """Look up a search parameter by name, including the common ones."""
        return self._params_by_name.get(name)


def require(condition: Any, diagnostics: str) -> None:
    """Raise InvalidResourceError unless ``condition`` is truthy."""
    if not condition:
        raise InvalidResourceError(diagnostics)
