"""Pydantic schemas for FHIR Bundle and OperationOutcome envelopes."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from labflow.schemas.base import IssueSeverity, IssueType, LinkRelation


class BundleLink(BaseModel):
    """Navigation link on a searchset Bundle."""

    relation: LinkRelation
    url: str


class BundleEntrySearch(BaseModel):
    """Search metadata for a Bundle entry."""

    mode: Literal["match", "include", "outcome"] = "match"


class BundleEntry(BaseModel):
    """Single resource in a searchset Bundle."""

    fullUrl: str = Field(..., description="Absolute URL of the resource")
    resource: dict[str, Any] = Field(..., description="Resource with meta populated")
    search: BundleEntrySearch = Field(default_factory=BundleEntrySearch)


class Bundle(BaseModel):
    """FHIR searchset Bundle returned by every search."""

    resourceType: Literal["Bundle"] = "Bundle"
    type: Literal["searchset"] = "searchset"
    total: int = Field(..., ge=0, description="Total matches across all pages")
    link: list[BundleLink] = Field(default_factory=list)
    entry: list[BundleEntry] = Field(default_factory=list)

    def link_for(self, relation: LinkRelation) -> str | None:
        """Return the URL of the link with the given relation, if present."""
        for link in self.link:
            if link.relation == relation:
                return link.url
        return None


class OperationOutcomeIssue(BaseModel):
    """One issue inside an OperationOutcome."""

    severity: IssueSeverity = IssueSeverity.ERROR
    code: IssueType
    diagnostics: str


class OperationOutcome(BaseModel):
    """FHIR OperationOutcome returned for every failed request."""

    resourceType: Literal["OperationOutcome"] = "OperationOutcome"
    issue: list[OperationOutcomeIssue] = Field(..., min_length=1)
