"""API routers for the LabFlow FHIR store."""

from labflow.api.metadata import router as metadata_router
from labflow.api.resources import build_resource_router
from labflow.api.resources import routers as resource_routers

__all__ = [
    "build_resource_router",
    "metadata_router",
    "resource_routers",
]
