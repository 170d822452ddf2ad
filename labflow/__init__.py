"""LabFlow: FHIR R4 store for clinical laboratory resources."""

__version__ = "0.1.0"
