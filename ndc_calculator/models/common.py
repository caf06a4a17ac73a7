"""Shared types, enums, and base models used across NDC Calculator domain models."""

from enum import StrEnum

from pydantic import BaseModel


# --- Shared enums ---


class PackageStatus(StrEnum):
    """Marketing status of a package in the directory."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class WarningSeverity(StrEnum):
    """Severity attached to a match warning."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class WarningKind(StrEnum):
    """Warning kinds produced by the deterministic matcher."""

    NO_CANDIDATES = "no-candidates"
    INACTIVE_ONLY = "inactive-only"
    UNIT_MISMATCH = "unit-mismatch"
    OVERFILL = "overfill"
    MULTIPLE_PACKAGES = "multiple-packages"


class PackageSource(StrEnum):
    """Directory search step that produced a candidate package."""

    CONCEPT_ID = "concept-id"
    GENERIC_NAME = "generic-name"
    DRUG_NAME = "drug-name"
    CODE = "code"


class SelectionSource(StrEnum):
    """Which producer's selection won arbitration."""

    DETERMINISTIC = "deterministic"
    RECOMMENDATION = "recommendation"


# --- Base model ---


class NDCBase(BaseModel):
    """Base model with common configuration for all NDC Calculator Pydantic models."""

    model_config = {
        "populate_by_name": True,
        "protected_namespaces": (),
    }
