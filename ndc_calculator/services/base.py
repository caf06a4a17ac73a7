"""Abstract service interfaces for external collaborators.

The orchestrator and SourceResolver depend only on these contracts.
Concrete httpx/LLM-backed implementations are wired at composition time,
and tests substitute in-memory doubles.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ndc_calculator.models.package import Package, Recommendation, Requirement
from ndc_calculator.models.prescription import ParsedDirections


class NoResultsError(Exception):
    """A lookup completed and explicitly found nothing. Never retried."""


class UnsupportedSearchError(Exception):
    """The directory does not support the requested search mode."""


@dataclass(frozen=True)
class ConceptProperties:
    """Canonical properties of a concept id."""

    name: str | None = None
    synonym: str | None = None
    term_type: str | None = None


@dataclass(frozen=True)
class CodeValidation:
    """A package code confirmed by the package directory."""

    package: Package
    generic_name: str | None = None
    brand_name: str | None = None


class ConceptDirectory(ABC):
    """Name/code -> concept id directory (RxNorm)."""

    @abstractmethod
    async def find_exact(self, name: str) -> str | None:
        """Concept id for an exact name match, or None."""
        ...

    @abstractmethod
    async def find_approximate(self, name: str) -> str | None:
        """Best approximate-term concept id, or None."""
        ...

    @abstractmethod
    async def get_properties(self, concept_id: str) -> ConceptProperties:
        """Canonical properties; empty properties when unavailable."""
        ...

    @abstractmethod
    async def find_by_code(self, code: str) -> str | None:
        """Concept id mapped from a package code, or None."""
        ...


class PackageDirectory(ABC):
    """Package directory (openFDA NDC)."""

    @abstractmethod
    async def search_by_concept_id(self, concept_id: str) -> list[Package]:
        """Packages for a concept id.

        Raises:
            UnsupportedSearchError: directory rejects this search mode.
        """
        ...

    @abstractmethod
    async def search_by_generic_name(self, name: str) -> list[Package]:
        ...

    @abstractmethod
    async def search_by_drug_name(self, name: str) -> list[Package]:
        ...

    @abstractmethod
    async def validate_code(self, code: str) -> CodeValidation | None:
        """Directory entry for a package code, or None if unknown."""
        ...


class DirectionsParser(ABC):
    """Free-text prescription directions -> ParsedDirections."""

    @abstractmethod
    async def parse(self, text: str) -> ParsedDirections:
        ...


class RecommendationService(ABC):
    """Advisory package selection from a non-deterministic producer."""

    @abstractmethod
    async def recommend(
        self,
        required: Requirement,
        candidates: list[Package],
    ) -> Recommendation:
        ...
