"""Source resolution: identifier -> drug identity -> candidate packages.

Identifier paths:
- by name: exact concept-id lookup, then approximate-term lookup. Both
  missing is terminal (ExternalAPIError).
- by code: direct code -> concept id. On a miss the code is validated
  against the package directory; unknown codes are terminal
  (BusinessLogicError), known ones contribute their generic name and
  leave the concept id absent (None).

Package retrieval is a strictly sequential fallback chain, stopping at the
first non-empty step:

1. search by concept id    (skipped if absent or unsupported)
2. search by generic name  (if known)
3. search by original name (if the request supplied one)

Each step runs only when every previous step came back empty. No step is
run speculatively in parallel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from ndc_calculator.engine.validation import sanitize_input
from ndc_calculator.errors import BusinessLogicError, ExternalAPIError, ValidationError
from ndc_calculator.models.package import Package
from ndc_calculator.models.prescription import DrugIdentity
from ndc_calculator.services.base import (
    ConceptDirectory,
    PackageDirectory,
    UnsupportedSearchError,
)

logger = logging.getLogger(__name__)


class SourceStep(StrEnum):
    """Fallback step that produced the candidates."""

    CONCEPT_ID = "concept-id"
    GENERIC_NAME = "generic-name"
    ORIGINAL_NAME = "original-name"


@dataclass(frozen=True)
class Resolution:
    """Resolved drug identity and the candidates found for it."""

    identity: DrugIdentity
    candidates: list[Package]
    source_step: SourceStep


class SourceResolver:
    """Resolve a drug name or package code to candidate packages."""

    def __init__(
        self,
        concepts: ConceptDirectory,
        packages: PackageDirectory,
        *,
        drug_name_max_length: int = 200,
    ) -> None:
        self._concepts = concepts
        self._packages = packages
        self._name_max = drug_name_max_length

    async def resolve(
        self,
        *,
        drug_name: str | None = None,
        ndc: str | None = None,
    ) -> Resolution:
        """Resolve exactly one of ``drug_name`` / ``ndc`` to candidates."""
        if drug_name:
            identity = await self.resolve_name(drug_name)
        elif ndc:
            identity = await self.resolve_code(ndc)
        else:
            raise ValidationError("Either drug name or NDC must be provided")

        candidates, step = await self.fetch_packages(identity, original_name=drug_name)
        return Resolution(identity=identity, candidates=candidates, source_step=step)

    # ------------------------------------------------------------------
    # Identifier resolution
    # ------------------------------------------------------------------

    async def resolve_name(self, drug_name: str) -> DrugIdentity:
        """Exact then approximate concept-id lookup."""
        name = sanitize_input(drug_name)[: self._name_max]
        if not name:
            raise ValidationError("Drug name cannot be empty")

        concept_id = await self._concepts.find_exact(name)
        if concept_id is None:
            logger.info("No exact concept for %r, trying approximate match", name)
            concept_id = await self._concepts.find_approximate(name)
        if concept_id is None:
            raise ExternalAPIError(
                f"Could not normalize drug name: {name}", retryable=False,
            )

        props = await self._concepts.get_properties(concept_id)
        logger.info("Drug %r normalized to concept %s", name, concept_id)
        return DrugIdentity(
            name=props.name or name,
            concept_id=concept_id,
            synonym=props.synonym,
            term_type=props.term_type,
        )

    async def resolve_code(self, ndc: str) -> DrugIdentity:
        """Direct code mapping, falling back to package-directory validation."""
        code = ndc.strip()
        concept_id = await self._concepts.find_by_code(code)
        if concept_id is not None:
            props = await self._concepts.get_properties(concept_id)
            logger.info("Code %s mapped to concept %s", code, concept_id)
            return DrugIdentity(
                name=props.name or "Unknown",
                concept_id=concept_id,
                synonym=props.synonym,
                term_type=props.term_type,
            )

        logger.info("No concept for code %s, validating against package directory", code)
        validated = await self._packages.validate_code(code)
        if validated is None:
            raise BusinessLogicError("Invalid or inactive NDC provided")

        name = validated.generic_name or validated.brand_name or ""
        logger.warning(
            "Code %s has no concept mapping; falling back to name search (%r)", code, name,
        )
        return DrugIdentity(name=name, concept_id=None)

    # ------------------------------------------------------------------
    # Package retrieval
    # ------------------------------------------------------------------

    async def fetch_packages(
        self,
        identity: DrugIdentity,
        *,
        original_name: str | None = None,
    ) -> tuple[list[Package], SourceStep]:
        """Run the fallback chain; raise when every step is exhausted.

        A concept-id search failure only moves the chain on. A failed name
        search with nothing found afterwards surfaces as that upstream
        error; ``BusinessLogicError`` is reserved for every step coming
        back empty.
        """
        last_error: ExternalAPIError | None = None

        if identity.concept_id is not None:
            try:
                found = await self._packages.search_by_concept_id(identity.concept_id)
            except (UnsupportedSearchError, ExternalAPIError) as exc:
                logger.info(
                    "Concept-id search unavailable for %s (%s), using fallback",
                    identity.concept_id, exc,
                )
                found = []
            if found:
                return found, SourceStep.CONCEPT_ID

        generic = identity.name.strip() if identity.name else ""
        if generic:
            logger.info("Trying generic name search: %r", generic)
            try:
                found = await self._packages.search_by_generic_name(generic)
            except ExternalAPIError as exc:
                logger.warning("Generic name search failed: %s", exc)
                last_error = exc
                found = []
            if found:
                return found, SourceStep.GENERIC_NAME

        original = sanitize_input(original_name) if original_name else ""
        if original:
            logger.info("Trying original drug name search: %r", original)
            try:
                found = await self._packages.search_by_drug_name(original)
            except ExternalAPIError as exc:
                logger.warning("Original name search failed: %s", exc)
                last_error = exc
                found = []
            if found:
                return found, SourceStep.ORIGINAL_NAME

        if last_error is not None:
            raise last_error
        raise BusinessLogicError("No NDCs found for this medication")
