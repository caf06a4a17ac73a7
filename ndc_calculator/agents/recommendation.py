"""Package recommendation agent (advisory only).

Asks the LLM for a package selection and normalizes it against the
candidate pool: every recommended package id must be a known candidate,
counts must be positive, and totals are recomputed from the candidate's
size rather than trusted. Non-conforming output raises ExternalAPIError;
the orchestrator absorbs any failure and keeps the deterministic match.
"""

import logging

from pydantic import BaseModel, Field

from ndc_calculator.agents.llm_client import LLMClient, LLMRequest
from ndc_calculator.agents.prompts import build_recommendation_prompt
from ndc_calculator.errors import ExternalAPIError
from ndc_calculator.models.common import WarningSeverity
from ndc_calculator.models.package import (
    MatchWarning,
    Package,
    Recommendation,
    Requirement,
    Selection,
)
from ndc_calculator.services.base import RecommendationService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Output schemas
# ---------------------------------------------------------------------------


class RecommendedPackage(BaseModel):
    package_id: str = Field(alias="packageId", min_length=1)
    package_count: int = Field(alias="packageCount", ge=1)
    total_quantity: float | None = Field(default=None, alias="totalQuantity")


class RecommendedWarning(BaseModel):
    type: str = "recommendation"
    message: str
    severity: WarningSeverity = WarningSeverity.INFO


class RecommendationPayload(BaseModel):
    selected_packages: list[RecommendedPackage] = Field(
        default_factory=list, alias="selectedPackages",
    )
    reasoning: str = ""
    warnings: list[RecommendedWarning] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class LLMRecommendationService(RecommendationService):
    """Advisory package selection backed by the LLM client."""

    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    async def recommend(
        self,
        required: Requirement,
        candidates: list[Package],
    ) -> Recommendation:
        if not candidates:
            raise ExternalAPIError("No candidates to recommend from", retryable=False)

        listing = [
            {"packageId": p.id, "packageSize": p.size, "status": p.status.value}
            for p in candidates
        ]
        response = await self._llm.complete(LLMRequest(
            user_prompt=build_recommendation_prompt(required.amount, required.unit, listing),
            output_schema=RecommendationPayload,
            temperature=0.3,
        ))
        payload = response.parsed
        if not isinstance(payload, RecommendationPayload):
            raise ExternalAPIError("Recommendation returned an unexpected type")

        return normalize_recommendation(payload, candidates)


def normalize_recommendation(
    payload: RecommendationPayload,
    candidates: list[Package],
) -> Recommendation:
    """Validate a recommendation payload against the candidate pool."""
    by_id = {p.id: p for p in candidates}
    selections: list[Selection] = []

    for item in payload.selected_packages:
        pkg = by_id.get(item.package_id)
        if pkg is None:
            raise ExternalAPIError(
                f"Recommendation referenced unknown package {item.package_id}",
                retryable=False,
            )
        if not pkg.is_active:
            raise ExternalAPIError(
                f"Recommendation selected inactive package {pkg.id}",
                retryable=False,
            )
        total = pkg.size * item.package_count
        if item.total_quantity is not None and abs(item.total_quantity - total) > 1e-9:
            logger.warning(
                "Recommended total for %s corrected: %g -> %g",
                pkg.id, item.total_quantity, total,
            )
        selections.append(Selection(
            package_id=pkg.id,
            count=item.package_count,
            total_quantity=total,
        ))

    warnings = tuple(
        MatchWarning(kind=w.type, message=w.message, severity=w.severity)
        for w in payload.warnings
    )
    return Recommendation(
        selections=tuple(selections),
        reasoning_text=payload.reasoning,
        warnings=warnings,
    )
