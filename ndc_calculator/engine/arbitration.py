"""Selection arbitration between the deterministic match and an advisory recommendation.

The recommendation comes from a non-deterministic producer. It is adopted
only when it does not waste meaningfully more than the deterministic
result: ``alt_overfill <= det_overfill * tolerance`` (tolerance 1.2), or
when the deterministic result is empty. A recommendation that fails to
cover the required amount is never adopted.

Warnings from both sources are merged and the reasoning text is carried
through whichever selection wins. Deterministic -- no I/O.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ndc_calculator.engine.matcher import QUANTITY_TOL
from ndc_calculator.models.common import SelectionSource
from ndc_calculator.models.package import MatchResult, MatchWarning, Recommendation, Selection

logger = logging.getLogger(__name__)

DEFAULT_OVERFILL_TOLERANCE = 1.2


@dataclass(frozen=True)
class ArbitrationOutcome:
    """Final selection after arbitration, with the reason it was chosen."""

    selections: tuple[Selection, ...]
    warnings: tuple[MatchWarning, ...]
    source: SelectionSource
    reason: str
    reasoning_text: str | None = None
    deterministic_overfill: float | None = None
    recommendation_overfill: float | None = None

    @property
    def total_quantity(self) -> float:
        return sum(s.total_quantity for s in self.selections)


class SelectionArbitrator:
    """Reconcile a deterministic MatchResult with an optional recommendation."""

    def __init__(self, overfill_tolerance: float = DEFAULT_OVERFILL_TOLERANCE) -> None:
        self._tolerance = overfill_tolerance

    def arbitrate(
        self,
        amount: float,
        deterministic: MatchResult,
        recommendation: Recommendation | None,
    ) -> ArbitrationOutcome:
        """Pick the final selection.

        ``recommendation=None`` means the recommendation was unavailable or
        its call failed; the deterministic result is kept unconditionally.
        """
        if recommendation is None:
            return ArbitrationOutcome(
                selections=deterministic.selections,
                warnings=deterministic.warnings,
                source=SelectionSource.DETERMINISTIC,
                reason="recommendation unavailable",
            )

        warnings = deterministic.warnings + recommendation.warnings
        reasoning = recommendation.reasoning_text or None
        det_overfill = deterministic.overfill_for(amount)
        alt_overfill = recommendation.total_quantity - amount

        def keep(reason: str) -> ArbitrationOutcome:
            logger.info(
                "Keeping deterministic selection (%s): recommendation overfill=%g, "
                "deterministic overfill=%g",
                reason, alt_overfill, det_overfill,
            )
            return ArbitrationOutcome(
                selections=deterministic.selections,
                warnings=warnings,
                source=SelectionSource.DETERMINISTIC,
                reason=reason,
                reasoning_text=reasoning,
                deterministic_overfill=det_overfill,
                recommendation_overfill=alt_overfill,
            )

        if not recommendation.selections:
            return keep("recommendation selected nothing")

        if alt_overfill < -QUANTITY_TOL:
            return keep("recommendation does not cover the required amount")

        if deterministic.selections and not self.accepts(det_overfill, alt_overfill):
            return keep("recommendation overfill exceeds tolerance")

        logger.info(
            "Using recommended selection: recommendation overfill=%g, "
            "deterministic overfill=%g",
            alt_overfill, det_overfill,
        )
        return ArbitrationOutcome(
            selections=recommendation.selections,
            warnings=warnings,
            source=SelectionSource.RECOMMENDATION,
            reason=(
                "no deterministic selection"
                if not deterministic.selections
                else "recommendation overfill within tolerance"
            ),
            reasoning_text=reasoning,
            deterministic_overfill=det_overfill,
            recommendation_overfill=alt_overfill,
        )

    def accepts(self, det_overfill: float, alt_overfill: float) -> bool:
        """Tolerance rule: ``alt <= det x tolerance`` (boundary inclusive)."""
        return alt_overfill <= det_overfill * self._tolerance + QUANTITY_TOL
