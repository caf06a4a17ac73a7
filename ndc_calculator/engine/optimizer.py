"""Package optimizer: bounded search trading waste against package count.

Runs independently of the matcher, as a validation pass or when a caller
wants a different optimization goal. Search space:

* every single package that covers the amount
* every pair of package types, 0..10 units each

Candidates outside the overfill tolerance are dropped. The matcher's own
plan for the same working set is always in the pool, and nothing with
more waste than that plan survives, so ``waste_quantity`` never exceeds
the matcher's overfill for the same input.

Deterministic -- no I/O, no LLM calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ndc_calculator.engine.matcher import QUANTITY_TOL, PackageMatcher, select_working_set
from ndc_calculator.models.package import Package, Selection

logger = logging.getLogger(__name__)

MAX_UNITS_PER_TYPE = 10

# Package-count penalty weight used when both goals are active
_PACKAGE_WEIGHT = 10.0


@dataclass(frozen=True)
class OptimizationOptions:
    """Optimization goals and overfill tolerance."""

    minimize_waste: bool = True
    minimize_packages: bool = True
    allow_overfill: bool = True
    max_overfill_percent: float = 20.0


@dataclass(frozen=True)
class OptimizationResult:
    """Optimized package selection. ``score``: lower is better."""

    packages: tuple[Selection, ...] = ()
    total_quantity: float = 0.0
    waste_quantity: float = 0.0
    package_count: int = 0
    score: float = float("inf")
    candidates_considered: int = field(default=0, compare=False)


def _combination(
    amount: float,
    parts: list[tuple[Package, int]],
) -> OptimizationResult:
    selections = tuple(
        Selection(package_id=pkg.id, count=count, total_quantity=pkg.size * count)
        for pkg, count in parts
        if count > 0
    )
    total = sum(s.total_quantity for s in selections)
    return OptimizationResult(
        packages=selections,
        total_quantity=total,
        waste_quantity=total - amount,
        package_count=sum(s.count for s in selections),
    )


class PackageOptimizer:
    """Search small package combinations for the best waste/count trade-off."""

    def __init__(self, matcher: PackageMatcher | None = None) -> None:
        self._matcher = matcher or PackageMatcher()

    def optimize(
        self,
        amount: float,
        candidates: list[Package],
        options: OptimizationOptions | None = None,
        *,
        unit: str,
    ) -> OptimizationResult:
        """Return the best-scoring combination covering ``amount``.

        Args:
            amount: Required quantity.
            candidates: Candidate packages (inactive ones are ignored).
            options: Goals and tolerance; defaults minimize both.
            unit: Required unit. The matcher's active and unit filters run
                first, so both plan over the same working set.
        """
        opts = options or OptimizationOptions()
        if amount <= 0:
            return OptimizationResult()

        working, _ = select_working_set(candidates, unit)
        if not working:
            return OptimizationResult()

        baseline = self._baseline(amount, working)
        max_overfill = (
            amount * opts.max_overfill_percent / 100.0 if opts.allow_overfill else 0.0
        )

        pool = [baseline]
        for combo in self._generate(amount, working):
            if combo.waste_quantity > max_overfill + QUANTITY_TOL:
                continue
            if combo.waste_quantity > baseline.waste_quantity + QUANTITY_TOL:
                continue
            pool.append(combo)

        key = self._sort_key(opts)
        best = min(pool, key=key)
        result = OptimizationResult(
            packages=best.packages,
            total_quantity=best.total_quantity,
            waste_quantity=best.waste_quantity,
            package_count=best.package_count,
            score=self._score(best, opts),
            candidates_considered=len(pool),
        )
        logger.info(
            "Optimized %g: %d package(s), waste %g (%d candidate(s))",
            amount, result.package_count, result.waste_quantity, len(pool),
        )
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _baseline(self, amount: float, working: list[Package]) -> OptimizationResult:
        planned = self._matcher.plan(amount, working)
        total = planned.total_quantity
        return OptimizationResult(
            packages=planned.selections,
            total_quantity=total,
            waste_quantity=total - amount,
            package_count=planned.package_count,
        )

    @staticmethod
    def _generate(amount: float, packages: list[Package]) -> list[OptimizationResult]:
        results: list[OptimizationResult] = []

        for pkg in packages:
            if pkg.size >= amount:
                results.append(_combination(amount, [(pkg, 1)]))

        for i, first in enumerate(packages):
            for second in packages[i:]:
                found = PackageOptimizer._best_pair(amount, first, second)
                if found is not None:
                    results.append(found)

        return results

    @staticmethod
    def _best_pair(
        amount: float,
        first: Package,
        second: Package,
    ) -> OptimizationResult | None:
        """Lowest-waste covering mix of two package types (0..10 units each)."""
        best: OptimizationResult | None = None
        for n1 in range(MAX_UNITS_PER_TYPE + 1):
            for n2 in range(MAX_UNITS_PER_TYPE + 1):
                if n1 == 0 and n2 == 0:
                    continue
                if first.id == second.id and n2 > 0:
                    break
                total = n1 * first.size + n2 * second.size
                if total + QUANTITY_TOL < amount:
                    continue
                candidate = _combination(amount, [(first, n1), (second, n2)])
                if best is None or (
                    (candidate.waste_quantity, candidate.package_count)
                    < (best.waste_quantity, best.package_count)
                ):
                    best = candidate
        return best

    @staticmethod
    def _sort_key(opts: OptimizationOptions):
        # minimize_waste wins ties when both goals are set
        if opts.minimize_waste:
            return lambda r: (r.waste_quantity, r.package_count)
        if opts.minimize_packages:
            return lambda r: (r.package_count, r.waste_quantity)
        return lambda r: (r.waste_quantity,)

    @staticmethod
    def _score(result: OptimizationResult, opts: OptimizationOptions) -> float:
        waste = result.waste_quantity if opts.minimize_waste else 0.0
        penalty = result.package_count * _PACKAGE_WEIGHT if opts.minimize_packages else 0.0
        # Exact fills score 0 regardless of package count
        if waste <= QUANTITY_TOL:
            return max(waste, 0.0)
        return waste + penalty
