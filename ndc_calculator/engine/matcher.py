"""Deterministic package matching.

Matches a required quantity against discretely-sized candidate packages:

1. amount <= 0                  -> empty result, no warnings
2. active filter                -> "inactive-only" / "no-candidates" errors
3. unit filter                  -> "unit-mismatch" warning, falls back to all active
4. exact size match             -> one package, no warnings
5. smallest single package >= amount -> "overfill" warning if oversized
6. largest-first greedy combination + one residual package

The greedy pass minimizes package count, not waste. Globally minimal waste
is a bin-packing problem; see PackageOptimizer for the bounded search.

Deterministic -- no I/O, no LLM calls.
"""

from __future__ import annotations

import logging
import math

from ndc_calculator.models.common import WarningKind, WarningSeverity
from ndc_calculator.models.package import (
    MatchResult,
    MatchWarning,
    Package,
    Requirement,
    Selection,
)

logger = logging.getLogger(__name__)

# Float tolerance for quantity comparisons
QUANTITY_TOL = 1e-9


def _fmt(value: float) -> str:
    return f"{value:g}"


def select_working_set(
    candidates: list[Package],
    unit: str | None,
) -> tuple[list[Package], list[MatchWarning]]:
    """Apply the active and unit filters shared by matcher and optimizer.

    Returns the working set and any warnings raised while filtering. An
    empty working set means there is nothing to match.
    """
    warnings: list[MatchWarning] = []
    active = [p for p in candidates if p.is_active and p.size > 0]

    if not active:
        if candidates:
            warnings.append(MatchWarning.of(
                WarningKind.INACTIVE_ONLY,
                "Only inactive packages found. Contact prescriber for alternatives.",
                WarningSeverity.ERROR,
            ))
        else:
            warnings.append(MatchWarning.of(
                WarningKind.NO_CANDIDATES,
                "No matching packages found for this medication.",
                WarningSeverity.ERROR,
            ))
        return [], warnings

    if unit is None:
        return active, warnings

    wanted = unit.strip().lower()
    same_unit = [p for p in active if p.unit.strip().lower() == wanted]
    if not same_unit:
        warnings.append(MatchWarning.of(
            WarningKind.UNIT_MISMATCH,
            f"No packages found with unit: {unit}",
            WarningSeverity.WARNING,
        ))
        return active, warnings

    return same_unit, warnings


class PackageMatcher:
    """Select package(s) covering a required amount."""

    def match(self, required: Requirement, candidates: list[Package]) -> MatchResult:
        """Deterministically match ``required`` against ``candidates``.

        Identical inputs always produce identical output: sorts are stable
        so equal-sized packages keep their input order.
        """
        if required.amount <= 0:
            return MatchResult()

        logger.info(
            "Matching %s %s against %d candidate(s)",
            _fmt(required.amount), required.unit, len(candidates),
        )

        working, warnings = select_working_set(candidates, required.unit)
        if not working:
            return MatchResult(warnings=tuple(warnings))

        planned = self.plan(required.amount, working)
        return MatchResult(
            selections=planned.selections,
            warnings=tuple(warnings) + planned.warnings,
        )

    def plan(self, amount: float, packages: list[Package]) -> MatchResult:
        """Run the exact / closest-single / greedy cascade on a filtered set."""
        if amount <= 0 or not packages:
            return MatchResult()

        exact = next(
            (p for p in packages if math.isclose(p.size, amount, abs_tol=QUANTITY_TOL)),
            None,
        )
        if exact is not None:
            logger.info("Exact package match found: %s", exact.id)
            return MatchResult(selections=(
                Selection(
                    package_id=exact.id,
                    count=1,
                    total_quantity=exact.size,
                    overfill=0.0,
                    underfill=0.0,
                ),
            ))

        closest = self._closest_single(amount, packages)
        if closest is not None:
            return closest

        return self._greedy_combination(amount, packages)

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    @staticmethod
    def _closest_single(amount: float, packages: list[Package]) -> MatchResult | None:
        """Smallest single package that covers ``amount``."""
        ascending = sorted(packages, key=lambda p: p.size)
        best = next((p for p in ascending if p.size >= amount), None)
        if best is None:
            return None

        overfill = best.size - amount
        warnings: tuple[MatchWarning, ...] = ()
        if overfill > QUANTITY_TOL:
            warnings = (MatchWarning.of(
                WarningKind.OVERFILL,
                f"Overfill of {_fmt(overfill)} {best.unit}",
                WarningSeverity.WARNING,
            ),)
        return MatchResult(
            selections=(
                Selection(
                    package_id=best.id,
                    count=1,
                    total_quantity=best.size,
                    overfill=overfill,
                ),
            ),
            warnings=warnings,
        )

    @staticmethod
    def _greedy_combination(amount: float, packages: list[Package]) -> MatchResult:
        """Largest-first greedy fill, topped up by one residual package."""
        warnings = [MatchWarning.of(
            WarningKind.MULTIPLE_PACKAGES,
            "Multiple packages required to meet quantity",
            WarningSeverity.INFO,
        )]

        # package_id -> [count, total, overfill]; dict keeps insertion order
        chosen: dict[str, list[float]] = {}
        remaining = amount

        for pkg in sorted(packages, key=lambda p: p.size, reverse=True):
            if remaining <= QUANTITY_TOL:
                break
            count = math.floor(remaining / pkg.size + QUANTITY_TOL)
            if count > 0:
                entry = chosen.setdefault(pkg.id, [0, 0.0, 0.0])
                entry[0] += count
                entry[1] += pkg.size * count
                remaining -= pkg.size * count

        if remaining > QUANTITY_TOL:
            ascending = sorted(packages, key=lambda p: p.size)
            residual = next((p for p in ascending if p.size >= remaining), ascending[0])
            overfill = residual.size - remaining

            # Merge key is the package id: equal-sized packages with
            # distinct ids stay separate selections.
            entry = chosen.setdefault(residual.id, [0, 0.0, 0.0])
            entry[0] += 1
            entry[1] += residual.size
            entry[2] = overfill

            warnings.append(MatchWarning.of(
                WarningKind.OVERFILL,
                f"Overfill of {_fmt(overfill)} {residual.unit}",
                WarningSeverity.INFO,
            ))

        selections = tuple(
            Selection(
                package_id=pkg_id,
                count=int(count),
                total_quantity=total,
                overfill=overfill,
            )
            for pkg_id, (count, total, overfill) in chosen.items()
        )
        logger.info(
            "Greedy combination: %d selection(s), %d package(s)",
            len(selections), sum(s.count for s in selections),
        )
        return MatchResult(selections=selections, warnings=tuple(warnings))
