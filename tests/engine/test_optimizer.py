"""Tests for PackageOptimizer.

The optimizer's waste must never exceed the matcher's overfill for the
same input.
"""

import pytest

from ndc_calculator.engine.matcher import PackageMatcher
from ndc_calculator.engine.optimizer import (
    OptimizationOptions,
    OptimizationResult,
    PackageOptimizer,
)
from ndc_calculator.models.common import PackageStatus
from ndc_calculator.models.package import Package, Requirement


def _pkg(pkg_id: str, size: float, status: PackageStatus = PackageStatus.ACTIVE) -> Package:
    return Package(id=pkg_id, size=size, unit="tablet", status=status)


class TestOptimizerBasics:
    """Empty and trivial inputs."""

    def test_zero_amount(self) -> None:
        result = PackageOptimizer().optimize(0, [_pkg("A", 30)], unit="tablet")
        assert result == OptimizationResult()

    def test_no_active_candidates(self) -> None:
        result = PackageOptimizer().optimize(
            30, [_pkg("A", 30, status=PackageStatus.INACTIVE)], unit="tablet",
        )
        assert result.packages == ()

    def test_exact_single(self) -> None:
        result = PackageOptimizer().optimize(30, [_pkg("A", 30), _pkg("B", 90)], unit="tablet")
        assert [(s.package_id, s.count) for s in result.packages] == [("A", 1)]
        assert result.waste_quantity == 0
        assert result.score == 0


class TestOptimizerSearch:
    """Bounded search beats the greedy plan where it can."""

    def test_finds_zero_waste_mix_greedy_misses(self) -> None:
        # greedy: 50 + residual 30 = 80 (waste 20); optimizer: 2 x 30 = 60
        candidates = [_pkg("L", 50), _pkg("S", 30)]
        result = PackageOptimizer().optimize(60, candidates, unit="tablet")
        assert [(s.package_id, s.count) for s in result.packages] == [("S", 2)]
        assert result.waste_quantity == 0

    def test_fewer_packages_at_equal_waste(self) -> None:
        # greedy: 60 + 30 + 30 = 120 (3 packages); 2 x 60 has the same waste
        candidates = [_pkg("S", 30), _pkg("L", 60)]
        result = PackageOptimizer().optimize(100, candidates, unit="tablet")
        assert result.waste_quantity == pytest.approx(20)
        assert result.package_count == 2
        assert result.total_quantity == 120

    def test_minimize_packages_only(self) -> None:
        candidates = [_pkg("S", 10), _pkg("L", 100)]
        opts = OptimizationOptions(minimize_waste=False, minimize_packages=True)
        result = PackageOptimizer().optimize(95, candidates, opts, unit="tablet")
        assert result.package_count == 1
        assert result.packages[0].package_id == "L"

    def test_minimize_waste_wins_ties(self) -> None:
        # 100 x1 wastes 5; 10 x 10 wastes 5 as well but uses 10 packages
        candidates = [_pkg("S", 10), _pkg("L", 100)]
        result = PackageOptimizer().optimize(95, candidates, OptimizationOptions(), unit="tablet")
        assert result.waste_quantity == pytest.approx(5)
        assert result.package_count == 1

    def test_unit_filter_applied_when_requested(self) -> None:
        candidates = [
            Package(id="ML", size=60, unit="ml"),
            Package(id="TAB", size=30, unit="tablet"),
        ]
        result = PackageOptimizer().optimize(60, candidates, unit="tablet")
        assert [(s.package_id, s.count) for s in result.packages] == [("TAB", 2)]

    def test_candidates_considered_reported(self) -> None:
        result = PackageOptimizer().optimize(60, [_pkg("S", 30), _pkg("L", 50)], unit="tablet")
        assert result.candidates_considered >= 1


class TestOptimizerMatcherConsistency:
    """waste_quantity <= matcher overfill for the same input."""

    @pytest.mark.parametrize("amount", [1, 13, 45, 60, 77, 100, 199, 360, 725])
    @pytest.mark.parametrize("sizes", [(30,), (30, 90), (7, 30, 90), (50, 30), (100, 15)])
    def test_waste_never_exceeds_matcher_overfill(
        self, amount: float, sizes: tuple[float, ...],
    ) -> None:
        candidates = [_pkg(f"P{size}", size) for size in sizes]
        matched = PackageMatcher().match(Requirement(amount=amount, unit="tablet"), candidates)
        optimized = PackageOptimizer().optimize(amount, candidates, unit="tablet")

        assert optimized.total_quantity >= amount
        assert optimized.waste_quantity <= matched.overfill_for(amount) + 1e-9

    @pytest.mark.parametrize(("amount", "unit"), [
        (1000, "tablet"),
        (1000, "ml"),
        (50, "tablet"),
        (50, "capsule"),
    ])
    def test_mixed_units_share_the_matcher_working_set(self, amount: float, unit: str) -> None:
        candidates = [
            Package(id="T7", size=7, unit="tablet"),
            Package(id="M13", size=13, unit="ml"),
        ]
        matched = PackageMatcher().match(Requirement(amount=amount, unit=unit), candidates)
        optimized = PackageOptimizer().optimize(amount, candidates, unit=unit)

        assert optimized.total_quantity >= amount
        assert optimized.waste_quantity <= matched.overfill_for(amount) + 1e-9

    def test_mixed_units_plan_only_the_requested_unit(self) -> None:
        candidates = [
            Package(id="T7", size=7, unit="tablet"),
            Package(id="M13", size=13, unit="ml"),
        ]
        result = PackageOptimizer().optimize(1000, candidates, unit="tablet")
        assert {s.package_id for s in result.packages} == {"T7"}
        assert result.waste_quantity == pytest.approx(1)
