"""Engine-level package, selection, and match-result types.

Plain frozen dataclasses (not Pydantic): these are produced and consumed
by the deterministic engine only. Boundary payloads are validated into
these types by the service clients.
"""

from __future__ import annotations

from dataclasses import dataclass

from ndc_calculator.models.common import (
    PackageSource,
    PackageStatus,
    WarningKind,
    WarningSeverity,
)


@dataclass(frozen=True)
class Requirement:
    """Required dispense quantity."""

    amount: float
    unit: str

    def unit_matches(self, unit: str) -> bool:
        """Case-insensitive unit comparison."""
        return self.unit.strip().lower() == unit.strip().lower()


@dataclass(frozen=True)
class Package:
    """A purchasable, fixed-size package fetched from a directory."""

    id: str
    size: float
    unit: str
    status: PackageStatus = PackageStatus.ACTIVE
    source: PackageSource = PackageSource.CONCEPT_ID
    manufacturer: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == PackageStatus.ACTIVE


@dataclass(frozen=True)
class Selection:
    """``count`` units of one package."""

    package_id: str
    count: int
    total_quantity: float
    overfill: float = 0.0
    underfill: float = 0.0

    def __post_init__(self) -> None:
        if self.count < 1:
            raise ValueError(f"Selection count must be >= 1, got {self.count}")


@dataclass(frozen=True)
class MatchWarning:
    """A warning attached to a match or recommendation."""

    kind: str
    message: str
    severity: WarningSeverity = WarningSeverity.WARNING

    @classmethod
    def of(
        cls,
        kind: WarningKind,
        message: str,
        severity: WarningSeverity,
    ) -> MatchWarning:
        return cls(kind=kind.value, message=message, severity=severity)


@dataclass(frozen=True)
class MatchResult:
    """Ordered selections plus warnings. Immutable once produced."""

    selections: tuple[Selection, ...] = ()
    warnings: tuple[MatchWarning, ...] = ()

    @property
    def total_quantity(self) -> float:
        return sum(s.total_quantity for s in self.selections)

    @property
    def package_count(self) -> int:
        return sum(s.count for s in self.selections)

    def overfill_for(self, amount: float) -> float:
        """Surplus of the selected total over ``amount`` (may be negative)."""
        return self.total_quantity - amount

    def has_warning(self, kind: WarningKind | str) -> bool:
        return any(w.kind == str(kind) for w in self.warnings)


@dataclass(frozen=True)
class Recommendation:
    """Advisory selection from the external recommendation service."""

    selections: tuple[Selection, ...] = ()
    reasoning_text: str = ""
    warnings: tuple[MatchWarning, ...] = ()

    @property
    def total_quantity(self) -> float:
        return sum(s.total_quantity for s in self.selections)
