"""Tests for QuantityResolver and unit helpers."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from ndc_calculator.engine.quantity import (
    QuantityResolver,
    convert_units,
    round_to_dispensable,
)
from ndc_calculator.errors import ValidationError
from ndc_calculator.models.prescription import ParsedDirections


def _directions(dose: float = 1, unit: str = "tablet", freq: float = 2) -> ParsedDirections:
    return ParsedDirections(doseAmount=dose, unit=unit, frequencyPerDay=freq)


class TestQuantityResolver:
    """dose x frequency x days supply."""

    def test_tablet_twice_daily_thirty_days(self) -> None:
        req = QuantityResolver().resolve(_directions(1, "tablet", 2), 30)
        assert req.amount == 60
        assert req.unit == "tablet"

    def test_fractional_dose(self) -> None:
        req = QuantityResolver().resolve(_directions(0.5, "tablet", 2), 30)
        assert req.amount == pytest.approx(30)

    def test_liquid_volume(self) -> None:
        req = QuantityResolver().resolve(_directions(5, "ml", 3), 10)
        assert req.amount == 150
        assert req.unit == "ml"

    def test_unit_is_normalized(self) -> None:
        req = QuantityResolver().resolve(_directions(1, "  Tablet ", 1), 7)
        assert req.unit == "tablet"

    @pytest.mark.parametrize("days", [0, -1, 366])
    def test_days_supply_out_of_range(self, days: int) -> None:
        with pytest.raises(ValidationError, match="Days supply"):
            QuantityResolver().resolve(_directions(), days)

    def test_boundary_days_accepted(self) -> None:
        resolver = QuantityResolver()
        assert resolver.resolve(_directions(1, "tablet", 1), 1).amount == 1
        assert resolver.resolve(_directions(1, "tablet", 1), 365).amount == 365

    def test_custom_range(self) -> None:
        resolver = QuantityResolver(days_supply_min=1, days_supply_max=90)
        with pytest.raises(ValidationError, match="between 1 and 90"):
            resolver.resolve(_directions(), 91)

    def test_non_positive_dose_rejected_at_boundary(self) -> None:
        with pytest.raises(PydanticValidationError):
            _directions(dose=0)

    def test_frequency_below_one_rejected_at_boundary(self) -> None:
        with pytest.raises(PydanticValidationError):
            _directions(freq=0.5)

    def test_resolver_rechecks_constructed_directions(self) -> None:
        bad = ParsedDirections.model_construct(
            dose_amount=0, unit="tablet", frequency_per_day=1,
            route="", special_instructions="",
        )
        with pytest.raises(ValidationError, match="Dose amount"):
            QuantityResolver().resolve(bad, 30)


class TestUnitHelpers:
    """convert_units and round_to_dispensable."""

    def test_same_unit_passthrough(self) -> None:
        assert convert_units(10, "ml", "ML") == 10

    def test_liters_to_ml(self) -> None:
        assert convert_units(1.5, "l", "ml") == pytest.approx(1500)

    def test_tablet_capsule_interchangeable(self) -> None:
        assert convert_units(30, "tablet", "capsule") == 30

    def test_unsupported_pair_unchanged(self) -> None:
        assert convert_units(3, "tablet", "ml") == 3

    def test_solid_rounds_up(self) -> None:
        assert round_to_dispensable(30.2, "tablet") == 31

    def test_liquid_one_decimal(self) -> None:
        assert round_to_dispensable(12.345, "ml") == 12.3

    def test_other_two_decimals(self) -> None:
        assert round_to_dispensable(1.23456, "g") == 1.23
