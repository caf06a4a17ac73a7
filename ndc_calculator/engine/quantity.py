"""Quantity resolution: dose x frequency x days supply.

Deterministic engine code, no I/O. Also provides the unit conversion table
and dispensable rounding rules used when presenting quantities.
"""

from __future__ import annotations

import logging
import math

from ndc_calculator.errors import ValidationError
from ndc_calculator.models.package import Requirement
from ndc_calculator.models.prescription import ParsedDirections

logger = logging.getLogger(__name__)

DAYS_SUPPLY_MIN = 1
DAYS_SUPPLY_MAX = 365

# from_unit -> to_unit -> factor
_CONVERSIONS: dict[str, dict[str, float]] = {
    "tablet": {"tablet": 1.0, "capsule": 1.0},
    "capsule": {"capsule": 1.0, "tablet": 1.0},
    "ml": {"ml": 1.0, "l": 0.001, "oz": 0.033814},
    "l": {"l": 1.0, "ml": 1000.0, "oz": 33.814},
}

_SOLID_FORMS = frozenset({"tablet", "capsule", "pill", "softgel"})
_LIQUID_FORMS = frozenset({"ml", "l", "oz"})


class QuantityResolver:
    """Derive the required (amount, unit) from parsed directions."""

    def __init__(
        self,
        *,
        days_supply_min: int = DAYS_SUPPLY_MIN,
        days_supply_max: int = DAYS_SUPPLY_MAX,
    ) -> None:
        self._days_min = days_supply_min
        self._days_max = days_supply_max

    def resolve(self, directions: ParsedDirections, days_supply: int) -> Requirement:
        """Compute ``dose_amount x frequency_per_day x days_supply``.

        Raises:
            ValidationError: days supply out of range, non-positive dose,
                or frequency below once a day.
        """
        if not self._days_min <= days_supply <= self._days_max:
            raise ValidationError(
                f"Days supply must be between {self._days_min} and {self._days_max}"
            )
        if directions.dose_amount <= 0:
            raise ValidationError("Dose amount must be a positive number")
        if directions.frequency_per_day < 1:
            raise ValidationError("Frequency must be at least once per day")

        amount = directions.dose_amount * directions.frequency_per_day * days_supply
        logger.debug(
            "Resolved quantity %s %s (dose=%s freq=%s days=%s)",
            amount, directions.unit,
            directions.dose_amount, directions.frequency_per_day, days_supply,
        )
        return Requirement(amount=amount, unit=directions.unit)


def convert_units(quantity: float, from_unit: str, to_unit: str) -> float:
    """Convert between supported units; unsupported pairs pass through unchanged."""
    src = from_unit.strip().lower()
    dst = to_unit.strip().lower()
    if src == dst:
        return quantity

    factor = _CONVERSIONS.get(src, {}).get(dst)
    if factor is None:
        logger.warning("Unit conversion not supported: %s -> %s", from_unit, to_unit)
        return quantity
    return quantity * factor


def round_to_dispensable(quantity: float, unit: str) -> float:
    """Round to an amount that can actually be dispensed.

    * solid forms -> next whole unit
    * liquids     -> 1 decimal place
    * otherwise   -> 2 decimal places
    """
    unit_lower = unit.strip().lower()
    if unit_lower in _SOLID_FORMS:
        return float(math.ceil(quantity))
    if unit_lower in _LIQUID_FORMS:
        return round(quantity, 1)
    return round(quantity, 2)
