"""Request-level input validation and sanitization.

Checks run before any upstream call so malformed input never costs a
network round trip. All failures raise ValidationError.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ndc_calculator.errors import ValidationError

# 11-digit 5-4-2 and 10-digit 5-3-2 formats
_NDC_PATTERNS = (
    re.compile(r"^\d{5}-\d{4}-\d{2}$"),
    re.compile(r"^\d{5}-\d{3}-\d{2}$"),
)

_INJECTION_CHARS_RE = re.compile(r"[<>]")


@dataclass(frozen=True)
class InputConstraints:
    """Length and range limits for calculation requests."""

    drug_name_max_length: int = 200
    directions_max_length: int = 500
    days_supply_min: int = 1
    days_supply_max: int = 365


def is_valid_ndc_format(ndc: str) -> bool:
    """True for ``XXXXX-XXXX-XX`` or ``XXXXX-XXX-XX``."""
    return any(p.match(ndc) for p in _NDC_PATTERNS)


def sanitize_input(value: str) -> str:
    """Trim whitespace and strip angle brackets."""
    return _INJECTION_CHARS_RE.sub("", value.strip())


def validate_prescription_input(
    *,
    drug_name: str | None,
    ndc: str | None,
    directions_text: str | None,
    days_supply: object,
    constraints: InputConstraints | None = None,
) -> None:
    """Validate a calculation request.

    Exactly one of ``drug_name`` / ``ndc`` must be provided.

    Raises:
        ValidationError: on the first failed check.
    """
    limits = constraints or InputConstraints()
    has_name = bool(drug_name and drug_name.strip())
    has_ndc = bool(ndc and ndc.strip())

    if not has_name and not has_ndc:
        raise ValidationError("Either drug name or NDC must be provided")
    if has_name and has_ndc:
        raise ValidationError("Provide either drug name or NDC, not both")

    if has_name and len(drug_name) > limits.drug_name_max_length:  # type: ignore[arg-type]
        raise ValidationError(
            f"Drug name must be {limits.drug_name_max_length} characters or less"
        )

    if has_ndc and not is_valid_ndc_format(ndc.strip()):  # type: ignore[union-attr]
        raise ValidationError("NDC must be in format XXXXX-XXXX-XX or XXXXX-XXX-XX")

    if not directions_text or not directions_text.strip():
        raise ValidationError("Prescription directions are required")
    if len(directions_text) > limits.directions_max_length:
        raise ValidationError(
            f"Directions must be {limits.directions_max_length} characters or less"
        )

    if isinstance(days_supply, bool) or not isinstance(days_supply, int):
        raise ValidationError("Days supply must be a whole number")
    if not limits.days_supply_min <= days_supply <= limits.days_supply_max:
        raise ValidationError(
            f"Days supply must be between {limits.days_supply_min} "
            f"and {limits.days_supply_max}"
        )
