"""Tests for request-level input validation."""

import pytest

from ndc_calculator.engine.validation import (
    InputConstraints,
    is_valid_ndc_format,
    sanitize_input,
    validate_prescription_input,
)
from ndc_calculator.errors import ValidationError


def _validate(**overrides) -> None:
    kwargs = {
        "drug_name": "lisinopril",
        "ndc": None,
        "directions_text": "Take 1 tablet daily",
        "days_supply": 30,
    }
    kwargs.update(overrides)
    validate_prescription_input(**kwargs)


class TestNDCFormat:
    @pytest.mark.parametrize("ndc", ["12345-6789-01", "12345-678-90"])
    def test_valid(self, ndc: str) -> None:
        assert is_valid_ndc_format(ndc)

    @pytest.mark.parametrize("ndc", ["1234-5678-90", "12345678901", "12345-6789-1", "abcde-123-45"])
    def test_invalid(self, ndc: str) -> None:
        assert not is_valid_ndc_format(ndc)


class TestSanitize:
    def test_trims_and_strips_angle_brackets(self) -> None:
        assert sanitize_input("  <b>aspirin</b> ") == "baspirin/b"


class TestValidatePrescriptionInput:
    """Exactly one identifier, directions present, days supply in range."""

    def test_valid_by_name(self) -> None:
        _validate()

    def test_valid_by_ndc(self) -> None:
        _validate(drug_name=None, ndc="00071-0156-23")

    def test_neither_identifier(self) -> None:
        with pytest.raises(ValidationError, match="Either drug name or NDC"):
            _validate(drug_name="  ", ndc=None)

    def test_both_identifiers(self) -> None:
        with pytest.raises(ValidationError, match="not both"):
            _validate(ndc="00071-0156-23")

    def test_drug_name_too_long(self) -> None:
        with pytest.raises(ValidationError, match="200 characters"):
            _validate(drug_name="x" * 201)

    def test_bad_ndc_format(self) -> None:
        with pytest.raises(ValidationError, match="XXXXX-XXXX-XX"):
            _validate(drug_name=None, ndc="123")

    def test_missing_directions(self) -> None:
        with pytest.raises(ValidationError, match="directions are required"):
            _validate(directions_text="   ")

    def test_directions_too_long(self) -> None:
        with pytest.raises(ValidationError, match="500 characters"):
            _validate(directions_text="a" * 501)

    @pytest.mark.parametrize("days", [1.5, "30", True, None])
    def test_days_supply_must_be_integer(self, days: object) -> None:
        with pytest.raises(ValidationError, match="whole number"):
            _validate(days_supply=days)

    @pytest.mark.parametrize("days", [0, 366])
    def test_days_supply_range(self, days: int) -> None:
        with pytest.raises(ValidationError, match="between 1 and 365"):
            _validate(days_supply=days)

    def test_custom_constraints(self) -> None:
        limits = InputConstraints(drug_name_max_length=5, days_supply_max=90)
        with pytest.raises(ValidationError, match="5 characters"):
            _validate(drug_name="aspirin", constraints=limits)
        with pytest.raises(ValidationError, match="between 1 and 90"):
            _validate(drug_name="abc", days_supply=91, constraints=limits)
