"""Prescription-side models: parsed directions and resolved drug identity."""

from dataclasses import dataclass

from pydantic import Field, field_validator

from ndc_calculator.models.common import NDCBase


class ParsedDirections(NDCBase):
    """Structured dose/frequency/route extracted from free-text directions.

    Validated at the parser boundary so NaN or missing numbers never reach
    the quantity arithmetic.
    """

    dose_amount: float = Field(gt=0, alias="doseAmount", allow_inf_nan=False)
    unit: str = Field(min_length=1)
    frequency_per_day: float = Field(ge=1, alias="frequencyPerDay", allow_inf_nan=False)
    route: str = ""
    special_instructions: str = Field(default="", alias="specialInstructions")

    @field_validator("unit")
    @classmethod
    def _normalize_unit(cls, v: str) -> str:
        return v.strip().lower()


@dataclass(frozen=True)
class DrugIdentity:
    """A drug resolved against the concept-id directory.

    ``concept_id`` is ``None`` when the identifier could only be validated
    against the package directory (no concept mapping exists).
    """

    name: str
    concept_id: str | None = None
    synonym: str | None = None
    term_type: str | None = None

    def __post_init__(self) -> None:
        if self.concept_id is not None and not self.concept_id.strip():
            object.__setattr__(self, "concept_id", None)
