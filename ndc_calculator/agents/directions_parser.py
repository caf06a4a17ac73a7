"""Directions parser agent.

Turns free-text prescription directions into ParsedDirections via the LLM
client. The output schema is validated at this boundary, so a missing or
non-positive dose is rejected as ExternalAPIError before it can reach the
quantity arithmetic.

CRITICAL: the agent only extracts dose/frequency/route. Quantities are
computed by QuantityResolver.
"""

import logging

from ndc_calculator.agents.llm_client import LLMClient, LLMRequest
from ndc_calculator.agents.prompts import build_directions_prompt
from ndc_calculator.engine.validation import sanitize_input
from ndc_calculator.errors import ExternalAPIError, ValidationError
from ndc_calculator.models.prescription import ParsedDirections
from ndc_calculator.services.base import DirectionsParser

logger = logging.getLogger(__name__)


class LLMDirectionsParser(DirectionsParser):
    """Parse directions text with a low-temperature JSON completion."""

    def __init__(self, llm: LLMClient, *, max_length: int = 500) -> None:
        self._llm = llm
        self._max_length = max_length

    async def parse(self, text: str) -> ParsedDirections:
        cleaned = sanitize_input(text or "")
        if not cleaned:
            raise ValidationError("Prescription directions cannot be empty")
        if len(cleaned) > self._max_length:
            raise ValidationError(
                f"Directions exceed maximum length of {self._max_length} characters"
            )

        logger.info("Parsing directions: %s", cleaned)
        response = await self._llm.complete(LLMRequest(
            user_prompt=build_directions_prompt(cleaned),
            output_schema=ParsedDirections,
            temperature=0.1,
            max_tokens=256,
        ))
        parsed = response.parsed
        if not isinstance(parsed, ParsedDirections):
            raise ExternalAPIError("Directions parser returned an unexpected type")

        logger.info(
            "Parsed directions: %g %s x%g/day",
            parsed.dose_amount, parsed.unit, parsed.frequency_per_day,
        )
        return parsed
