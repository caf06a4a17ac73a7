"""Calculation orchestrator: end-to-end prescription pipeline.

1. Validate input
2. Parse directions (LLM agent)
3. Resolve drug identity and candidate packages (fallback chain)
4. Resolve required quantity
5. Deterministic package match
6. Advisory recommendation + arbitration (failures fully absorbed)

Collaborators are injected; ``build_orchestrator`` wires the production
implementations around a shared httpx client.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import httpx

from ndc_calculator.agents.directions_parser import LLMDirectionsParser
from ndc_calculator.agents.llm_client import LLMClient
from ndc_calculator.agents.recommendation import LLMRecommendationService
from ndc_calculator.config.settings import Settings
from ndc_calculator.engine.arbitration import ArbitrationOutcome, SelectionArbitrator
from ndc_calculator.engine.matcher import PackageMatcher
from ndc_calculator.engine.quantity import QuantityResolver
from ndc_calculator.engine.validation import InputConstraints, validate_prescription_input
from ndc_calculator.models.package import MatchResult, Package, Recommendation, Requirement
from ndc_calculator.models.prescription import DrugIdentity, ParsedDirections
from ndc_calculator.resolution.source_resolver import SourceResolver, SourceStep
from ndc_calculator.services.base import DirectionsParser, RecommendationService
from ndc_calculator.services.fda_ndc import FDANDCClient
from ndc_calculator.services.http import APIClient
from ndc_calculator.services.retry import ResilientInvoker, RetryOptions
from ndc_calculator.services.rxnorm import RxNormClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalculationRequest:
    """Inbound calculation request (exactly one of drug_name / ndc)."""

    directions_text: str
    days_supply: int
    drug_name: str | None = None
    ndc: str | None = None


@dataclass(frozen=True)
class CalculationResult:
    """Everything the API reports for a successful calculation."""

    identity: DrugIdentity
    directions: ParsedDirections
    required: Requirement
    candidates: list[Package]
    source_step: SourceStep
    deterministic: MatchResult
    outcome: ArbitrationOutcome
    duration_ms: float


class CalculationOrchestrator:
    """Compose parser, resolver, engine, and arbitrator for one request."""

    def __init__(
        self,
        *,
        parser: DirectionsParser,
        resolver: SourceResolver,
        recommender: RecommendationService | None = None,
        quantity: QuantityResolver | None = None,
        matcher: PackageMatcher | None = None,
        arbitrator: SelectionArbitrator | None = None,
        constraints: InputConstraints | None = None,
    ) -> None:
        self._parser = parser
        self._resolver = resolver
        self._recommender = recommender
        self._constraints = constraints or InputConstraints()
        self._quantity = quantity or QuantityResolver(
            days_supply_min=self._constraints.days_supply_min,
            days_supply_max=self._constraints.days_supply_max,
        )
        self._matcher = matcher or PackageMatcher()
        self._arbitrator = arbitrator or SelectionArbitrator()

    async def calculate(self, request: CalculationRequest) -> CalculationResult:
        """Run the pipeline. Raises typed AppErrors on failure."""
        started = time.perf_counter()
        validate_prescription_input(
            drug_name=request.drug_name,
            ndc=request.ndc,
            directions_text=request.directions_text,
            days_supply=request.days_supply,
            constraints=self._constraints,
        )

        directions = await self._parser.parse(request.directions_text)
        resolution = await self._resolver.resolve(
            drug_name=request.drug_name, ndc=request.ndc,
        )
        required = self._quantity.resolve(directions, request.days_supply)

        deterministic = self._matcher.match(required, resolution.candidates)
        recommendation = await self._recommend(required, resolution.candidates, deterministic)
        outcome = self._arbitrator.arbitrate(required.amount, deterministic, recommendation)

        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Calculation completed in %.0fms: concept=%s source=%s selection=%s",
            duration_ms, resolution.identity.concept_id,
            resolution.source_step, outcome.source,
        )
        return CalculationResult(
            identity=resolution.identity,
            directions=directions,
            required=required,
            candidates=resolution.candidates,
            source_step=resolution.source_step,
            deterministic=deterministic,
            outcome=outcome,
            duration_ms=duration_ms,
        )

    async def _recommend(
        self,
        required: Requirement,
        candidates: list[Package],
        deterministic: MatchResult,
    ) -> Recommendation | None:
        """Advisory recommendation; any failure yields None."""
        if self._recommender is None or not deterministic.selections:
            return None
        try:
            return await self._recommender.recommend(required, candidates)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Recommendation failed, using deterministic result: %s "
                "(%d deterministic selection(s))",
                exc, len(deterministic.selections),
            )
            return None


def build_orchestrator(settings: Settings, http_client: httpx.AsyncClient) -> CalculationOrchestrator:
    """Wire production collaborators around a shared httpx client."""
    api = APIClient(http_client)
    invoker = ResilientInvoker(RetryOptions(
        max_retries=settings.RETRY_MAX_RETRIES,
        base_delay=settings.RETRY_BASE_DELAY,
        max_delay=settings.RETRY_MAX_DELAY,
    ))
    constraints = InputConstraints(
        drug_name_max_length=settings.DRUG_NAME_MAX_LENGTH,
        directions_max_length=settings.DIRECTIONS_MAX_LENGTH,
        days_supply_min=settings.DAYS_SUPPLY_MIN,
        days_supply_max=settings.DAYS_SUPPLY_MAX,
    )

    llm = LLMClient(
        api,
        invoker,
        api_key=settings.OPENAI_API_KEY,
        model=settings.OPENAI_MODEL,
        base_url=settings.OPENAI_BASE_URL,
        timeout=settings.OPENAI_TIMEOUT,
    )
    resolver = SourceResolver(
        RxNormClient(
            api, invoker,
            base_url=settings.RXNORM_API_BASE_URL,
            timeout=settings.RXNORM_TIMEOUT,
        ),
        FDANDCClient(
            api, invoker,
            base_url=settings.FDA_NDC_API_BASE_URL,
            timeout=settings.FDA_NDC_TIMEOUT,
        ),
        drug_name_max_length=settings.DRUG_NAME_MAX_LENGTH,
    )
    recommender = (
        LLMRecommendationService(llm)
        if settings.RECOMMENDATION_ENABLED and llm.is_configured
        else None
    )
    return CalculationOrchestrator(
        parser=LLMDirectionsParser(llm, max_length=settings.DIRECTIONS_MAX_LENGTH),
        resolver=resolver,
        recommender=recommender,
        arbitrator=SelectionArbitrator(settings.RECOMMENDATION_OVERFILL_TOLERANCE),
        constraints=constraints,
    )
