"""FastAPI calculation endpoint.

POST /api/calculate: prescription -> selected packages

Exactly one of ``drugName`` / ``ndc`` is required. Failures come back as
``{success: false, error, code}`` with the status of the typed error
(400 validation, 422 business logic, 502 upstream); anything untyped is a
500 with a generic message.
"""

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ndc_calculator.api.dependencies import get_orchestrator
from ndc_calculator.errors import AppError, status_code_for, to_error_response
from ndc_calculator.orchestrator import (
    CalculationOrchestrator,
    CalculationRequest,
    CalculationResult,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["calculate"])


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CalculateRequest(_CamelModel):
    drug_name: str | None = Field(default=None, max_length=1000)
    ndc: str | None = Field(default=None, max_length=50)
    directions_text: str | None = Field(default=None, max_length=5000)
    days_supply: int = Field(strict=True)


class SelectedPackageOut(_CamelModel):
    package_id: str
    package_count: int
    total_quantity: float
    overfill: float
    underfill: float


class WarningOut(_CamelModel):
    type: str
    message: str
    severity: str


class NormalizedDrugOut(_CamelModel):
    name: str
    strength: str
    dose_form: str


class ParsedDirectionsOut(_CamelModel):
    dose_amount: float
    unit: str
    frequency_per_day: float
    route: str
    special_instructions: str


class CalculationData(_CamelModel):
    concept_id: str | None
    normalized_drug: NormalizedDrugOut
    parsed_directions: ParsedDirectionsOut
    selected_packages: list[SelectedPackageOut]
    total_quantity: float
    unit: str
    warnings: list[WarningOut]
    reasoning: str | None = None
    selection_source: str
    package_source: str


class CalculateResponse(_CamelModel):
    success: bool
    data: CalculationData | None = None
    error: str | None = None
    code: str | None = None


def _to_response(result: CalculationResult) -> CalculateResponse:
    directions = result.directions
    outcome = result.outcome
    return CalculateResponse(
        success=True,
        data=CalculationData(
            concept_id=result.identity.concept_id,
            normalized_drug=NormalizedDrugOut(
                name=result.identity.name or "Unknown",
                strength=f"{directions.dose_amount:g}",
                dose_form=directions.unit,
            ),
            parsed_directions=ParsedDirectionsOut(
                dose_amount=directions.dose_amount,
                unit=directions.unit,
                frequency_per_day=directions.frequency_per_day,
                route=directions.route,
                special_instructions=directions.special_instructions,
            ),
            selected_packages=[
                SelectedPackageOut(
                    package_id=s.package_id,
                    package_count=s.count,
                    total_quantity=s.total_quantity,
                    overfill=s.overfill,
                    underfill=s.underfill,
                )
                for s in outcome.selections
            ],
            total_quantity=result.required.amount,
            unit=result.required.unit,
            warnings=[
                WarningOut(type=w.kind, message=w.message, severity=w.severity.value)
                for w in outcome.warnings
            ],
            reasoning=outcome.reasoning_text,
            selection_source=outcome.source.value,
            package_source=result.source_step.value,
        ),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/calculate", response_model=CalculateResponse)
async def calculate(
    body: CalculateRequest,
    orchestrator: CalculationOrchestrator = Depends(get_orchestrator),
) -> CalculateResponse | JSONResponse:
    """Compute the packages to dispense for a prescription."""
    logger.info(
        "calculation_request",
        drug_name=body.drug_name,
        ndc=body.ndc,
        days_supply=body.days_supply,
    )

    try:
        result = await orchestrator.calculate(CalculationRequest(
            drug_name=body.drug_name,
            ndc=body.ndc,
            directions_text=body.directions_text or "",
            days_supply=body.days_supply,
        ))
    except AppError as exc:
        logger.info("calculation_rejected", code=exc.code.value, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content=to_error_response(exc))
    except Exception as exc:
        logger.error("calculation_failed", error=repr(exc))
        return JSONResponse(status_code=status_code_for(exc), content=to_error_response(exc))

    return _to_response(result)
