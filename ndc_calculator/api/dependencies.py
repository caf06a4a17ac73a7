"""FastAPI dependency injection factories.

The orchestrator is built once at startup (see ``main.lifespan``) and
stored on ``app.state``. Tests replace it via ``app.dependency_overrides``.
"""

from fastapi import Request

from ndc_calculator.errors import AppError, ErrorCode
from ndc_calculator.orchestrator import CalculationOrchestrator


async def get_orchestrator(request: Request) -> CalculationOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            "Calculation orchestrator is not initialized",
            status_code=503,
        )
    return orchestrator
