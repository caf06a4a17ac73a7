"""Tests for POST /api/calculate.

The orchestrator dependency is overridden with a stub returning a fixed
result or raising a given error.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from ndc_calculator.api.dependencies import get_orchestrator
from ndc_calculator.api.main import app
from ndc_calculator.engine.arbitration import ArbitrationOutcome
from ndc_calculator.errors import BusinessLogicError, ExternalAPIError, ValidationError
from ndc_calculator.models.common import SelectionSource
from ndc_calculator.models.package import (
    MatchResult,
    MatchWarning,
    Package,
    Requirement,
    Selection,
)
from ndc_calculator.models.prescription import DrugIdentity, ParsedDirections
from ndc_calculator.orchestrator import CalculationRequest, CalculationResult
from ndc_calculator.resolution.source_resolver import SourceStep


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _result() -> CalculationResult:
    selection = Selection(package_id="0071-0156-40", count=1, total_quantity=90, overfill=6)
    warning = MatchWarning("overfill", "Overfill of 6 tablet")
    return CalculationResult(
        identity=DrugIdentity(name="lisinopril", concept_id="29046"),
        directions=ParsedDirections(
            doseAmount=1, unit="tablet", frequencyPerDay=3, route="oral",
        ),
        required=Requirement(amount=84, unit="tablet"),
        candidates=[Package(id="0071-0156-40", size=90, unit="tablet")],
        source_step=SourceStep.CONCEPT_ID,
        deterministic=MatchResult(selections=(selection,), warnings=(warning,)),
        outcome=ArbitrationOutcome(
            selections=(selection,),
            warnings=(warning,),
            source=SelectionSource.DETERMINISTIC,
            reason="recommendation unavailable",
        ),
        duration_ms=12.5,
    )


class StubOrchestrator:
    def __init__(self, outcome: CalculationResult | Exception) -> None:
        self.outcome = outcome
        self.requests: list[CalculationRequest] = []

    async def calculate(self, request: CalculationRequest) -> CalculationResult:
        self.requests.append(request)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.fixture
def stub() -> StubOrchestrator:
    return StubOrchestrator(_result())


@pytest.fixture
async def client(stub: StubOrchestrator) -> AsyncClient:
    app.dependency_overrides[get_orchestrator] = lambda: stub
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()


BODY = {"drugName": "lisinopril", "directionsText": "Take 1 tablet three times daily", "daysSupply": 28}


# ===================================================================
# Success
# ===================================================================


class TestCalculateSuccess:
    """Successful calculations return camelCase data."""

    @pytest.mark.anyio
    async def test_returns_200(self, client: AsyncClient) -> None:
        response = await client.post("/api/calculate", json=BODY)
        assert response.status_code == 200
        assert response.json()["success"] is True

    @pytest.mark.anyio
    async def test_response_body(self, client: AsyncClient) -> None:
        data = (await client.post("/api/calculate", json=BODY)).json()["data"]
        assert data["conceptId"] == "29046"
        assert data["normalizedDrug"]["name"] == "lisinopril"
        assert data["parsedDirections"]["frequencyPerDay"] == 3
        assert data["totalQuantity"] == 84
        assert data["selectedPackages"] == [{
            "packageId": "0071-0156-40",
            "packageCount": 1,
            "totalQuantity": 90,
            "overfill": 6,
            "underfill": 0,
        }]
        assert data["warnings"] == [
            {"type": "overfill", "message": "Overfill of 6 tablet", "severity": "warning"},
        ]
        assert data["selectionSource"] == "deterministic"
        assert data["packageSource"] == "concept-id"

    @pytest.mark.anyio
    async def test_request_mapped(self, client: AsyncClient, stub: StubOrchestrator) -> None:
        await client.post("/api/calculate", json={**BODY, "drugName": None, "ndc": "00071-0156-40"})
        request = stub.requests[0]
        assert request.ndc == "00071-0156-40"
        assert request.drug_name is None
        assert request.days_supply == 28


# ===================================================================
# Errors
# ===================================================================


class TestCalculateErrors:
    """Typed errors map to status codes; untyped ones are hidden."""

    @pytest.mark.anyio
    @pytest.mark.parametrize(("error", "status", "code"), [
        (ValidationError("Days supply must be between 1 and 365"), 400, "VALIDATION_ERROR"),
        (BusinessLogicError("No NDCs found for this medication"), 422, "BUSINESS_LOGIC_ERROR"),
        (ExternalAPIError("Could not normalize drug name: x"), 502, "EXTERNAL_API_ERROR"),
    ])
    async def test_typed_errors(
        self,
        client: AsyncClient,
        stub: StubOrchestrator,
        error: Exception,
        status: int,
        code: str,
    ) -> None:
        stub.outcome = error
        response = await client.post("/api/calculate", json=BODY)
        assert response.status_code == status
        body = response.json()
        assert body["success"] is False
        assert body["code"] == code
        assert body["error"] == str(error)

    @pytest.mark.anyio
    async def test_unexpected_error_is_generic_500(
        self, client: AsyncClient, stub: StubOrchestrator,
    ) -> None:
        stub.outcome = RuntimeError("database password leaked")
        response = await client.post("/api/calculate", json=BODY)
        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "INTERNAL_ERROR"
        assert "password" not in body["error"]

    @pytest.mark.anyio
    async def test_malformed_body_is_validation_error(self, client: AsyncClient) -> None:
        response = await client.post("/api/calculate", json={"drugName": "x", "daysSupply": "soon"})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "VALIDATION_ERROR"
        assert "daysSupply" in body["error"]

    @pytest.mark.anyio
    async def test_missing_days_supply(self, client: AsyncClient) -> None:
        response = await client.post("/api/calculate", json={"drugName": "x", "directionsText": "y"})
        assert response.status_code == 400

    @pytest.mark.anyio
    @pytest.mark.parametrize("days_supply", ["30", 30.5, True])
    async def test_days_supply_must_be_json_integer(
        self, client: AsyncClient, stub: StubOrchestrator, days_supply: object,
    ) -> None:
        response = await client.post("/api/calculate", json={**BODY, "daysSupply": days_supply})
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["error"].startswith("daysSupply")
        assert stub.requests == []
