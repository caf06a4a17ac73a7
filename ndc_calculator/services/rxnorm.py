"""RxNorm concept-id directory client.

Endpoints used (RxNav REST):
- ``/rxcui.json?name=``                  exact name -> rxcui
- ``/approximateTerm.json?term=``        approximate name -> rxcui
- ``/rxcui/{rxcui}/properties.json``     rxcui -> name/synonym/tty
- ``/rxcui.json?idtype=NDC&id=``         package code -> rxcui

Payloads are validated with Pydantic before use. A lookup that finds
nothing raises NoResultsError inside the retried operation so the miss is
not retried, and is reported to callers as ``None``.
"""

import logging
from dataclasses import replace

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError

from ndc_calculator.errors import ExternalAPIError
from ndc_calculator.services.base import ConceptDirectory, ConceptProperties, NoResultsError
from ndc_calculator.services.http import APIClient
from ndc_calculator.services.retry import ResilientInvoker

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://rxnav.nlm.nih.gov/REST"


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _IdGroup(_Lenient):
    rxnorm_id: list[str] = Field(default_factory=list, alias="rxnormId")


class IdGroupResponse(_Lenient):
    id_group: _IdGroup | None = Field(default=None, alias="idGroup")

    def first_id(self) -> str | None:
        if self.id_group is None:
            return None
        return next((i for i in self.id_group.rxnorm_id if i.strip()), None)


class _Candidate(_Lenient):
    rxcui: str | None = None
    score: str | float | None = None


class _ApproximateGroup(_Lenient):
    candidate: list[_Candidate] = Field(default_factory=list)


class ApproximateTermResponse(_Lenient):
    approximate_group: _ApproximateGroup | None = Field(default=None, alias="approximateGroup")

    def first_id(self) -> str | None:
        if self.approximate_group is None:
            return None
        return next(
            (c.rxcui for c in self.approximate_group.candidate if c.rxcui and c.rxcui.strip()),
            None,
        )


class _Properties(_Lenient):
    name: str | None = None
    synonym: str | None = None
    tty: str | None = None


class PropertiesResponse(_Lenient):
    properties: _Properties | None = None


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


def _not_a_miss(exc: BaseException) -> bool:
    return not isinstance(exc, NoResultsError)


class RxNormClient(ConceptDirectory):
    """httpx-backed RxNorm lookups with retry."""

    def __init__(
        self,
        api: APIClient,
        invoker: ResilientInvoker,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
    ) -> None:
        self._api = api
        self._invoker = invoker
        self._base = base_url.rstrip("/")
        self._timeout = timeout
        self._retry = replace(invoker.defaults, should_retry=_not_a_miss)

    async def find_exact(self, name: str) -> str | None:
        logger.info("RxNorm exact lookup: %s", name)
        return await self._lookup_id(
            f"{self._base}/rxcui.json", {"name": name}, IdGroupResponse,
        )

    async def find_approximate(self, name: str) -> str | None:
        logger.info("RxNorm approximate lookup: %s", name)
        return await self._lookup_id(
            f"{self._base}/approximateTerm.json",
            {"term": name, "maxEntries": 1},
            ApproximateTermResponse,
        )

    async def find_by_code(self, code: str) -> str | None:
        logger.info("RxNorm code lookup: %s", code)
        return await self._lookup_id(
            f"{self._base}/rxcui.json", {"idtype": "NDC", "id": code}, IdGroupResponse,
        )

    async def get_properties(self, concept_id: str) -> ConceptProperties:
        """Fetch name/synonym/tty. Failures degrade to empty properties."""
        if not concept_id or not concept_id.strip():
            logger.warning("Invalid concept id for property lookup: %r", concept_id)
            return ConceptProperties()

        url = f"{self._base}/rxcui/{concept_id.strip()}/properties.json"
        try:
            payload = await self._api.get_json(url, timeout=self._timeout)
            props = PropertiesResponse.model_validate(payload).properties
        except (ExternalAPIError, SchemaError) as exc:
            logger.warning("Property lookup failed for %s: %s", concept_id, exc)
            return ConceptProperties()

        if props is None:
            return ConceptProperties()
        return ConceptProperties(name=props.name, synonym=props.synonym, term_type=props.tty)

    async def _lookup_id(
        self,
        url: str,
        params: dict,
        schema: type[IdGroupResponse] | type[ApproximateTermResponse],
    ) -> str | None:
        async def op() -> str:
            payload = await self._api.get_json(url, params=params, timeout=self._timeout)
            try:
                parsed = schema.model_validate(payload)
            except SchemaError as exc:
                raise ExternalAPIError(
                    f"Unexpected RxNorm payload: {exc.error_count()} error(s)",
                    retryable=False,
                ) from exc
            found = parsed.first_id()
            if found is None:
                raise NoResultsError(url)
            return found

        try:
            return await self._invoker.invoke(op, self._retry)
        except NoResultsError:
            return None
