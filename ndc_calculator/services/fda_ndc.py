"""openFDA NDC directory client.

Search modes (``search=`` query on ``/drug/ndc.json``):
- concept id:   ``openfda.rxcui:"<id>"``
- generic name: ``generic_name:"<name>"``
- drug name:    ``generic_name:"<name>" brand_name:"<name>"`` (either field)
- code:         ``packaging.package_ndc:"<ndc>"``

openFDA answers 404 when a search matches nothing; that is an empty
result, not an error. A 400 on the concept-id search means the field is
not searchable and surfaces as UnsupportedSearchError.

Each product's ``packaging[].description`` (e.g. "100 TABLET in 1 BOTTLE")
yields one Package; products without packaging yield a single
``{product_ndc, size 1, unit "unit"}`` package.
"""

import logging
import re

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError

from ndc_calculator.errors import ExternalAPIError
from ndc_calculator.models.common import PackageSource, PackageStatus
from ndc_calculator.models.package import Package
from ndc_calculator.services.base import CodeValidation, PackageDirectory, UnsupportedSearchError
from ndc_calculator.services.http import APIClient, UpstreamHTTPError
from ndc_calculator.services.retry import ResilientInvoker

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.fda.gov/drug/ndc.json"
SEARCH_LIMIT = 100

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)")
_UNIT_RE = re.compile(r"^\s*\d+(?:\.\d+)?\s+([A-Za-z]+)")
_QUOTE_RE = re.compile(r'["\\]')


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class FDAPackaging(_Lenient):
    package_ndc: str = Field(min_length=1)
    description: str = ""


class FDAProduct(_Lenient):
    product_ndc: str = Field(min_length=1)
    generic_name: str | None = None
    brand_name: str | None = None
    packaging: list[FDAPackaging] = Field(default_factory=list)
    marketing_status: str | None = None


class FDANDCResponse(_Lenient):
    results: list[FDAProduct] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def extract_package_size(description: str | None) -> float:
    """Leading number of a packaging description; 1 when absent."""
    if not description:
        return 1.0
    match = _SIZE_RE.match(description)
    if not match:
        return 1.0
    size = float(match.group(1))
    return size if size > 0 else 1.0


def extract_package_unit(description: str | None) -> str:
    """Word following the leading number, lowercased; "unit" when absent."""
    if not description:
        return "unit"
    match = _UNIT_RE.match(description)
    return match.group(1).lower() if match else "unit"


def status_from_marketing(marketing_status: str | None) -> PackageStatus:
    """Absent status counts as active; otherwise look for "active"."""
    if marketing_status is None or not marketing_status.strip():
        return PackageStatus.ACTIVE
    lowered = marketing_status.lower()
    if "inactive" in lowered or "active" not in lowered:
        return PackageStatus.INACTIVE
    return PackageStatus.ACTIVE


def parse_packages(products: list[FDAProduct], source: PackageSource) -> list[Package]:
    """Flatten products into packages, de-duplicated by package code."""
    packages: dict[str, Package] = {}
    for product in products:
        status = status_from_marketing(product.marketing_status)
        if product.packaging:
            for pkg in product.packaging:
                packages.setdefault(pkg.package_ndc, Package(
                    id=pkg.package_ndc,
                    size=extract_package_size(pkg.description),
                    unit=extract_package_unit(pkg.description),
                    status=status,
                    source=source,
                    manufacturer=product.brand_name,
                ))
        else:
            packages.setdefault(product.product_ndc, Package(
                id=product.product_ndc,
                size=1.0,
                unit="unit",
                status=status,
                source=source,
                manufacturer=product.brand_name,
            ))
    return list(packages.values())


def _quote(term: str) -> str:
    return '"' + _QUOTE_RE.sub("", term.strip()) + '"'


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class FDANDCClient(PackageDirectory):
    """httpx-backed openFDA NDC searches with retry."""

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
        self._url = base_url
        self._timeout = timeout

    async def search_by_concept_id(self, concept_id: str) -> list[Package]:
        try:
            return await self._search(
                f"openfda.rxcui:{_quote(concept_id)}", PackageSource.CONCEPT_ID,
            )
        except UpstreamHTTPError as exc:
            if exc.upstream_status == 400:
                raise UnsupportedSearchError(
                    f"Concept-id search not supported: {exc.message}"
                ) from exc
            raise

    async def search_by_generic_name(self, name: str) -> list[Package]:
        return await self._search(f"generic_name:{_quote(name)}", PackageSource.GENERIC_NAME)

    async def search_by_drug_name(self, name: str) -> list[Package]:
        term = _quote(name)
        return await self._search(
            f"generic_name:{term} brand_name:{term}", PackageSource.DRUG_NAME,
        )

    async def validate_code(self, code: str) -> CodeValidation | None:
        """Look up a package code; None when the directory does not know it."""
        products = await self._fetch(f"packaging.package_ndc:{_quote(code)}", limit=1)
        if not products:
            return None

        product = products[0]
        packages = parse_packages([product], PackageSource.CODE)
        wanted = code.strip()
        package = next((p for p in packages if p.id == wanted), packages[0])
        return CodeValidation(
            package=package,
            generic_name=product.generic_name,
            brand_name=product.brand_name,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _search(self, query: str, source: PackageSource) -> list[Package]:
        products = await self._fetch(query, limit=SEARCH_LIMIT)
        packages = parse_packages(products, source)
        logger.info("FDA search %s -> %d package(s)", query, len(packages))
        return packages

    async def _fetch(self, query: str, *, limit: int) -> list[FDAProduct]:
        async def op() -> list[FDAProduct]:
            try:
                payload = await self._api.get_json(
                    self._url,
                    params={"search": query, "limit": limit},
                    timeout=self._timeout,
                )
            except UpstreamHTTPError as exc:
                if exc.upstream_status == 404:
                    return []
                raise
            try:
                return FDANDCResponse.model_validate(payload).results
            except SchemaError as exc:
                raise ExternalAPIError(
                    f"Unexpected FDA NDC payload: {exc.error_count()} error(s)",
                    retryable=False,
                ) from exc

        return await self._invoker.invoke(op)
