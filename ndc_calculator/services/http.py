"""Thin JSON-over-HTTP client with per-call timeouts.

Wraps a shared ``httpx.AsyncClient`` (injected, owned by the caller) and
maps every transport failure to ExternalAPIError so the rest of the code
sees one error type for upstream problems.
"""

import logging
from typing import Any

import httpx

from ndc_calculator.errors import ExternalAPIError

logger = logging.getLogger(__name__)


class UpstreamHTTPError(ExternalAPIError):
    """Upstream answered with a non-2xx status."""

    def __init__(self, status: int, url: str) -> None:
        # 5xx and 429 are transient; other 4xx will fail the same way again
        retryable = status >= 500 or status == 429
        super().__init__(f"HTTP {status} from {url}", retryable=retryable)
        self.upstream_status = status


class APIClient:
    """JSON fetch helper bound to a shared httpx client."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> Any:
        return await self._request("GET", url, params=params, headers=headers, timeout=timeout)

    async def post_json(
        self,
        url: str,
        *,
        body: Any,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
    ) -> Any:
        return await self._request("POST", url, json=body, headers=headers, timeout=timeout)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        timeout: float,
        **kwargs: Any,
    ) -> Any:
        try:
            resp = await self._client.request(method, url, timeout=timeout, **kwargs)
        except httpx.TimeoutException as exc:
            raise ExternalAPIError(f"Request timeout after {timeout:g}s: {url}") from exc
        except httpx.HTTPError as exc:
            raise ExternalAPIError(f"Request failed: {exc}") from exc

        if resp.is_error:
            logger.debug("%s %s -> HTTP %d", method, url, resp.status_code)
            raise UpstreamHTTPError(resp.status_code, str(resp.request.url))

        try:
            return resp.json()
        except ValueError as exc:
            raise ExternalAPIError(f"Invalid JSON from {url}", retryable=False) from exc
