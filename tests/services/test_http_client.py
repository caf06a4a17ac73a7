"""Tests for APIClient JSON helper over an httpx mock transport."""

import httpx
import pytest

from ndc_calculator.errors import ExternalAPIError
from ndc_calculator.services.http import APIClient, UpstreamHTTPError


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestGetJson:
    @pytest.mark.anyio
    async def test_returns_decoded_json(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        async with _client(handler) as http:
            data = await APIClient(http).get_json(
                "https://example.test/items", params={"q": "x"},
            )
        assert data == {"ok": True}
        assert seen[0].url.params["q"] == "x"

    @pytest.mark.anyio
    @pytest.mark.parametrize(("status", "retryable"), [
        (500, True), (503, True), (429, True), (400, False), (404, False),
    ])
    async def test_error_status(self, status: int, retryable: bool) -> None:
        async with _client(lambda r: httpx.Response(status)) as http:
            with pytest.raises(UpstreamHTTPError) as exc_info:
                await APIClient(http).get_json("https://example.test/items")
        assert exc_info.value.upstream_status == status
        assert exc_info.value.retryable is retryable
        assert exc_info.value.status_code == 502

    @pytest.mark.anyio
    async def test_timeout_is_retryable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        async with _client(handler) as http:
            with pytest.raises(ExternalAPIError, match="timeout") as exc_info:
                await APIClient(http).get_json("https://example.test/items", timeout=2)
        assert exc_info.value.retryable is True

    @pytest.mark.anyio
    async def test_connect_error_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as http:
            with pytest.raises(ExternalAPIError, match="Request failed"):
                await APIClient(http).get_json("https://example.test/items")

    @pytest.mark.anyio
    async def test_invalid_json_not_retryable(self) -> None:
        async with _client(lambda r: httpx.Response(200, text="<html>")) as http:
            with pytest.raises(ExternalAPIError, match="Invalid JSON") as exc_info:
                await APIClient(http).get_json("https://example.test/items")
        assert exc_info.value.retryable is False


class TestPostJson:
    @pytest.mark.anyio
    async def test_sends_body_and_headers(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": 1})

        async with _client(handler) as http:
            data = await APIClient(http).post_json(
                "https://example.test/items",
                body={"name": "x"},
                headers={"Authorization": "Bearer k"},
            )
        assert data == {"id": 1}
        assert seen[0].method == "POST"
        assert seen[0].headers["Authorization"] == "Bearer k"
        assert b'"name"' in seen[0].content
