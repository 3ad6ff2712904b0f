"""Tests for the upstream HTTP client and its failure classification."""

import httpx
import pytest

from coin_proxy.exceptions import UpstreamError, UpstreamRateLimitedError
from coin_proxy.services.upstream_client import UpstreamClient

BASE_URL = "https://api.coingecko.test/api/v3"


def _client(handler) -> UpstreamClient:
    return UpstreamClient(BASE_URL, timeout=5.0, transport=httpx.MockTransport(handler))


class TestUpstreamClient:
    @pytest.mark.asyncio
    async def test_success_returns_json_payload(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"id": "bitcoin"}])

        client = _client(handler)
        try:
            payload = await client.get("coins/markets?page=1&vs_currency=usd")
        finally:
            await client.aclose()

        assert payload == [{"id": "bitcoin"}]
        assert seen[0].method == "GET"
        assert str(seen[0].url) == f"{BASE_URL}/coins/markets?page=1&vs_currency=usd"

    @pytest.mark.asyncio
    async def test_429_raises_rate_limited(self):
        client = _client(lambda request: httpx.Response(429, json={"status": "throttled"}))
        try:
            with pytest.raises(UpstreamRateLimitedError) as exc_info:
                await client.get("coins/bitcoin")
        finally:
            await client.aclose()

        assert exc_info.value.key == "coins/bitcoin"
        assert exc_info.value.upstream_status == 429
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [400, 404, 500, 503])
    async def test_other_error_status_raises_upstream_error(self, status_code):
        client = _client(lambda request: httpx.Response(status_code, json={"error": "nope"}))
        try:
            with pytest.raises(UpstreamError) as exc_info:
                await client.get("coins/unknown")
        finally:
            await client.aclose()

        assert not isinstance(exc_info.value, UpstreamRateLimitedError)
        assert exc_info.value.upstream_status == status_code
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_transport_failure_raises_upstream_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        try:
            with pytest.raises(UpstreamError) as exc_info:
                await client.get("coins/bitcoin")
        finally:
            await client.aclose()

        assert exc_info.value.upstream_status is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_malformed_body_raises_upstream_error(self):
        client = _client(lambda request: httpx.Response(200, text="<html>oops</html>"))
        try:
            with pytest.raises(UpstreamError, match="malformed JSON"):
                await client.get("coins/bitcoin")
        finally:
            await client.aclose()
