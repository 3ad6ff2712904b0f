"""HTTP client for the upstream market-data API."""

from typing import Any

import httpx

from coin_proxy.exceptions import UpstreamError, UpstreamRateLimitedError


class UpstreamClient:
    """Issues GET requests for request keys against a fixed base URL.

    A 429 response raises ``UpstreamRateLimitedError``. Any other non-2xx
    status, transport failure or non-JSON body raises ``UpstreamError``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def get(self, key: str) -> Any:
        try:
            resp = await self._client.get(key)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Upstream request failed for {key}: {e}", key=key) from e

        if resp.status_code == 429:
            raise UpstreamRateLimitedError(key)
        if resp.is_error:
            raise UpstreamError(
                f"Upstream returned {resp.status_code} for {key}",
                key=key,
                upstream_status=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError(
                f"Upstream returned malformed JSON for {key}",
                key=key,
                upstream_status=resp.status_code,
            ) from e

    async def aclose(self) -> None:
        await self._client.aclose()
