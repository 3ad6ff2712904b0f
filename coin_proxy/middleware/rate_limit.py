"""Per-client fixed-window throttle for the /api/* surface.

State is in-memory and per-process, which is enough for a single instance.
"""

import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from coin_proxy.exceptions import ClientRateLimitError
from coin_proxy.schemas.error import ErrorResponse

RATE_LIMITED_PREFIX = "/api/"


@dataclass
class _Window:
    started_at: float
    count: int


@dataclass(frozen=True)
class RateLimitStatus:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float

    def headers(self) -> dict[str, str]:
        reset = str(max(0, math.ceil(self.reset_after)))
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": reset,
        }
        if not self.allowed:
            headers["Retry-After"] = reset
        return headers


class ClientRateLimiter:
    """Counts requests per client; each client's window opens on its first hit."""

    def __init__(
        self,
        limit: int = 10,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limit = limit
        self._window = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def hit(self, client_id: str) -> RateLimitStatus:
        """Record one request for ``client_id`` and report whether it is allowed."""
        now = self._clock()
        self._cleanup_expired(now)

        window = self._windows.get(client_id)
        if window is None:
            window = self._windows[client_id] = _Window(started_at=now, count=0)
        window.count += 1

        return RateLimitStatus(
            allowed=window.count <= self._limit,
            limit=self._limit,
            remaining=max(0, self._limit - window.count),
            reset_after=window.started_at + self._window - now,
        )

    def reset(self) -> None:
        self._windows.clear()

    def _cleanup_expired(self, now: float) -> None:
        expired = [k for k, w in self._windows.items() if now - w.started_at >= self._window]
        for k in expired:
            del self._windows[k]


def client_id_for(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def rate_limit_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Throttle /api/* requests using the limiter stored on ``app.state``."""
    if not request.url.path.startswith(RATE_LIMITED_PREFIX):
        return await call_next(request)

    limiter: ClientRateLimiter = request.app.state.rate_limiter
    status = limiter.hit(client_id_for(request))
    if not status.allowed:
        error = ClientRateLimitError(retry_after=math.ceil(status.reset_after))
        return JSONResponse(
            status_code=error.status_code,
            content=ErrorResponse(error=error.message).model_dump(),
            headers=status.headers(),
        )

    response = await call_next(request)
    response.headers.update(status.headers())
    return response
