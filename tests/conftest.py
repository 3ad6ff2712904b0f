"""
Pytest fixtures for coin proxy tests.

Queue timing tests run with delays scaled down from the production defaults
(1000 ms pacing, 3000 ms backoff base) so the suite stays fast while keeping
the same ratios.
"""

import asyncio
from typing import Any

import pytest
import pytest_asyncio

from coin_proxy.services.fetch_service import FetchService
from coin_proxy.services.response_cache import ResponseCache
from coin_proxy.services.retry_policy import RetryPolicy

PACING_DELAY = 0.05
BACKOFF_BASE = 0.1


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedUpstream:
    """Upstream stand-in that replays a scripted outcome list per key.

    Each call consumes the next outcome; the last one repeats. An outcome
    that is an exception instance is raised, anything else is returned.
    """

    def __init__(self) -> None:
        self.script: dict[str, list[Any]] = {}
        self.calls: list[tuple[str, float]] = []
        self.default: Any = {"ok": True}

    def set(self, key: str, *outcomes: Any) -> None:
        self.script[key] = list(outcomes)

    async def get(self, key: str) -> Any:
        self.calls.append((key, asyncio.get_running_loop().time()))
        outcomes = self.script.get(key)
        if not outcomes:
            return self.default
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def calls_for(self, key: str) -> list[float]:
        return [t for k, t in self.calls if k == key]

    @property
    def keys(self) -> list[str]:
        return [k for k, _ in self.calls]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def upstream() -> ScriptedUpstream:
    return ScriptedUpstream()


@pytest_asyncio.fixture
async def make_service(upstream):
    """Factory for fetch services with scaled-down delays; closes them afterwards."""
    services: list[FetchService] = []

    def _make(
        cache: ResponseCache | None = None,
        pacing: float = PACING_DELAY,
        backoff_base: float = BACKOFF_BASE,
        upstream_override: Any = None,
    ) -> FetchService:
        service = FetchService(
            upstream_override or upstream,
            cache=cache,
            retry_policy=RetryPolicy(max_attempts=3, base_delay_seconds=backoff_base),
            pacing_delay_seconds=pacing,
        )
        services.append(service)
        return service

    yield _make

    for service in services:
        await service.close()
