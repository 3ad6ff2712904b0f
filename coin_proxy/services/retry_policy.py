"""Retry/backoff decisions for upstream failures.

Only upstream 429 responses are retried. The n-th attempt that hits a 429 is
retried after ``n * base_delay`` seconds until ``max_attempts`` is reached.
"""

from dataclasses import dataclass
from enum import Enum

from coin_proxy.exceptions import UpstreamRateLimitedError


class FailureKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    OTHER = "other"


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    delay_seconds: float = 0.0
    next_attempt: int | None = None
    exhausted: bool = False


def classify(exc: BaseException) -> FailureKind:
    """Map an upstream failure to the kind the policy understands."""
    if isinstance(exc, UpstreamRateLimitedError):
        return FailureKind.RATE_LIMITED
    return FailureKind.OTHER


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_seconds: float = 3.0

    def decide(self, kind: FailureKind, attempt: int) -> RetryDecision:
        """Decide whether the failed ``attempt`` (1-based) is retried and when."""
        if kind is not FailureKind.RATE_LIMITED:
            return RetryDecision(retry=False)
        if attempt >= self.max_attempts:
            return RetryDecision(retry=False, exhausted=True)
        return RetryDecision(
            retry=True,
            delay_seconds=attempt * self.base_delay_seconds,
            next_attempt=attempt + 1,
        )
