"""Custom exceptions for the coin proxy.

Upstream failures are classified here so the fetch queue can decide what to
retry, and every error carries the status code and message the API layer
renders as ``{"error": message}``.
"""


class CoinProxyError(Exception):
    """Base exception for all coin proxy errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "Internal server error"
    retryable: bool = False

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)


# =============================================================================
# Upstream Errors
# =============================================================================


class UpstreamError(CoinProxyError):
    """Upstream call failed (non-2xx, transport failure, or malformed body).

    Terminal: the fetch queue never retries it.
    """

    code = "UPSTREAM_ERROR"
    status_code = 502
    message = "Upstream request failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        key: str | None = None,
        upstream_status: int | None = None,
    ):
        self.key = key
        self.upstream_status = upstream_status
        super().__init__(message)


class UpstreamRateLimitedError(UpstreamError):
    """Upstream answered 429 Too Many Requests."""

    code = "UPSTREAM_RATE_LIMITED"
    message = "Upstream rate limit hit"
    retryable = True

    def __init__(self, key: str | None = None):
        message = f"Upstream rate limit hit for {key}" if key else self.message
        super().__init__(message, key=key, upstream_status=429)


class RetriesExhaustedError(UpstreamError):
    """Upstream kept answering 429 until the attempt bound was reached."""

    code = "RETRIES_EXHAUSTED"
    message = "Upstream rate limit persisted after all retries"

    def __init__(self, key: str | None = None, attempts: int | None = None):
        message = self.message
        if key and attempts is not None:
            message = f"Upstream rate limit persisted for {key} after {attempts} attempts"
        self.attempts = attempts
        super().__init__(message, key=key, upstream_status=429)


# =============================================================================
# Service Errors
# =============================================================================


class FetchServiceClosedError(CoinProxyError):
    """Fetch service was shut down before the request could complete."""

    code = "SERVICE_UNAVAILABLE"
    status_code = 503
    message = "Fetch service is closed"


class MarketDataUnavailableError(CoinProxyError):
    """Route-level failure surfaced to clients with a static message."""

    code = "MARKET_DATA_UNAVAILABLE"
    status_code = 500
    message = "Failed to fetch market data"


class ClientRateLimitError(CoinProxyError):
    """Client exceeded the per-window request allowance."""

    code = "RATE_LIMITED"
    status_code = 429
    message = "Too many requests, please try again later."
    retryable = True

    def __init__(self, retry_after: int | None = None):
        self.retry_after = retry_after
        super().__init__()
