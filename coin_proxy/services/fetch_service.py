"""Sequential fetch queue in front of the upstream market-data API.

All upstream-bound requests go through one FIFO queue drained by a single
background worker, so the process never has more than one upstream call in
flight. The worker waits a fixed pacing delay after every entry it handles.
Upstream 429 responses are re-queued at the tail after a backoff delay
decided by ``RetryPolicy``; any other failure is returned to the caller.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Protocol

from coin_proxy.config import Settings
from coin_proxy.exceptions import FetchServiceClosedError, RetriesExhaustedError, UpstreamError
from coin_proxy.services.response_cache import ResponseCache
from coin_proxy.services.retry_policy import RetryPolicy, classify

logger = logging.getLogger(__name__)

_MISSING = object()


class Upstream(Protocol):
    async def get(self, key: str) -> Any: ...


@dataclass
class QueueEntry:
    key: str
    future: asyncio.Future[Any]
    attempt: int = 1


@dataclass
class FetchStats:
    cache_hits: int = 0
    upstream_calls: int = 0
    successes: int = 0
    retries: int = 0
    failures: int = 0


class FetchService:
    """Owns the response cache, the request queue and its worker."""

    def __init__(
        self,
        upstream: Upstream,
        cache: ResponseCache | None = None,
        retry_policy: RetryPolicy | None = None,
        pacing_delay_seconds: float = 1.0,
    ) -> None:
        self._upstream = upstream
        self._cache = cache if cache is not None else ResponseCache()
        self._retry_policy = retry_policy or RetryPolicy()
        self._pacing_delay = pacing_delay_seconds
        self._queue: asyncio.Queue[QueueEntry] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._retry_tasks: set[asyncio.Task[None]] = set()
        self._pending: set[asyncio.Future[Any]] = set()
        self._stats = FetchStats()
        self._closed = False

    @classmethod
    def from_settings(cls, settings: Settings, upstream: Upstream) -> "FetchService":
        return cls(
            upstream,
            cache=ResponseCache(ttl_seconds=settings.cache_ttl_seconds),
            retry_policy=RetryPolicy(
                max_attempts=settings.max_attempts,
                base_delay_seconds=settings.retry_base_delay_seconds,
            ),
            pacing_delay_seconds=settings.pacing_delay_seconds,
        )

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def pending_count(self) -> int:
        """Entries queued or waiting out a backoff delay."""
        return self._queue.qsize() + len(self._retry_tasks)

    def stats(self) -> dict[str, int]:
        return {
            **asdict(self._stats),
            "pending": self.pending_count,
            "cached_entries": len(self._cache),
        }

    def start(self) -> None:
        """Start the worker if it is not already running."""
        if self._closed:
            raise FetchServiceClosedError()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(
                self._run(), name="fetch-queue-worker"
            )

    async def fetch(self, key: str) -> Any:
        """Return the payload for ``key``, from cache or through the queue.

        Raises:
            UpstreamError: upstream failed with anything other than 429
            RetriesExhaustedError: upstream kept answering 429
            FetchServiceClosedError: the service was closed
        """
        if self._closed:
            raise FetchServiceClosedError()

        cached = self._cache.get(key, _MISSING)
        if cached is not _MISSING:
            self._stats.cache_hits += 1
            logger.debug(f"Cache hit for {key}")
            return cached

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending.add(future)
        self._queue.put_nowait(QueueEntry(key=key, future=future))
        self.start()
        return await future

    async def close(self) -> None:
        """Stop the worker and reject every request still pending."""
        if self._closed:
            return
        self._closed = True

        tasks = list(self._retry_tasks)
        if self._worker is not None:
            tasks.append(self._worker)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        for future in self._pending:
            if not future.done():
                future.set_exception(FetchServiceClosedError())
        self._pending.clear()
        logger.info("Fetch service closed")

    async def _run(self) -> None:
        while True:
            entry = await self._queue.get()
            try:
                await self._process(entry)
            finally:
                self._queue.task_done()
            await asyncio.sleep(self._pacing_delay)

    async def _process(self, entry: QueueEntry) -> None:
        logger.info(f"Fetching from upstream (attempt {entry.attempt}): {entry.key}")
        self._stats.upstream_calls += 1
        try:
            payload = await self._upstream.get(entry.key)
        except Exception as e:
            self._handle_failure(entry, e)
            return

        self._cache.set(entry.key, payload)
        self._stats.successes += 1
        self._settle(entry, result=payload)

    def _handle_failure(self, entry: QueueEntry, exc: Exception) -> None:
        decision = self._retry_policy.decide(classify(exc), entry.attempt)
        if decision.retry:
            logger.warning(
                f"Rate limit hit for {entry.key}. "
                f"Retrying in {decision.delay_seconds:g}s (attempt {decision.next_attempt})"
            )
            entry.attempt = decision.next_attempt
            self._stats.retries += 1
            self._schedule_retry(entry, decision.delay_seconds)
            return

        error: Exception = exc
        if decision.exhausted:
            error = RetriesExhaustedError(entry.key, entry.attempt)
            error.__cause__ = exc
        elif not isinstance(exc, UpstreamError):
            error = UpstreamError(f"Upstream call failed for {entry.key}: {exc!r}", key=entry.key)
            error.__cause__ = exc
        logger.warning(f"Giving up on {entry.key} after attempt {entry.attempt}: {error}")
        self._stats.failures += 1
        self._settle(entry, error=error)

    def _schedule_retry(self, entry: QueueEntry, delay: float) -> None:
        task = asyncio.get_running_loop().create_task(self._requeue_after(entry, delay))
        self._retry_tasks.add(task)
        task.add_done_callback(self._retry_tasks.discard)

    async def _requeue_after(self, entry: QueueEntry, delay: float) -> None:
        await asyncio.sleep(delay)
        self._queue.put_nowait(entry)

    def _settle(
        self, entry: QueueEntry, *, result: Any = None, error: Exception | None = None
    ) -> None:
        self._pending.discard(entry.future)
        # Caller may have stopped waiting; the entry still ran to completion.
        if entry.future.done():
            return
        if error is not None:
            entry.future.set_exception(error)
        else:
            entry.future.set_result(result)
