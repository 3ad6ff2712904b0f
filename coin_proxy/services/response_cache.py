"""In-memory response cache with TTL.

Per-process only: entries are lost on restart and are not shared between
instances. Expiry is passive, checked on lookup.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    inserted_at: float


class ResponseCache:
    """Key-value store of upstream payloads, expired lazily after ``ttl_seconds``."""

    def __init__(
        self,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store: dict[str, CacheEntry] = {}
        self._ttl = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: str, default: Any = None) -> Any:
        """Get cached value for key, or ``default`` if not found/expired."""
        entry = self._lookup(key)
        if entry is None:
            return default
        return entry.value

    def has(self, key: str) -> bool:
        return self._lookup(key) is not None

    def _lookup(self, key: str) -> CacheEntry | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._clock() - entry.inserted_at > self._ttl:
            del self._store[key]
            return None
        return entry

    def set(self, key: str, value: Any) -> None:
        """Cache a value, replacing any previous entry and restarting its TTL."""
        self._store[key] = CacheEntry(value=value, inserted_at=self._clock())

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
