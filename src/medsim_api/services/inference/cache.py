"""Time-bounded response cache keyed by normalized prompt text."""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

Clock = Callable[[], float]


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    response: str
    stored_at: float


def normalize_prompt(prompt: str) -> str:
    """Return the cache key for a prompt: SHA-256 of its whitespace-collapsed text."""
    collapsed = " ".join(prompt.split())
    return hashlib.sha256(collapsed.encode("utf-8")).hexdigest()


class ResponseCache:
    """Thread-safe TTL cache of provider responses.

    Entries expire lazily: an expired entry is evicted by the lookup that finds
    it. There is no size bound, the key space is the set of distinct prompts.
    """

    def __init__(self, ttl_seconds: float = 3600.0, *, clock: Clock = time.monotonic) -> None:
        if ttl_seconds <= 0:
            raise ValueError("Cache TTL must be positive.")
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    def lookup(self, prompt: str) -> str | None:
        """Return the cached response for ``prompt`` or ``None`` on a miss."""
        key = normalize_prompt(prompt)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.stored_at > self._ttl:
                del self._entries[key]
                return None
            return entry.response

    def store(self, prompt: str, response: str) -> None:
        key = normalize_prompt(prompt)
        entry = CacheEntry(key=key, response=response, stored_at=self._clock())
        with self._lock:
            self._entries[key] = entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["CacheEntry", "Clock", "ResponseCache", "normalize_prompt"]
