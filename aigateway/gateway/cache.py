"""Result Cache: short-lived memoization of successful generations.

Keyed on a fingerprint of the request's semantic content. Entries expire
after a fixed TTL; once capacity is reached the least recently used entry
is evicted. The cache only changes latency/cost, never the gateway's
outward contract.

Guarded by an asyncio.Lock: LRU reads reorder entries, so reads and writes
both take it. Concurrent writes for one fingerprint resolve last-writer-wins.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from collections import OrderedDict
from collections.abc import Callable

from aigateway.gateway.types import CacheEntry, GenerationRequest, GenerationResult

logger = logging.getLogger(__name__)


def fingerprint(request: GenerationRequest) -> str:
    """Deterministic SHA-256 over the request fields that affect output."""
    canonical = json.dumps(
        {
            "prompt": request.prompt,
            "system_prompt": request.system_prompt,
            "temperature": request.temperature,
            "top_p": request.top_p,
            "max_tokens": request.max_tokens,
        },
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ResultCache:
    """In-process TTL + LRU cache of GenerationResults."""

    def __init__(
        self,
        ttl_seconds: float = 120.0,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> GenerationResult | None:
        """Return the cached result for ``key``, or None on miss/expiry."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if self._clock() >= entry.expires_at:
                del self._entries[key]
                self._misses += 1
                return None

            self._entries.move_to_end(key)
            self._hits += 1
            return entry.result

    async def set(self, key: str, result: GenerationResult) -> None:
        """Store ``result`` under ``key``, evicting LRU entries past capacity."""
        async with self._lock:
            now = self._clock()
            self._entries[key] = CacheEntry(fingerprint=key, result=result, expires_at=now + self.ttl_seconds)
            self._entries.move_to_end(key)

            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Cache evicted %s", evicted[:12])

    def clear(self) -> int:
        """Drop every entry. Returns count of cleared entries."""
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict:
        return {
            "size": len(self._entries),
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
            "hits": self._hits,
            "misses": self._misses,
        }
