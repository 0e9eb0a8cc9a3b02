"""In-memory LRU cache of signed retrieval URLs.

Entries live for ``ttl`` seconds, which is always shorter than the validity
of the URLs themselves, so a cached URL is never handed out after it
expires. The cache never replaces an authorization check.
"""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from filegate.core.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class SignedLinkCacheEntry:
    object_key: str
    url: str
    expires_at: float


class SignedUrlCache:
    """Bounded TTL cache keyed by object key.

    Safe for concurrent use from asyncio tasks; the lock is never held across
    a backend call. Invalidations are recorded per key, so a lookup that
    started before ``invalidate(key)`` cannot store a URL for that key, while
    lookups for other keys are unaffected.
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl: float = 3000.0,
        url_ttl: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl >= url_ttl:
            raise ConfigurationError(
                f"URL cache TTL ({ttl}s) must be shorter than signed URL validity ({url_ttl}s)"
            )
        if max_size < 1:
            raise ConfigurationError("URL cache size must be positive")
        self._entries: OrderedDict[str, SignedLinkCacheEntry] = OrderedDict()
        self._max_size = max_size
        self._ttl = ttl
        self._url_ttl = url_ttl
        self._clock = clock
        self._lock = asyncio.Lock()
        self._epoch = 0
        # Epoch of the latest invalidation per key, oldest first.
        self._invalidated: OrderedDict[str, int] = OrderedDict()
        # Epochs at or below this were recorded but dropped from _invalidated.
        self._forgotten_epoch = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def epoch(self) -> int:
        """Current invalidation counter; read it before a lookup and pass it to :meth:`set`."""
        return self._epoch

    async def get(self, key: str) -> SignedLinkCacheEntry | None:
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
            return entry

    def _is_stale(self, key: str, epoch: int) -> bool:
        if epoch < self._forgotten_epoch:
            return True
        return self._invalidated.get(key, 0) > epoch

    async def set(self, key: str, url: str, epoch: int | None = None) -> SignedLinkCacheEntry | None:
        """Store ``url`` for ``key``.

        When ``epoch`` is given and ``key`` was invalidated after it was read,
        nothing is stored and ``None`` is returned.
        """
        entry = SignedLinkCacheEntry(
            object_key=key,
            url=url,
            expires_at=self._clock() + self._ttl,
        )
        async with self._lock:
            if epoch is not None and self._is_stale(key, epoch):
                return None

            self._entries.pop(key, None)
            while len(self._entries) >= self._max_size:
                self._entries.popitem(last=False)
                self._evictions += 1

            self._entries[key] = entry
            return entry

    async def invalidate(self, key: str) -> bool:
        async with self._lock:
            self._epoch += 1
            self._invalidated.pop(key, None)
            self._invalidated[key] = self._epoch
            while len(self._invalidated) > self._max_size:
                _, dropped = self._invalidated.popitem(last=False)
                self._forgotten_epoch = max(self._forgotten_epoch, dropped)
            return self._entries.pop(key, None) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, Any]:
        total = self._hits + self._misses
        hit_rate = self._hits / total if total > 0 else 0.0
        return {
            "size": len(self._entries),
            "max_size": self._max_size,
            "ttl": self._ttl,
            "url_ttl": self._url_ttl,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "hit_rate": f"{hit_rate:.1%}",
        }
