"""Caller-owned TTL cache and a caching wrapper around a market-stats source.

The cache is plain data with no locking of its own; ``CachedMarketStats``
serializes access through an ``asyncio.Lock``.  Only successful lookups are
cached, so a failing provider is retried on the next call.  Correlation maps
and benchmark series are copied going in and coming out, so a caller that
edits its result never changes what the next caller sees.
"""

from __future__ import annotations

import asyncio
import copy
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from .sources import MarketStatsSource

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 300


class TTLCache:
    """Bounded LRU mapping whose entries expire after a per-entry TTL.

    ``hits`` and ``misses`` count lookups since construction or the last
    ``clear``; an expired entry counts as a miss.
    """

    def __init__(self, maxsize: int = 256, now_fn: Optional[Callable[[], float]] = None) -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be at least 1, got {maxsize}")
        self._entries: OrderedDict[str, Tuple[float, Any]] = OrderedDict()
        self._maxsize = maxsize
        self._clock = now_fn or time.monotonic
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any | None:
        found = self._entries.get(key)
        if found is not None and found[0] > self._clock():
            self._entries.move_to_end(key)
            self.hits += 1
            return found[1]
        if found is not None:
            del self._entries[key]
        self.misses += 1
        return None

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        self._entries[key] = (self._clock() + ttl_seconds, value)
        self._entries.move_to_end(key)
        if len(self._entries) > self._maxsize:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("market_stats_cache_evicted", key=evicted)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0


class CachedMarketStats:
    """Market-stats source that memoizes another one in a ``TTLCache``."""

    def __init__(
        self,
        source: MarketStatsSource,
        cache: TTLCache,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
    ) -> None:
        self._source = source
        self._cache = cache
        self._ttl = ttl_seconds
        self._lock = asyncio.Lock()

    async def _cached(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        async with self._lock:
            hit = self._cache.get(key)
        if hit is not None:
            logger.debug("market_stats_cache_hit", key=key)
            return copy.copy(hit)

        value = await fetch()

        async with self._lock:
            self._cache.set(key, copy.copy(value), self._ttl)
        return value

    def invalidate_symbol(self, symbol: str) -> None:
        """Drop the cached volatility and volume of one symbol."""
        self._cache.invalidate(f"volatility:{symbol}")
        self._cache.invalidate(f"volume:{symbol}")

    async def get_volatility(self, symbol: str) -> float:
        return await self._cached(
            f"volatility:{symbol}", lambda: self._source.get_volatility(symbol)
        )

    async def get_correlations(self, symbols: Sequence[str]) -> Dict[str, float]:
        key = "correlations:" + ",".join(sorted(set(symbols)))
        return await self._cached(key, lambda: self._source.get_correlations(symbols))

    async def get_volume(self, symbol: str) -> float:
        return await self._cached(
            f"volume:{symbol}", lambda: self._source.get_volume(symbol)
        )

    async def get_risk_free_rate(self) -> float:
        return await self._cached("risk_free_rate", self._source.get_risk_free_rate)

    async def get_benchmark_return(self) -> float:
        return await self._cached("benchmark_return", self._source.get_benchmark_return)

    async def get_benchmark_return_series(self, days: int) -> List[float]:
        return await self._cached(
            f"benchmark_series:{days}",
            lambda: self._source.get_benchmark_return_series(days),
        )
