"""Tests for TTLCache and the CachedMarketStats wrapper."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from portfolio_risk.data.cache import CachedMarketStats, TTLCache
from portfolio_risk.errors import DependencyFailure


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    mock = MagicMock()
    mock.get_volatility = AsyncMock(return_value=0.25)
    mock.get_correlations = AsyncMock(return_value={'AAPL-MSFT': 0.5, 'MSFT-AAPL': 0.5})
    mock.get_volume = AsyncMock(return_value=2_000_000.0)
    mock.get_risk_free_rate = AsyncMock(return_value=0.045)
    mock.get_benchmark_return = AsyncMock(return_value=0.10)
    mock.get_benchmark_return_series = AsyncMock(return_value=[0.01, -0.01])
    return mock


class TestTTLCache:
    def test_get_returns_value_within_ttl(self, clock):
        cache = TTLCache(now_fn=clock)
        cache.set('k', 1.5, ttl_seconds=60)

        clock.advance(59)

        assert cache.get('k') == 1.5

    def test_entry_expires(self, clock):
        cache = TTLCache(now_fn=clock)
        cache.set('k', 1.5, ttl_seconds=60)

        clock.advance(60)

        assert cache.get('k') is None
        assert len(cache) == 0

    def test_missing_key(self):
        assert TTLCache().get('nope') is None

    def test_least_recently_used_evicted(self, clock):
        cache = TTLCache(maxsize=2, now_fn=clock)
        cache.set('a', 1, 60)
        cache.set('b', 2, 60)
        cache.get('a')

        cache.set('c', 3, 60)

        assert cache.get('a') == 1
        assert cache.get('b') is None
        assert cache.get('c') == 3

    def test_invalidate_and_clear(self, clock):
        cache = TTLCache(now_fn=clock)
        cache.set('a', 1, 60)
        cache.set('b', 2, 60)

        cache.invalidate('a')
        assert cache.get('a') is None
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0

    def test_hit_and_miss_counts(self, clock):
        cache = TTLCache(now_fn=clock)
        cache.set('k', 1.0, 60)

        cache.get('k')
        cache.get('other')
        clock.advance(60)
        cache.get('k')

        assert (cache.hits, cache.misses) == (1, 2)

    def test_zero_maxsize_rejected(self):
        with pytest.raises(ValueError, match="maxsize"):
            TTLCache(maxsize=0)


class TestCachedMarketStats:
    @pytest.mark.asyncio
    async def test_source_called_once_within_ttl(self, source, clock):
        stats = CachedMarketStats(source, TTLCache(now_fn=clock), ttl_seconds=300)

        first = await stats.get_volatility('AAPL')
        second = await stats.get_volatility('AAPL')

        assert first == second == 0.25
        source.get_volatility.assert_awaited_once_with('AAPL')

    @pytest.mark.asyncio
    async def test_refetch_after_expiry(self, source, clock):
        stats = CachedMarketStats(source, TTLCache(now_fn=clock), ttl_seconds=300)

        await stats.get_risk_free_rate()
        clock.advance(301)
        await stats.get_risk_free_rate()

        assert source.get_risk_free_rate.await_count == 2

    @pytest.mark.asyncio
    async def test_correlation_key_ignores_order(self, source, clock):
        stats = CachedMarketStats(source, TTLCache(now_fn=clock))

        await stats.get_correlations(['MSFT', 'AAPL'])
        await stats.get_correlations(['AAPL', 'MSFT'])

        source.get_correlations.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_keys_are_per_symbol_and_window(self, source, clock):
        stats = CachedMarketStats(source, TTLCache(now_fn=clock))

        await stats.get_volume('AAPL')
        await stats.get_volume('MSFT')
        await stats.get_benchmark_return_series(30)
        await stats.get_benchmark_return_series(60)
        await stats.get_benchmark_return()

        assert source.get_volume.await_count == 2
        assert source.get_benchmark_return_series.await_count == 2
        source.get_benchmark_return.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failures_not_cached(self, source, clock):
        source.get_volatility = AsyncMock(side_effect=[DependencyFailure('yahoo', 'down'), 0.3])
        stats = CachedMarketStats(source, TTLCache(now_fn=clock))

        with pytest.raises(DependencyFailure, match="yahoo"):
            await stats.get_volatility('AAPL')

        assert await stats.get_volatility('AAPL') == 0.3
        assert source.get_volatility.await_count == 2

    @pytest.mark.asyncio
    async def test_mutating_result_leaves_cache_intact(self, source, clock):
        """Callers get their own copy of cached maps and series."""
        stats = CachedMarketStats(source, TTLCache(now_fn=clock))

        first = await stats.get_correlations(['AAPL', 'MSFT'])
        first['AAPL-MSFT'] = 0.99
        series = await stats.get_benchmark_return_series(2)
        series.append(0.5)

        assert await stats.get_correlations(['AAPL', 'MSFT']) == {'AAPL-MSFT': 0.5, 'MSFT-AAPL': 0.5}
        assert await stats.get_benchmark_return_series(2) == [0.01, -0.01]
        source.get_correlations.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_mutating_source_value_leaves_cache_intact(self, source, clock):
        shared = {'AAPL-MSFT': 0.5, 'MSFT-AAPL': 0.5}
        source.get_correlations = AsyncMock(return_value=shared)
        stats = CachedMarketStats(source, TTLCache(now_fn=clock))

        await stats.get_correlations(['AAPL', 'MSFT'])
        shared.clear()

        assert await stats.get_correlations(['AAPL', 'MSFT']) == {'AAPL-MSFT': 0.5, 'MSFT-AAPL': 0.5}

    @pytest.mark.asyncio
    async def test_invalidate_symbol_refetches(self, source, clock):
        stats = CachedMarketStats(source, TTLCache(now_fn=clock))

        await stats.get_volatility('AAPL')
        await stats.get_volume('AAPL')
        await stats.get_volatility('MSFT')
        stats.invalidate_symbol('AAPL')
        await stats.get_volatility('AAPL')
        await stats.get_volume('AAPL')
        await stats.get_volatility('MSFT')

        assert source.get_volatility.await_count == 3
        assert source.get_volume.await_count == 2
