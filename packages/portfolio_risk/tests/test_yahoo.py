"""Tests for the Yahoo Finance market-stats source.

The synchronous fetch is patched out, so no network access is needed.
"""

from unittest.mock import patch

import numpy as np
import pandas as pd
import pytest

from portfolio_risk.data import yahoo
from portfolio_risk.data.yahoo import YahooMarketData
from portfolio_risk.errors import DependencyFailure


def _frame(seed: int, periods: int = 80, volume: float = 1_000.0) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    closes = 100 * np.cumprod(1 + rng.normal(0, 0.01, periods))
    return pd.DataFrame({
        'date': pd.bdate_range('2024-01-01', periods=periods).date,
        'close': closes,
        'adj_close': closes,
        'volume': np.full(periods, volume),
    })


def _fake_fetch(frames):
    def fetch(symbol, start_date, end_date):
        return frames.get(symbol)
    return fetch


@pytest.mark.asyncio
async def test_volatility_from_history():
    frames = {'AAPL': _frame(1)}

    with patch.object(yahoo, '_fetch_yahoo_data_sync', side_effect=_fake_fetch(frames)):
        vol = await YahooMarketData().get_volatility('AAPL')

    assert 0.05 < vol < 0.4


@pytest.mark.asyncio
async def test_correlations_both_orderings():
    frames = {'AAPL': _frame(1), 'MSFT': _frame(2)}

    with patch.object(yahoo, '_fetch_yahoo_data_sync', side_effect=_fake_fetch(frames)):
        corr = await YahooMarketData().get_correlations(['AAPL', 'MSFT'])

    assert set(corr) == {'AAPL-MSFT', 'MSFT-AAPL'}
    assert corr['AAPL-MSFT'] == corr['MSFT-AAPL']


@pytest.mark.asyncio
async def test_single_symbol_has_no_correlations():
    assert await YahooMarketData().get_correlations(['AAPL']) == {}


@pytest.mark.asyncio
async def test_volume_is_dollar_volume():
    frame = _frame(3, volume=2_000.0)
    frames = {'AAPL': frame}

    with patch.object(yahoo, '_fetch_yahoo_data_sync', side_effect=_fake_fetch(frames)):
        volume = await YahooMarketData().get_volume('AAPL')

    assert volume == pytest.approx((frame['close'].tail(20) * 2_000.0).mean())


@pytest.mark.asyncio
async def test_benchmark_series_length():
    frames = {'SPY': _frame(4, periods=200)}

    with patch.object(yahoo, '_fetch_yahoo_data_sync', side_effect=_fake_fetch(frames)):
        series = await YahooMarketData(benchmark_symbol='SPY').get_benchmark_return_series(50)

    assert len(series) == 50


@pytest.mark.asyncio
async def test_missing_data_raises_dependency_failure():
    with patch.object(yahoo, '_fetch_yahoo_data_sync', return_value=None):
        with pytest.raises(DependencyFailure, match="no price data for ZZZZ"):
            await YahooMarketData().get_volatility('ZZZZ')


@pytest.mark.asyncio
async def test_fetch_error_raises_dependency_failure():
    with patch.object(yahoo, '_fetch_yahoo_data_sync', side_effect=ConnectionError('timeout')):
        with pytest.raises(DependencyFailure, match="fetch failed for AAPL") as exc_info:
            await YahooMarketData().get_volatility('AAPL')

    assert exc_info.value.collaborator == 'yahoo'
