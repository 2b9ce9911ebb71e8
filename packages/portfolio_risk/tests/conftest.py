"""
Shared test fixtures for the portfolio risk test suite.

Provides consistent test data across all test modules:
- Sample return series (small hand-checked and larger random)
- Sample price DataFrames in the market-data layout
- A sample portfolio with positions
- An in-memory store and seeded synthetic market data wired into a service
"""

from datetime import date, timedelta

import numpy as np
import pandas as pd
import pytest

from portfolio_risk.data.memory import InMemoryPortfolioStore
from portfolio_risk.data.synthetic import SyntheticMarketData
from portfolio_risk.models import HistoricalValue, Portfolio, Position
from portfolio_risk.service import RiskAnalyticsService


@pytest.fixture
def small_returns():
    """Five returns whose 95% VaR tail is the single worst day (-2%)."""
    return [0.02, -0.01, 0.03, -0.02, 0.01]


@pytest.fixture
def sample_returns():
    """252 daily returns drawn from N(0.0005, 0.015).

    Returns:
        np.ndarray: Chronological return series with a fixed seed
    """
    rng = np.random.default_rng(42)
    return rng.normal(0.0005, 0.015, 252)


@pytest.fixture
def sample_prices():
    """Create sample price DataFrames for 3 symbols over 120 trading days.

    Returns:
        Dict[str, pd.DataFrame]: symbol -> DataFrame with date, close, adj_close
    """
    rng = np.random.default_rng(7)
    dates = pd.bdate_range('2024-01-01', periods=120)
    prices = {}

    for i, sym in enumerate(['AAPL', 'MSFT', 'TSLA']):
        base_price = 100 + i * 50
        returns = rng.normal(0.0003, 0.02, len(dates))
        price_series = base_price * np.exp(np.cumsum(returns))
        prices[sym] = pd.DataFrame({
            'date': dates,
            'close': price_series,
            'adj_close': price_series,
        })

    return prices


@pytest.fixture
def sample_positions():
    """Three positions worth 100,000 in total (50% / 30% / 20%)."""
    return [
        Position(symbol='AAPL', quantity=250, current_price=200.0, total_value=50_000.0, asset_id='a1'),
        Position(symbol='MSFT', quantity=75, current_price=400.0, total_value=30_000.0, asset_id='a2'),
        Position(symbol='TSLA', quantity=80, current_price=250.0, total_value=20_000.0, asset_id='a3'),
    ]


@pytest.fixture
def sample_portfolio():
    return Portfolio(id='pf-1', name='Growth', owner_id='user-1', total_value=100_000.0)


@pytest.fixture
def sample_history():
    """Daily values with a 10% dip and partial recovery."""
    start = date(2024, 1, 1)
    values = [100_000, 102_000, 105_000, 99_000, 94_500, 97_000, 101_000, 103_000]
    return [
        HistoricalValue(date=start + timedelta(days=i), value=float(v))
        for i, v in enumerate(values)
    ]


@pytest.fixture
def market():
    """Seeded synthetic market data."""
    return SyntheticMarketData(seed=1234)


@pytest.fixture
def store(sample_portfolio, sample_positions, sample_returns, market):
    """In-memory store holding the sample portfolio and its returns."""
    store = InMemoryPortfolioStore(fallback_returns=market)
    store.add_portfolio(sample_portfolio, sample_positions, returns=sample_returns)
    return store


@pytest.fixture
def service(store, market):
    return RiskAnalyticsService(
        portfolios=store,
        returns=store,
        market=market,
        store=store,
        mc_chunk_size=250,
        mc_max_workers=2,
    )
