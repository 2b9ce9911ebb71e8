"""Synthetic market data for local runs, demos and tests.

Every draw comes from a generator derived from (seed, key), so a seeded
instance answers the same question with the same number no matter how often
or in which order it is asked.  Without a seed a random one is picked once
per instance.
"""

from __future__ import annotations

import zlib
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
import structlog

from ..models import HistoricalValue
from ..risk.correlation import pair_key
from ..risk.returns import (
    annualized_volatility_by_symbol,
    build_price_matrix,
    compute_simple_returns,
)

logger = structlog.get_logger(__name__)

BASE_PRICES: Dict[str, float] = {
    "AAPL": 180.0,
    "GOOGL": 140.0,
    "MSFT": 380.0,
    "AMZN": 170.0,
    "TSLA": 250.0,
    "BTC": 45000.0,
    "ETH": 2500.0,
    "SPY": 450.0,
}

BASE_VOLUMES: Dict[str, float] = {
    "AAPL": 50_000_000.0,
    "GOOGL": 20_000_000.0,
    "MSFT": 30_000_000.0,
    "AMZN": 25_000_000.0,
    "TSLA": 40_000_000.0,
    "BTC": 10_000_000.0,
    "ETH": 5_000_000.0,
    "SPY": 80_000_000.0,
}

DEFAULT_VOLUME = 1_000_000.0

# Daily returns are uniform on [-RETURN_SPREAD / 2, RETURN_SPREAD / 2)
RETURN_SPREAD = 0.04

# Correlations are uniform on [CORRELATION_FLOOR, CORRELATION_FLOOR + CORRELATION_RANGE)
CORRELATION_FLOOR = 0.3
CORRELATION_RANGE = 0.5

VOLUME_JITTER = 0.2


class SyntheticMarketData:
    """Seedable stand-in for a market-data provider.

    Implements the market-stats interface plus ``get_return_series`` so it
    can also back portfolios that have no stored return history.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        risk_free_rate: float = 0.045,
        benchmark_return: float = 0.10,
        benchmark_symbol: str = "SPY",
        lookback_days: int = 252,
    ) -> None:
        if seed is None:
            seed = int(np.random.SeedSequence().entropy % (2**63))
        self._seed = seed
        self._risk_free_rate = risk_free_rate
        self._benchmark_return = benchmark_return
        self._benchmark_symbol = benchmark_symbol
        self._lookback_days = lookback_days

    def _rng(self, key: str) -> np.random.Generator:
        return np.random.default_rng([self._seed, zlib.crc32(key.encode("utf-8"))])

    def _daily_returns(self, key: str, days: int) -> np.ndarray:
        return (self._rng(key).random(days) - 0.5) * RETURN_SPREAD

    def base_price(self, symbol: str) -> float:
        if symbol in BASE_PRICES:
            return BASE_PRICES[symbol]
        return float(100 + self._rng(f"price:{symbol}").random() * 200)

    def price_history(self, symbol: str, days: Optional[int] = None) -> pd.DataFrame:
        """Random-walk closes ending at the symbol's base price.

        Returns:
            DataFrame with columns [date, close, adj_close], one row per
            business day, ``days + 1`` rows
        """
        days = days or self._lookback_days
        returns = self._daily_returns(f"history:{symbol}", days)

        # Walk backwards from today's price so the last close is the base price
        growth = np.concatenate([[1.0], np.cumprod(1.0 + returns)])
        closes = self.base_price(symbol) * growth / growth[-1]

        dates = pd.bdate_range(end=pd.Timestamp(date.today()), periods=days + 1)
        return pd.DataFrame({
            "date": dates.date,
            "close": closes,
            "adj_close": closes,
        })

    async def get_volatility(self, symbol: str) -> float:
        history = self.price_history(symbol)
        matrix = build_price_matrix({symbol: history})
        vols = annualized_volatility_by_symbol(compute_simple_returns(matrix))
        return vols[symbol]

    async def get_correlations(self, symbols: Sequence[str]) -> Dict[str, float]:
        correlations: Dict[str, float] = {}
        unique = list(dict.fromkeys(symbols))
        for i, a in enumerate(unique):
            for b in unique[i + 1:]:
                first, second = sorted((a, b))
                draw = self._rng(f"corr:{first}:{second}").random()
                corr = float(CORRELATION_FLOOR + draw * CORRELATION_RANGE)
                correlations[pair_key(a, b)] = corr
                correlations[pair_key(b, a)] = corr
        return correlations

    async def get_volume(self, symbol: str) -> float:
        base = BASE_VOLUMES.get(symbol, DEFAULT_VOLUME)
        jitter = self._rng(f"volume:{symbol}").random() - 0.5
        return float(base * (1 + jitter * VOLUME_JITTER))

    async def get_risk_free_rate(self) -> float:
        return self._risk_free_rate

    async def get_benchmark_return(self) -> float:
        return self._benchmark_return

    async def get_benchmark_return_series(self, days: int) -> List[float]:
        return self._daily_returns(f"history:{self._benchmark_symbol}", days).tolist()

    async def get_return_series(self, portfolio_id: str, days: int) -> List[float]:
        returns = self._daily_returns(f"portfolio:{portfolio_id}", days)
        logger.debug("synthetic_returns_generated", portfolio_id=portfolio_id, days=days)
        return returns.tolist()

    async def get_historical_values(
        self,
        portfolio_id: str,
        start: date,
        end: date,
        end_value: float = 100_000.0,
    ) -> List[HistoricalValue]:
        """Daily values over [start, end] rebuilt from the synthetic returns."""

        days = max((end - start).days, 1)
        returns = self._daily_returns(f"portfolio:{portfolio_id}", days)
        growth = np.concatenate([[1.0], np.cumprod(1.0 + returns)])
        values = end_value * growth / growth[-1]

        return [
            HistoricalValue(date=start + timedelta(days=i), value=float(v))
            for i, v in enumerate(values)
        ]
