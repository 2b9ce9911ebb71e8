"""Yahoo Finance market-stats source.

yfinance is synchronous, so every fetch runs in a worker thread and
multi-symbol requests are fetched concurrently.  A failed or empty fetch is
raised as ``DependencyFailure`` for the service to surface.
"""

from __future__ import annotations

import asyncio
from datetime import date, timedelta
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd
import structlog
import yfinance as yf

from ..errors import DependencyFailure, InvalidInput
from ..risk.correlation import correlation_matrix, correlation_pairs
from ..risk.returns import (
    annualized_volatility_by_symbol,
    build_price_matrix,
    compute_simple_returns,
)

logger = structlog.get_logger(__name__)

# Trading days used for average daily volume
VOLUME_WINDOW = 20


def _fetch_yahoo_data_sync(
    symbol: str,
    start_date: date,
    end_date: date,
) -> pd.DataFrame | None:
    """Synchronous Yahoo Finance data fetch (runs in thread pool).

    Returns DataFrame with columns [date, close, adj_close, volume] or None
    when Yahoo has no data for the symbol.
    """
    ticker = yf.Ticker(symbol)
    df = ticker.history(
        start=start_date,
        end=end_date,
        auto_adjust=False,  # We want both Close and Adj Close
    )

    if df.empty:
        logger.warning("yahoo_no_data", symbol=symbol)
        return None

    df = df.reset_index()

    col_map = {}
    if "Date" in df.columns:
        col_map["Date"] = "date"
    if "Close" in df.columns:
        col_map["Close"] = "close"
    if "Volume" in df.columns:
        col_map["Volume"] = "volume"
    # Handle different yfinance versions for adjusted close
    if "Adj Close" in df.columns:
        col_map["Adj Close"] = "adj_close"
    elif "Adjusted Close" in df.columns:
        col_map["Adjusted Close"] = "adj_close"

    df = df.rename(columns=col_map)
    df["date"] = pd.to_datetime(df["date"]).dt.date

    if "adj_close" not in df.columns:
        df["adj_close"] = df["close"]
    if "volume" not in df.columns:
        df["volume"] = np.nan

    df = df[["date", "close", "adj_close", "volume"]]

    logger.debug(
        "yahoo_fetch_success",
        symbol=symbol,
        rows=len(df),
        start=df["date"].min(),
        end=df["date"].max(),
    )
    return df


class YahooMarketData:
    """Market statistics computed from Yahoo Finance daily history."""

    def __init__(
        self,
        risk_free_rate: float = 0.045,
        benchmark_symbol: str = "SPY",
        lookback_days: int = 365,
    ) -> None:
        self._risk_free_rate = risk_free_rate
        self._benchmark_symbol = benchmark_symbol
        self._lookback_days = lookback_days

    async def _history(self, symbol: str, days: int | None = None) -> pd.DataFrame:
        days = days or self._lookback_days
        # yfinance 'end' param is exclusive, so add 1 day to include today
        end_date = date.today() + timedelta(days=1)
        start_date = end_date - timedelta(days=days + 1)

        try:
            df = await asyncio.to_thread(_fetch_yahoo_data_sync, symbol, start_date, end_date)
        except Exception as e:
            logger.error("yahoo_fetch_error", symbol=symbol, error=str(e), exc_info=True)
            raise DependencyFailure("yahoo", f"fetch failed for {symbol}: {e}") from e

        if df is None or df.empty:
            raise DependencyFailure("yahoo", f"no price data for {symbol}")
        return df

    async def _histories(self, symbols: Sequence[str]) -> Dict[str, pd.DataFrame]:
        frames = await asyncio.gather(*(self._history(s) for s in symbols))
        return dict(zip(symbols, frames))

    async def get_volatility(self, symbol: str) -> float:
        history = await self._history(symbol)
        returns = compute_simple_returns(build_price_matrix({symbol: history}))
        vols = annualized_volatility_by_symbol(returns)
        if symbol not in vols:
            raise DependencyFailure("yahoo", f"insufficient history for {symbol}")
        return vols[symbol]

    async def get_correlations(self, symbols: Sequence[str]) -> Dict[str, float]:
        unique = list(dict.fromkeys(symbols))
        if len(unique) < 2:
            return {}

        histories = await self._histories(unique)
        returns = compute_simple_returns(build_price_matrix(histories))
        try:
            corr = correlation_matrix(returns)
        except InvalidInput as e:
            raise DependencyFailure("yahoo", str(e)) from e

        logger.info("yahoo_correlations_computed", symbols=list(corr.columns))
        return correlation_pairs(corr)

    async def get_volume(self, symbol: str) -> float:
        """Average daily dollar volume over the last VOLUME_WINDOW sessions."""
        history = (await self._history(symbol)).dropna(subset=["close", "volume"])
        recent = history.tail(VOLUME_WINDOW)
        if recent.empty:
            raise DependencyFailure("yahoo", f"no volume data for {symbol}")
        return float((recent["close"] * recent["volume"]).mean())

    async def get_risk_free_rate(self) -> float:
        return self._risk_free_rate

    async def get_benchmark_return(self) -> float:
        history = await self._history(self._benchmark_symbol)
        prices = history["adj_close"].dropna()
        if len(prices) < 2:
            raise DependencyFailure("yahoo", f"insufficient history for {self._benchmark_symbol}")
        return float(prices.iloc[-1] / prices.iloc[0] - 1)

    async def get_benchmark_return_series(self, days: int) -> List[float]:
        # Calendar padding so that ``days`` trading sessions are covered
        history = await self._history(self._benchmark_symbol, days=int(days * 7 / 5) + 10)
        matrix = build_price_matrix({self._benchmark_symbol: history}, min_history=2)
        returns = compute_simple_returns(matrix)[self._benchmark_symbol]
        return returns.tail(days).tolist()
