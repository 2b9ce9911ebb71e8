"""In-memory portfolio store for tests and local runs.

Holds portfolios, positions, return series, value histories, snapshots and
limits in dictionaries.  Portfolios without a stored return series can fall
back to another return source (typically ``SyntheticMarketData``).
"""

from __future__ import annotations

import asyncio
import uuid
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

import numpy as np
import structlog

from ..models import HistoricalValue, Portfolio, Position, RiskLimits, RiskMetrics, utc_now
from .sources import ReturnSeriesSource

logger = structlog.get_logger(__name__)


class InMemoryPortfolioStore:
    """Portfolio source, return source and risk store in one object."""

    def __init__(self, fallback_returns: Optional[ReturnSeriesSource] = None) -> None:
        self._portfolios: Dict[str, Portfolio] = {}
        self._positions: Dict[str, List[Position]] = {}
        self._returns: Dict[str, List[float]] = {}
        self._history: Dict[str, List[HistoricalValue]] = {}
        self._metrics: Dict[str, List[RiskMetrics]] = defaultdict(list)
        self._limits: Dict[str, RiskLimits] = {}
        self._fallback = fallback_returns
        self._lock = asyncio.Lock()

    # -- seeding -----------------------------------------------------------

    def add_portfolio(
        self,
        portfolio: Portfolio,
        positions: Sequence[Position] = (),
        returns: Optional[Sequence[float]] = None,
        history: Optional[Sequence[HistoricalValue]] = None,
    ) -> None:
        self._portfolios[portfolio.id] = portfolio
        self._positions[portfolio.id] = list(positions)
        if returns is not None:
            self._returns[portfolio.id] = [float(r) for r in returns]
        if history is not None:
            self._history[portfolio.id] = sorted(history, key=lambda h: h.date)

    # -- PortfolioSource ---------------------------------------------------

    async def get_portfolio(self, portfolio_id: str) -> Optional[Portfolio]:
        return self._portfolios.get(portfolio_id)

    async def get_positions(self, portfolio_id: str) -> List[Position]:
        return list(self._positions.get(portfolio_id, []))

    # -- ReturnSeriesSource ------------------------------------------------

    async def get_return_series(self, portfolio_id: str, days: int) -> List[float]:
        stored = self._returns.get(portfolio_id)
        if stored is not None:
            return stored[-days:] if days > 0 else list(stored)

        history = self._history.get(portfolio_id)
        if history and len(history) > 1:
            values = np.array([h.value for h in history], dtype=float)
            returns = (np.diff(values) / values[:-1]).tolist()
            return returns[-days:] if days > 0 else returns

        if self._fallback is not None:
            logger.info("return_series_fallback", portfolio_id=portfolio_id, days=days)
            return await self._fallback.get_return_series(portfolio_id, days)

        return []

    async def get_historical_values(
        self,
        portfolio_id: str,
        start: date,
        end: date,
    ) -> List[HistoricalValue]:
        """Stored values in [start, end]; otherwise a path rebuilt from returns.

        The rebuilt path ends at the portfolio's current total value and has
        one point per calendar day.
        """
        stored = self._history.get(portfolio_id)
        if stored is not None:
            return [h for h in stored if start <= h.date <= end]

        portfolio = self._portfolios.get(portfolio_id)
        if portfolio is None:
            return []

        days = max((end - start).days, 1)
        returns = await self.get_return_series(portfolio_id, days)
        if not returns:
            return []

        growth = np.concatenate([[1.0], np.cumprod(1.0 + np.asarray(returns, dtype=float))])
        values = portfolio.total_value * growth / growth[-1]
        first = end - timedelta(days=len(values) - 1)

        return [
            HistoricalValue(date=first + timedelta(days=i), value=float(v))
            for i, v in enumerate(values)
        ]

    # -- RiskStore ---------------------------------------------------------

    async def save_metrics(self, metrics: RiskMetrics) -> None:
        async with self._lock:
            self._metrics[metrics.portfolio_id].append(metrics)

    async def find_latest_metrics(self, portfolio_id: str) -> Optional[RiskMetrics]:
        async with self._lock:
            snapshots = self._metrics.get(portfolio_id)
            if not snapshots:
                return None
            return max(snapshots, key=lambda m: m.calculated_at)

    async def save_limits(self, portfolio_id: str, limits: RiskLimits) -> RiskLimits:
        stored = limits.model_copy(update={
            "id": limits.id or str(uuid.uuid4()),
            "portfolio_id": portfolio_id,
            "created_at": limits.created_at or utc_now(),
        })
        async with self._lock:
            self._limits[portfolio_id] = stored
        return stored

    async def get_limits(self, portfolio_id: str) -> Optional[RiskLimits]:
        return self._limits.get(portfolio_id)
