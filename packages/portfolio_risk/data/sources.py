"""Collaborator interfaces consumed by the risk service.

The service depends only on these protocols.  Market data has two
interchangeable strategies (synthetic and Yahoo Finance); portfolios and
snapshots come from a store (in-memory or SQL).
"""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from ..models import HistoricalValue, Portfolio, Position, RiskLimits, RiskMetrics


@runtime_checkable
class PortfolioSource(Protocol):
    async def get_portfolio(self, portfolio_id: str) -> Optional[Portfolio]:
        """Return the portfolio, or None when it does not exist."""
        ...

    async def get_positions(self, portfolio_id: str) -> List[Position]:
        ...


@runtime_checkable
class ReturnSeriesSource(Protocol):
    async def get_return_series(self, portfolio_id: str, days: int) -> List[float]:
        """Chronological periodic returns covering roughly ``days`` days."""
        ...

    async def get_historical_values(
        self,
        portfolio_id: str,
        start: date,
        end: date,
    ) -> List[HistoricalValue]:
        ...


@runtime_checkable
class MarketStatsSource(Protocol):
    async def get_volatility(self, symbol: str) -> float:
        """Annualized volatility of ``symbol``."""
        ...

    async def get_correlations(self, symbols: Sequence[str]) -> Dict[str, float]:
        """Pairwise correlations keyed ``"A-B"`` (both orderings)."""
        ...

    async def get_volume(self, symbol: str) -> float:
        """Average daily dollar volume of ``symbol``."""
        ...

    async def get_risk_free_rate(self) -> float:
        ...

    async def get_benchmark_return(self) -> float:
        """Annual benchmark return."""
        ...

    async def get_benchmark_return_series(self, days: int) -> List[float]:
        ...


@runtime_checkable
class RiskStore(Protocol):
    async def save_metrics(self, metrics: RiskMetrics) -> None:
        ...

    async def find_latest_metrics(self, portfolio_id: str) -> Optional[RiskMetrics]:
        ...

    async def save_limits(self, portfolio_id: str, limits: RiskLimits) -> RiskLimits:
        """Persist limits and return them with ``id`` and ``created_at`` set."""
        ...
