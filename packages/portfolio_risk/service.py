"""Risk analytics service: async orchestration of collaborators and computations.

The service resolves portfolios, fetches return and market data concurrently,
hands plain data to the pure ``risk`` functions and persists snapshots.  Any
collaborator failure is logged and re-raised as ``DependencyFailure``; input
problems surface as ``InvalidInput`` / ``InvalidConfiguration`` from the
computations themselves.
"""

from __future__ import annotations

import asyncio
from datetime import date, timedelta
from typing import Any, Awaitable, Dict, Iterable, List, Optional, TypeVar

import numpy as np
import structlog

from .config import Settings, build_market_data
from .errors import DependencyFailure, InvalidInput, NotFound, RiskEngineError
from .models import (
    HistoricalValue,
    LimitCheckResult,
    LiquidityRisk,
    MonteCarloSimulation,
    Portfolio,
    Position,
    PositionRisk,
    ReportPeriod,
    ReportType,
    RiskLimits,
    RiskMetrics,
    RiskReport,
    StressScenario,
    StressTestResult,
    TimeHorizon,
)
from .data.sources import MarketStatsSource, PortfolioSource, ReturnSeriesSource, RiskStore
from .risk import liquidity, limits as limit_monitor, metrics as risk_metrics
from .risk import monte_carlo, positions as position_risk, report as risk_report, stress

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Trading days of returns used for metrics, simulations and backtests
DEFAULT_LOOKBACK_DAYS = 252

# Snapshot parameters used when a report or limit check finds none stored
DEFAULT_HORIZON = TimeHorizon.ONE_MONTH
DEFAULT_CONFIDENCE = 0.95


class RiskAnalyticsService:
    """External interface of the risk engine.

    Args:
        portfolios: Resolves portfolios and their positions
        returns: Supplies return series and value histories
        market: Market statistics (volatility, correlation, volume, rates)
        store: Snapshot and limit persistence
        lookback_days: Length of the return series requested per portfolio
        mc_chunk_size: Monte Carlo simulations per work unit
        mc_max_workers: Monte Carlo thread count (None = CPU count)
        mc_path_sample: Monte Carlo paths retained for inspection
        mc_max_simulations: Upper bound on simulations per request
    """

    def __init__(
        self,
        portfolios: PortfolioSource,
        returns: ReturnSeriesSource,
        market: MarketStatsSource,
        store: RiskStore,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        mc_chunk_size: int = monte_carlo.DEFAULT_CHUNK_SIZE,
        mc_max_workers: Optional[int] = None,
        mc_path_sample: int = monte_carlo.DEFAULT_PATH_SAMPLE,
        mc_max_simulations: int = monte_carlo.MAX_SIMULATIONS,
    ) -> None:
        self._portfolios = portfolios
        self._returns = returns
        self._market = market
        self._store = store
        self._lookback_days = lookback_days
        self._mc_chunk_size = mc_chunk_size
        self._mc_max_workers = mc_max_workers
        self._mc_path_sample = mc_path_sample
        self._mc_max_simulations = mc_max_simulations

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        portfolios: PortfolioSource,
        returns: ReturnSeriesSource,
        store: RiskStore,
        market: Optional[MarketStatsSource] = None,
    ) -> "RiskAnalyticsService":
        """Build a service wired to the configured market-data strategy."""
        return cls(
            portfolios=portfolios,
            returns=returns,
            market=market or build_market_data(settings),
            store=store,
            mc_chunk_size=settings.MONTE_CARLO_CHUNK_SIZE,
            mc_max_workers=settings.MONTE_CARLO_MAX_WORKERS or None,
            mc_path_sample=settings.MONTE_CARLO_PATH_SAMPLE,
            mc_max_simulations=settings.MONTE_CARLO_MAX_SIMULATIONS,
        )

    # ------------------------------------------------------------------
    # Collaborator access
    # ------------------------------------------------------------------

    async def _call(self, collaborator: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except RiskEngineError:
            raise
        except Exception as e:
            logger.exception("collaborator_failed", collaborator=collaborator)
            raise DependencyFailure(collaborator, str(e)) from e

    async def _require_portfolio(self, portfolio_id: str) -> Portfolio:
        portfolio = await self._call("get_portfolio", self._portfolios.get_portfolio(portfolio_id))
        if portfolio is None:
            raise NotFound(f"Portfolio not found: {portfolio_id}")
        return portfolio

    async def _return_series(self, portfolio_id: str) -> List[float]:
        return await self._call(
            "get_return_series",
            self._returns.get_return_series(portfolio_id, self._lookback_days),
        )

    async def _values(self, portfolio_id: str, start: date, end: date) -> List[HistoricalValue]:
        return await self._call(
            "get_historical_values",
            self._returns.get_historical_values(portfolio_id, start, end),
        )

    async def _per_symbol(
        self,
        collaborator: str,
        fetch,
        symbols: Iterable[str],
    ) -> Dict[str, float]:
        """Per-symbol market statistic; unresolvable symbols are left out.

        Callers fall back to their own default for missing symbols, so one
        symbol without market data does not fail the whole operation.
        """

        async def lookup(symbol: str) -> Optional[float]:
            try:
                return await fetch(symbol)
            except Exception as e:
                logger.warning(
                    "market_stat_unavailable",
                    collaborator=collaborator,
                    symbol=symbol,
                    error=str(e),
                )
                return None

        unique = list(dict.fromkeys(symbols))
        values = await asyncio.gather(*(lookup(s) for s in unique))
        return {s: v for s, v in zip(unique, values) if v is not None}

    async def _latest_or_new_metrics(self, portfolio_id: str) -> RiskMetrics:
        latest = await self._call("find_latest_metrics", self._store.find_latest_metrics(portfolio_id))
        if latest is not None:
            return latest
        logger.info("risk_metrics_missing_computing", portfolio_id=portfolio_id)
        return await self.calculate_risk_metrics(portfolio_id, DEFAULT_HORIZON, DEFAULT_CONFIDENCE)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def calculate_risk_metrics(
        self,
        portfolio_id: str,
        time_horizon: TimeHorizon = DEFAULT_HORIZON,
        confidence_level: float = DEFAULT_CONFIDENCE,
        include_correlations: bool = False,
    ) -> RiskMetrics:
        """Compute, persist and return a fresh risk snapshot."""
        portfolio = await self._require_portfolio(portfolio_id)

        today = date.today()
        returns, positions, history = await asyncio.gather(
            self._return_series(portfolio_id),
            self._call("get_positions", self._portfolios.get_positions(portfolio_id)),
            self._values(portfolio_id, today - timedelta(days=self._lookback_days), today),
        )
        if len(returns) < 2:
            raise InvalidInput(
                f"Portfolio {portfolio_id} has {len(returns)} returns, at least 2 are required"
            )

        lookups: List[Awaitable[Any]] = [
            self._call("get_risk_free_rate", self._market.get_risk_free_rate()),
            self._call("get_benchmark_return", self._market.get_benchmark_return()),
            self._call(
                "get_benchmark_return_series",
                self._market.get_benchmark_return_series(len(returns)),
            ),
        ]
        symbols = [p.symbol for p in positions]
        if include_correlations and len(symbols) > 1:
            lookups.append(self._call("get_correlations", self._market.get_correlations(symbols)))

        results = await asyncio.gather(*lookups)
        risk_free_rate, benchmark_return, benchmark_returns = results[:3]
        correlations = results[3] if len(results) > 3 else {}

        if benchmark_returns and len(benchmark_returns) != len(returns):
            logger.warning(
                "benchmark_series_misaligned",
                portfolio_id=portfolio_id,
                returns=len(returns),
                benchmark=len(benchmark_returns),
            )
            benchmark_returns = None

        values = [h.value for h in history] if len(history) > 1 else None

        snapshot = risk_metrics.calculate_risk_metrics(
            portfolio_id=portfolio_id,
            portfolio_value=portfolio.total_value,
            returns=returns,
            confidence=confidence_level,
            time_horizon=time_horizon,
            risk_free_rate=risk_free_rate,
            benchmark_return=benchmark_return,
            benchmark_returns=benchmark_returns or None,
            values=values,
            correlations=correlations,
        )

        await self._call("save_metrics", self._store.save_metrics(snapshot))
        logger.info(
            "risk_metrics_calculated",
            portfolio_id=portfolio_id,
            risk_level=snapshot.risk_level.value,
        )
        return snapshot

    async def calculate_position_risks(self, portfolio_id: str) -> List[PositionRisk]:
        portfolio = await self._require_portfolio(portfolio_id)
        positions = await self._call("get_positions", self._portfolios.get_positions(portfolio_id))
        volatilities = await self._per_symbol(
            "get_volatility", self._market.get_volatility, (p.symbol for p in positions)
        )
        return position_risk.calculate_position_risks(positions, portfolio.total_value, volatilities)

    async def run_stress_tests(
        self,
        portfolio_id: str,
        scenarios: Optional[List[StressScenario]] = None,
    ) -> List[StressTestResult]:
        """Run scenarios (the default library when omitted) against holdings."""
        portfolio = await self._require_portfolio(portfolio_id)
        positions = await self._call("get_positions", self._portfolios.get_positions(portfolio_id))
        return stress.run_stress_tests(positions, portfolio.total_value, scenarios)

    async def set_risk_limits(self, portfolio_id: str, limits: RiskLimits) -> RiskLimits:
        await self._require_portfolio(portfolio_id)
        limit_monitor.validate_limits(limits)
        stored = await self._call("save_limits", self._store.save_limits(portfolio_id, limits))
        logger.info("risk_limits_set", portfolio_id=portfolio_id, limits_id=stored.id)
        return stored

    async def check_risk_limits(self, portfolio_id: str, limits: RiskLimits) -> LimitCheckResult:
        """Check the latest snapshot (computed if none is stored) against limits."""
        await self._require_portfolio(portfolio_id)
        limit_monitor.validate_limits(limits)

        snapshot = await self._latest_or_new_metrics(portfolio_id)

        position_risks = None
        if limits.max_concentration is not None or limits.max_leverage is not None:
            position_risks = await self.calculate_position_risks(portfolio_id)

        return limit_monitor.check_risk_limits(snapshot, limits, position_risks)

    async def run_monte_carlo_simulation(
        self,
        portfolio_id: str,
        num_simulations: int,
        time_horizon: TimeHorizon,
        rng: Optional[np.random.Generator] = None,
    ) -> MonteCarloSimulation:
        """Simulate value paths off the event loop.

        Pass a seeded ``numpy.random.Generator`` for reproducible output.
        """
        portfolio = await self._require_portfolio(portfolio_id)
        returns = await self._return_series(portfolio_id)

        return await asyncio.to_thread(
            monte_carlo.run_monte_carlo,
            portfolio_id,
            portfolio.total_value,
            returns,
            num_simulations,
            time_horizon,
            rng,
            self._mc_chunk_size,
            self._mc_path_sample,
            self._mc_max_workers,
            self._mc_max_simulations,
        )

    async def calculate_liquidity_risk(self, portfolio_id: str) -> LiquidityRisk:
        portfolio = await self._require_portfolio(portfolio_id)
        positions: List[Position] = await self._call(
            "get_positions", self._portfolios.get_positions(portfolio_id)
        )
        volumes = await self._per_symbol(
            "get_volume", self._market.get_volume, (p.symbol for p in positions)
        )
        return liquidity.calculate_liquidity_risk(
            portfolio_id, positions, portfolio.total_value, volumes
        )

    async def generate_risk_report(
        self,
        portfolio_id: str,
        report_type: ReportType,
        start_date: date,
        end_date: date,
    ) -> RiskReport:
        """Assemble a report over [start_date, end_date].

        DETAILED and REGULATORY reports include the default stress scenarios;
        REGULATORY reports add a VaR backtest.
        """
        if end_date < start_date:
            raise InvalidInput(f"Report period ends ({end_date}) before it starts ({start_date})")

        portfolio = await self._require_portfolio(portfolio_id)
        period = ReportPeriod(start=start_date, end=end_date)

        snapshot = await self._latest_or_new_metrics(portfolio_id)

        position_risks, history, returns = await asyncio.gather(
            self.calculate_position_risks(portfolio_id),
            self._values(portfolio_id, start_date, end_date),
            self._return_series(portfolio_id),
        )

        stress_tests: List[StressTestResult] = []
        if report_type in (ReportType.DETAILED, ReportType.REGULATORY):
            stress_tests = await self.run_stress_tests(portfolio_id)

        report = risk_report.build_risk_report(
            portfolio_id=portfolio_id,
            report_type=report_type,
            period=period,
            metrics=snapshot,
            position_risks=position_risks,
            history=history,
            returns=returns,
            portfolio_value=portfolio.total_value,
            stress_tests=stress_tests,
        )

        logger.info(
            "risk_report_generated",
            portfolio_id=portfolio_id,
            report_id=report.id,
            report_type=report_type.value,
        )
        return report
