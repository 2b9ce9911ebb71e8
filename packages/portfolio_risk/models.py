"""Pydantic value types for the risk analytics engine.

Inputs (portfolios, positions, scenarios, limits) are plain models with
validated construction.  Computed snapshots are frozen: every recomputation
produces a new object with its own timestamp.
"""

from __future__ import annotations

import datetime as dt
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    EXTREME = "EXTREME"


class TimeHorizon(str, Enum):
    ONE_DAY = "1D"
    ONE_WEEK = "1W"
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"

    @property
    def days(self) -> int:
        """Calendar-day count used to size simulations and lookbacks."""
        return _HORIZON_DAYS[self]


_HORIZON_DAYS = {
    TimeHorizon.ONE_DAY: 1,
    TimeHorizon.ONE_WEEK: 7,
    TimeHorizon.ONE_MONTH: 30,
    TimeHorizon.THREE_MONTHS: 90,
    TimeHorizon.SIX_MONTHS: 180,
    TimeHorizon.ONE_YEAR: 365,
}


class ReportType(str, Enum):
    SUMMARY = "SUMMARY"
    DETAILED = "DETAILED"
    REGULATORY = "REGULATORY"


# ---------------------------------------------------------------------------
# Portfolio inputs
# ---------------------------------------------------------------------------


class Portfolio(BaseModel):
    """Read-only snapshot of a portfolio as seen by the engine."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    owner_id: str | None = None
    total_value: float = Field(gt=0)


class Position(BaseModel):
    """A single holding.  ``current_price`` may be missing for stale symbols."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    quantity: float
    current_price: float | None = None
    total_value: float
    allocation_pct: float | None = None
    asset_id: str | None = None


class HistoricalValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: dt.date
    value: float


# ---------------------------------------------------------------------------
# Risk metrics
# ---------------------------------------------------------------------------


class RiskMetrics(BaseModel):
    """Immutable risk snapshot produced by the metrics calculator."""

    model_config = ConfigDict(frozen=True)

    portfolio_id: str
    calculated_at: datetime = Field(default_factory=utc_now)
    time_horizon: TimeHorizon
    confidence_level: float = Field(gt=0, lt=1)
    observations: int

    value_at_risk: float
    conditional_var: float
    expected_shortfall: float

    volatility: float
    annualized_volatility: float
    downside_volatility: float

    sharpe_ratio: float
    sortino_ratio: float
    calmar_ratio: float
    treynor_ratio: float | None = None

    # None when no benchmark return series was available
    beta: float | None = None
    alpha: float | None = None
    jensen_alpha: float | None = None

    max_drawdown: float
    current_drawdown: float

    correlations: dict[str, float] = Field(default_factory=dict)

    risk_score: float = Field(ge=0, le=100)
    risk_level: RiskLevel


class PositionRisk(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    asset_id: str | None = None
    exposure: float
    percentage_of_portfolio: float
    volatility: float
    individual_var: float
    marginal_var: float
    component_var: float
    incremental_var: float
    concentration_risk: float


# ---------------------------------------------------------------------------
# Stress testing
# ---------------------------------------------------------------------------


class StressScenario(BaseModel):
    """Named market-wide shock.  ``market_change`` is a percentage."""

    model_config = ConfigDict(frozen=True)

    name: str
    market_change: float = Field(ge=-100, le=100)
    volatility_multiplier: float = Field(gt=0)
    correlation_shock: float = Field(default=0.0, ge=-1, le=1)
    duration: TimeHorizon = TimeHorizon.ONE_MONTH


class AssetImpact(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    current_value: float
    stressed_value: float
    loss: float
    loss_percentage: float


class StressedMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    volatility: float
    var: float
    max_drawdown: float


class StressTestResult(BaseModel):
    """Outcome of one scenario.  ``error`` is set when it could not be run."""

    model_config = ConfigDict(frozen=True)

    scenario_name: str
    portfolio_value: float | None = None
    portfolio_loss: float | None = None
    loss_percentage: float | None = None
    asset_impacts: list[AssetImpact] = Field(default_factory=list)
    metrics_under_stress: StressedMetrics | None = None
    severity: RiskLevel | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Monte Carlo
# ---------------------------------------------------------------------------


class SimulationPath(BaseModel):
    model_config = ConfigDict(frozen=True)

    simulation_id: int
    final_value: float
    max_value: float
    min_value: float
    path: list[float]


class SimulationOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: float
    probability: float


class MonteCarloResults(BaseModel):
    model_config = ConfigDict(frozen=True)

    expected_return: float
    expected_volatility: float
    percentiles: dict[int, float]
    probability_of_loss: float = Field(ge=0, le=1)
    best_case: SimulationOutcome
    worst_case: SimulationOutcome
    most_likely: SimulationOutcome
    paths: list[SimulationPath]


class MonteCarloSimulation(BaseModel):
    model_config = ConfigDict(frozen=True)

    portfolio_id: str
    num_simulations: int
    time_horizon: TimeHorizon
    days: int
    results: MonteCarloResults


# ---------------------------------------------------------------------------
# Liquidity
# ---------------------------------------------------------------------------


class AssetLiquidity(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    value: float
    average_daily_volume: float
    days_to_liquidate: float
    market_impact: float
    liquidity_score: float


class LiquiditySummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    liquidity_score: float
    days_to_liquidate: float
    immediately_liquid: float
    liquid_within_1_day: float
    liquid_within_1_week: float
    illiquid: float


class StressedLiquidity(BaseModel):
    model_config = ConfigDict(frozen=True)

    market_stress: float
    volume_reduction: float
    spread_widening: float
    days_to_liquidate: float
    estimated_cost: float


class LiquidityRisk(BaseModel):
    model_config = ConfigDict(frozen=True)

    portfolio_id: str
    overall: LiquiditySummary
    by_asset: list[AssetLiquidity]
    stressed_liquidity: StressedLiquidity


# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------


class RiskLimits(BaseModel):
    """Threshold configuration.  Range checks live in ``risk.limits``."""

    max_drawdown: float | None = None
    max_var: float | None = None
    max_volatility: float | None = None
    min_sharpe_ratio: float | None = None
    max_concentration: float | None = None
    max_leverage: float | None = None

    id: str | None = None
    portfolio_id: str | None = None
    active: bool = True
    created_at: datetime | None = None


class RiskBreach(BaseModel):
    model_config = ConfigDict(frozen=True)

    limit_type: str
    current_value: float
    limit_value: float
    breach_amount: float
    # Relative to |limit|; None when the limit is zero
    breach_percentage: float | None
    breached_at: datetime = Field(default_factory=utc_now)


class LimitCheckResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    breaches: list[RiskBreach]
    all_within_limits: bool


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class DayMove(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: dt.date | None = None
    amount: float = 0.0


class KupiecTest(BaseModel):
    model_config = ConfigDict(frozen=True)

    statistic: float
    lr_statistic: float
    p_value: float
    passed: bool


class VarBacktest(BaseModel):
    model_config = ConfigDict(frozen=True)

    observations: int
    violations: int
    expected_violations: float
    kupiec_test: KupiecTest


class HistoricalAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    worst_day: DayMove
    best_day: DayMove
    var_backtest: VarBacktest | None = None


class ExecutiveSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    overall_risk_level: RiskLevel
    risk_score: float
    key_risks: list[str]
    recommendations: list[str]


class ReportPeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: dt.date
    end: dt.date


class RiskReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    portfolio_id: str
    report_type: ReportType
    generated_at: datetime = Field(default_factory=utc_now)
    period: ReportPeriod
    executive_summary: ExecutiveSummary
    metrics: RiskMetrics
    position_risks: list[PositionRisk]
    stress_tests: list[StressTestResult] = Field(default_factory=list)
    historical_analysis: HistoricalAnalysis
