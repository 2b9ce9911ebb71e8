"""
Stress Testing Module

Applies named market-wide shock scenarios to current holdings and measures
the resulting loss and severity.  The shock is uniform across positions;
scenarios are evaluated independently and a failing scenario is reported on
its own result rather than aborting the batch.
"""

import numpy as np
import structlog
from typing import Dict, Iterable, List, Optional

from ..errors import InvalidInput
from ..models import (
    AssetImpact,
    Position,
    RiskLevel,
    StressedMetrics,
    StressScenario,
    StressTestResult,
    TimeHorizon,
)

logger = structlog.get_logger(__name__)

# Baseline annualized volatility scaled by each scenario's multiplier
BASELINE_VOLATILITY = 0.30
Z_95 = 1.645
TRADING_DAYS = 252

DEFAULT_SCENARIOS: Dict[str, StressScenario] = {
    'market_crash': StressScenario(
        name='Market Crash',
        market_change=-30.0,
        volatility_multiplier=3.0,
        correlation_shock=0.5,
        duration=TimeHorizon.ONE_MONTH,
    ),
    'gfc_2008': StressScenario(
        name='GFC 2008 Replay',
        market_change=-40.0,
        volatility_multiplier=4.0,
        correlation_shock=0.7,
        duration=TimeHorizon.SIX_MONTHS,
    ),
    'covid_crash_2020': StressScenario(
        name='COVID Crash 2020',
        market_change=-34.0,
        volatility_multiplier=3.5,
        correlation_shock=0.6,
        duration=TimeHorizon.ONE_MONTH,
    ),
    'correction': StressScenario(
        name='Market Correction',
        market_change=-10.0,
        volatility_multiplier=1.5,
        correlation_shock=0.2,
        duration=TimeHorizon.ONE_WEEK,
    ),
    'rates_shock_2022': StressScenario(
        name='2022 Rates Shock',
        market_change=-20.0,
        volatility_multiplier=2.0,
        correlation_shock=0.3,
        duration=TimeHorizon.SIX_MONTHS,
    ),
    'rally': StressScenario(
        name='Relief Rally',
        market_change=15.0,
        volatility_multiplier=1.2,
        correlation_shock=0.0,
        duration=TimeHorizon.ONE_MONTH,
    ),
}


def stress_severity(loss_percentage: float) -> RiskLevel:
    if loss_percentage > 30:
        return RiskLevel.EXTREME
    if loss_percentage > 20:
        return RiskLevel.HIGH
    if loss_percentage > 10:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def stressed_metrics(
    portfolio_value: float,
    scenario: StressScenario,
    loss_percentage: float,
) -> StressedMetrics:
    """Scenario metrics derived from the baseline volatility, not live data."""
    stressed_vol = BASELINE_VOLATILITY * scenario.volatility_multiplier
    stressed_var = portfolio_value * stressed_vol * Z_95 / np.sqrt(TRADING_DAYS)

    return StressedMetrics(
        volatility=float(stressed_vol),
        var=float(stressed_var),
        max_drawdown=float(loss_percentage),
    )


def stress_test(
    positions: List[Position],
    portfolio_value: float,
    scenario: StressScenario,
) -> StressTestResult:
    """Apply one uniform market shock to every position.

    stressed_price = current_price * (1 + market_change / 100)
    loss           = current_value - stressed_price * quantity

    Args:
        positions: Current holdings (each needs a current price)
        portfolio_value: Total portfolio value (> 0)
        scenario: Shock to apply

    Raises:
        InvalidInput: If a position has no usable price or the portfolio
            value is not positive
    """
    if portfolio_value <= 0:
        raise InvalidInput(f"Portfolio value must be positive, got {portfolio_value}")

    shock = 1 + scenario.market_change / 100
    impacts = []

    for position in positions:
        price = position.current_price
        if price is None or not np.isfinite(price) or price <= 0:
            raise InvalidInput(f"Missing price data for {position.symbol}")

        current_value = float(position.total_value)
        stressed_value = price * shock * position.quantity
        loss = current_value - stressed_value

        impacts.append(AssetImpact(
            symbol=position.symbol,
            current_value=current_value,
            stressed_value=float(stressed_value),
            loss=float(loss),
            loss_percentage=float(loss / current_value * 100) if current_value else 0.0,
        ))

    portfolio_loss = float(sum(i.loss for i in impacts))
    loss_percentage = abs(portfolio_loss / portfolio_value * 100)

    return StressTestResult(
        scenario_name=scenario.name,
        portfolio_value=float(portfolio_value - portfolio_loss),
        portfolio_loss=portfolio_loss,
        loss_percentage=float(loss_percentage),
        asset_impacts=impacts,
        metrics_under_stress=stressed_metrics(portfolio_value, scenario, loss_percentage),
        severity=stress_severity(loss_percentage),
    )


def run_stress_tests(
    positions: List[Position],
    portfolio_value: float,
    scenarios: Optional[Iterable[StressScenario]] = None,
) -> List[StressTestResult]:
    """Evaluate every scenario independently.

    A scenario that cannot be evaluated produces a result whose ``error``
    explains why; the remaining scenarios still run.  Defaults to
    ``DEFAULT_SCENARIOS`` when no scenarios are given.
    """
    if scenarios is None:
        scenarios = DEFAULT_SCENARIOS.values()

    results = []
    for scenario in scenarios:
        try:
            result = stress_test(positions, portfolio_value, scenario)
        except ValueError as e:
            logger.warning(
                "run_stress_tests: scenario failed",
                scenario=scenario.name,
                error=str(e),
            )
            result = StressTestResult(scenario_name=scenario.name, error=str(e))
        else:
            logger.info(
                "run_stress_tests: scenario complete",
                scenario=scenario.name,
                loss_percentage=result.loss_percentage,
                severity=result.severity.value,
            )
        results.append(result)

    return results
