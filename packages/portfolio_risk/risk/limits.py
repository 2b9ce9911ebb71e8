"""
Risk Limit Monitoring Module

Validates limit configurations and compares a risk snapshot (and optionally
per-position risk) against them, emitting one breach record per violated
limit.
"""

import math

import structlog
from typing import List, Optional

from ..errors import InvalidConfiguration
from ..models import LimitCheckResult, PositionRisk, RiskBreach, RiskLimits, RiskMetrics

logger = structlog.get_logger(__name__)


def validate_limits(limits: RiskLimits) -> RiskLimits:
    """Check every configured limit lies in a sane domain.

    max_drawdown, max_concentration   (0, 100] percent
    max_var, max_volatility,
    max_leverage                      > 0
    min_sharpe_ratio                  finite

    Raises:
        InvalidConfiguration: Naming the first offending limit
    """
    percent_limits = {
        'max_drawdown': limits.max_drawdown,
        'max_concentration': limits.max_concentration,
    }
    for name, value in percent_limits.items():
        if value is None:
            continue
        if not math.isfinite(value) or not 0 < value <= 100:
            raise InvalidConfiguration(f"{name} must be in (0, 100], got {value}")

    positive_limits = {
        'max_var': limits.max_var,
        'max_volatility': limits.max_volatility,
        'max_leverage': limits.max_leverage,
    }
    for name, value in positive_limits.items():
        if value is None:
            continue
        if not math.isfinite(value) or value <= 0:
            raise InvalidConfiguration(f"{name} must be positive, got {value}")

    if limits.min_sharpe_ratio is not None and not math.isfinite(limits.min_sharpe_ratio):
        raise InvalidConfiguration(
            f"min_sharpe_ratio must be finite, got {limits.min_sharpe_ratio}"
        )

    return limits


def _breach(limit_type: str, current: float, limit: float, amount: float) -> RiskBreach:
    percentage = amount / abs(limit) * 100 if limit != 0 else None
    return RiskBreach(
        limit_type=limit_type,
        current_value=float(current),
        limit_value=float(limit),
        breach_amount=float(amount),
        breach_percentage=percentage,
    )


def check_risk_limits(
    metrics: RiskMetrics,
    limits: RiskLimits,
    position_risks: Optional[List[PositionRisk]] = None,
) -> LimitCheckResult:
    """Compare a snapshot against configured limits.

    Drawdown, VaR and (per-period) volatility breach when above their limit;
    Sharpe breaches when below.  Concentration (largest position share) and
    leverage (gross exposure / portfolio value, as implied by position
    shares) are only checked when ``position_risks`` is supplied.
    """
    validate_limits(limits)
    breaches: List[RiskBreach] = []

    ceilings = [
        ('maxDrawdown', metrics.max_drawdown, limits.max_drawdown),
        ('maxVaR', metrics.value_at_risk, limits.max_var),
        ('maxVolatility', metrics.volatility, limits.max_volatility),
    ]

    if position_risks:
        largest_share = max(abs(r.percentage_of_portfolio) for r in position_risks)
        leverage = sum(abs(r.percentage_of_portfolio) for r in position_risks) / 100
        ceilings.append(('maxConcentration', largest_share, limits.max_concentration))
        ceilings.append(('maxLeverage', leverage, limits.max_leverage))

    for limit_type, current, limit in ceilings:
        if limit is not None and current > limit:
            breaches.append(_breach(limit_type, current, limit, current - limit))

    if limits.min_sharpe_ratio is not None and metrics.sharpe_ratio < limits.min_sharpe_ratio:
        breaches.append(_breach(
            'minSharpeRatio',
            metrics.sharpe_ratio,
            limits.min_sharpe_ratio,
            limits.min_sharpe_ratio - metrics.sharpe_ratio,
        ))

    if breaches:
        logger.warning(
            "check_risk_limits: limits breached",
            portfolio_id=metrics.portfolio_id,
            breached=[b.limit_type for b in breaches],
        )

    return LimitCheckResult(breaches=breaches, all_within_limits=not breaches)
