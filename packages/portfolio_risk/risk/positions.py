"""
Position Risk Module

Decomposes portfolio risk into per-position contributions: individual,
marginal and component VaR plus a quadratic concentration penalty.
"""

import numpy as np
import structlog
from typing import Dict, List, Optional

from ..errors import InvalidInput
from ..models import Position, PositionRisk

logger = structlog.get_logger(__name__)

DEFAULT_VOLATILITY = 0.20
Z_95 = 1.645
TRADING_DAYS = 252


def concentration_risk(percentage_of_portfolio: float) -> float:
    """(pct / 100)^2 * 100: grows quadratically with the allocation share."""
    return float((percentage_of_portfolio / 100) ** 2 * 100)


def position_risk(
    position: Position,
    portfolio_value: float,
    volatility: float = DEFAULT_VOLATILITY,
) -> PositionRisk:
    """Risk record for one position.

    individual VaR = exposure * vol * 1.645 / sqrt(252)
    marginal VaR   = individual VaR * exposure / portfolio_value
    component VaR  = marginal VaR * pct / 100

    Args:
        position: Holding to analyse
        portfolio_value: Total portfolio value (> 0)
        volatility: Annualized volatility of the symbol
    """
    if portfolio_value <= 0:
        raise InvalidInput(f"Portfolio value must be positive, got {portfolio_value}")

    exposure = float(position.total_value)
    weight = exposure / portfolio_value
    pct = weight * 100

    individual_var = exposure * volatility * Z_95 / np.sqrt(TRADING_DAYS)
    marginal_var = individual_var * weight
    component_var = marginal_var * pct / 100

    return PositionRisk(
        symbol=position.symbol,
        asset_id=position.asset_id,
        exposure=exposure,
        percentage_of_portfolio=float(pct),
        volatility=float(volatility),
        individual_var=float(individual_var),
        marginal_var=float(marginal_var),
        component_var=float(component_var),
        incremental_var=float(marginal_var),
        concentration_risk=concentration_risk(pct),
    )


def calculate_position_risks(
    positions: List[Position],
    portfolio_value: float,
    volatilities: Optional[Dict[str, float]] = None,
) -> List[PositionRisk]:
    """Build one risk record per position.

    Symbols missing from ``volatilities`` (or mapped to a non-positive value)
    fall back to the 20% default.

    Returns:
        List of PositionRisk in input order
    """
    if portfolio_value <= 0:
        raise InvalidInput(f"Portfolio value must be positive, got {portfolio_value}")

    volatilities = volatilities or {}
    risks = []
    defaulted = []

    for position in positions:
        vol = volatilities.get(position.symbol)
        if vol is None or not np.isfinite(vol) or vol <= 0:
            defaulted.append(position.symbol)
            vol = DEFAULT_VOLATILITY
        risks.append(position_risk(position, portfolio_value, vol))

    if defaulted:
        logger.info(
            "calculate_position_risks: default volatility applied",
            symbols=defaulted[:10],
            count=len(defaulted),
        )

    logger.info(
        "calculate_position_risks: risks built",
        num_positions=len(risks),
        total_component_var=float(sum(r.component_var for r in risks)),
    )

    return risks
