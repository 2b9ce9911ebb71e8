"""
Liquidity Risk Module

Estimates how long each position takes to exit and the price impact of doing
so, assuming at most 10% of average daily dollar volume can be sold per day
without material slippage.
"""

import numpy as np
import structlog
from typing import Dict, List, Optional

from ..errors import InvalidInput
from ..models import (
    AssetLiquidity,
    LiquidityRisk,
    LiquiditySummary,
    Position,
    StressedLiquidity,
)

logger = structlog.get_logger(__name__)

DEFAULT_DAILY_VOLUME = 1_000_000.0
PARTICIPATION_RATE = 0.10
MAX_MARKET_IMPACT = 0.05

# Stress assumptions for the stressed-liquidity projection
MARKET_STRESS = 0.5
VOLUME_REDUCTION = 0.7
SPREAD_WIDENING = 2.0


def liquidity_score(days_to_liquidate: float) -> float:
    """100 - days * 10, clamped to [0, 100]."""
    return float(np.clip(100 - days_to_liquidate * 10, 0, 100))


def asset_liquidity(position: Position, average_daily_volume: float) -> AssetLiquidity:
    """Liquidity profile of one position.

    days_to_liquidate = value / (adv * 0.10)
    market_impact     = min(0.05, value / adv)
    """
    if average_daily_volume <= 0:
        raise InvalidInput(
            f"Average daily volume must be positive for {position.symbol}, got {average_daily_volume}"
        )

    value = abs(float(position.total_value))
    days = value / (average_daily_volume * PARTICIPATION_RATE)
    impact = min(MAX_MARKET_IMPACT, value / average_daily_volume)

    return AssetLiquidity(
        symbol=position.symbol,
        value=value,
        average_daily_volume=float(average_daily_volume),
        days_to_liquidate=float(days),
        market_impact=float(impact),
        liquidity_score=liquidity_score(days),
    )


def stressed_liquidity(
    by_asset: List[AssetLiquidity],
    portfolio_value: float,
    weighted_days: float,
) -> StressedLiquidity:
    """Project liquidation under reduced volume and wider spreads.

    Volume shrinks by VOLUME_REDUCTION, so liquidation takes
    1 / (1 - VOLUME_REDUCTION) times longer; each position's impact is
    recomputed against the reduced volume and scaled by SPREAD_WIDENING.
    """
    remaining_volume = 1 - VOLUME_REDUCTION

    estimated_cost = 0.0
    for asset in by_asset:
        stressed_adv = asset.average_daily_volume * remaining_volume
        impact = min(MAX_MARKET_IMPACT, asset.value / stressed_adv)
        estimated_cost += asset.value * impact * SPREAD_WIDENING

    return StressedLiquidity(
        market_stress=MARKET_STRESS,
        volume_reduction=VOLUME_REDUCTION,
        spread_widening=SPREAD_WIDENING,
        days_to_liquidate=float(weighted_days / remaining_volume),
        estimated_cost=float(estimated_cost),
    )


def calculate_liquidity_risk(
    portfolio_id: str,
    positions: List[Position],
    portfolio_value: float,
    volumes: Optional[Dict[str, float]] = None,
) -> LiquidityRisk:
    """Per-asset and aggregate liquidity risk.

    Aggregate days-to-liquidate is value weighted over the portfolio value.
    Buckets are cumulative: immediately liquid (< 0.1 day) is contained in
    within-one-day, which is contained in within-one-week; illiquid is the
    remainder of the portfolio value.

    Args:
        portfolio_id: Identifier stamped on the result
        positions: Current holdings
        portfolio_value: Total portfolio value (> 0)
        volumes: symbol -> average daily dollar volume; unknown symbols use
            DEFAULT_DAILY_VOLUME
    """
    if portfolio_value <= 0:
        raise InvalidInput(f"Portfolio value must be positive, got {portfolio_value}")

    volumes = volumes or {}
    by_asset = [
        asset_liquidity(p, volumes.get(p.symbol) or DEFAULT_DAILY_VOLUME)
        for p in positions
    ]

    immediately = sum(a.value for a in by_asset if a.days_to_liquidate < 0.1)
    within_day = sum(a.value for a in by_asset if a.days_to_liquidate < 1)
    within_week = sum(a.value for a in by_asset if a.days_to_liquidate < 7)

    weighted_days = sum(a.days_to_liquidate * a.value for a in by_asset) / portfolio_value

    overall = LiquiditySummary(
        liquidity_score=liquidity_score(weighted_days),
        days_to_liquidate=float(weighted_days),
        immediately_liquid=float(immediately),
        liquid_within_1_day=float(within_day),
        liquid_within_1_week=float(within_week),
        illiquid=float(max(portfolio_value - within_week, 0.0)),
    )

    logger.info(
        "calculate_liquidity_risk: liquidity computed",
        portfolio_id=portfolio_id,
        num_positions=len(by_asset),
        days_to_liquidate=overall.days_to_liquidate,
        liquidity_score=overall.liquidity_score,
    )

    return LiquidityRisk(
        portfolio_id=portfolio_id,
        overall=overall,
        by_asset=by_asset,
        stressed_liquidity=stressed_liquidity(by_asset, portfolio_value, weighted_days),
    )
