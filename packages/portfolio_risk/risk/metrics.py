"""
Risk Metrics Module

Historical-simulation VaR and Expected Shortfall, volatility, risk-adjusted
return ratios, drawdown, beta/alpha and the composite risk score.  Pure
computation functions over a periodic return series.
"""

import math

import numpy as np
import structlog
from typing import Dict, Optional, Sequence, Tuple

from ..errors import InvalidInput
from ..models import RiskLevel, RiskMetrics, TimeHorizon
from .returns import compound_values, drawdown_stats, validate_returns

logger = structlog.get_logger(__name__)

TRADING_DAYS = 252

# Dollar VaR that maps to the full 30-point VaR component of the risk score
VAR_SCORE_NORMALIZER = 10_000.0
SHARPE_TARGET = 2.0


def _validate_confidence(confidence: float) -> None:
    if not 0 < confidence < 1:
        raise InvalidInput(f"Confidence must be between 0 and 1, got {confidence}")


def _validate_portfolio_value(portfolio_value: float) -> None:
    if not math.isfinite(portfolio_value) or portfolio_value <= 0:
        raise InvalidInput(f"Portfolio value must be positive, got {portfolio_value}")


def tail_index(n: int, confidence: float) -> int:
    """Index of the VaR observation in an ascending sort of ``n`` returns.

    floor(n * (1 - confidence)), rounded first so that float noise such as
    10 * (1 - 0.9) = 0.9999999999999998 lands on the intended integer.
    """
    _validate_confidence(confidence)
    idx = int(math.floor(round(n * (1 - confidence), 9)))
    return min(max(idx, 0), n - 1)


def historical_var(
    returns: Sequence[float],
    confidence: float = 0.95,
    portfolio_value: float = 1.0,
) -> float:
    """Historical-simulation Value-at-Risk.

    VaR = loss at sorted_returns[floor(n * (1 - confidence))] * portfolio_value

    A tail observation that is a gain means no loss at this confidence, so
    VaR is reported as 0 rather than as the size of the gain.

    Args:
        returns: Periodic fractional returns (>= 2 points)
        confidence: Confidence level in (0, 1)
        portfolio_value: Current portfolio value

    Returns:
        VaR as a non-negative loss amount
    """
    arr = validate_returns(returns)
    _validate_portfolio_value(portfolio_value)

    sorted_returns = np.sort(arr)
    idx = tail_index(len(arr), confidence)

    return float(max(-sorted_returns[idx], 0.0) * portfolio_value)


def conditional_var(
    returns: Sequence[float],
    confidence: float = 0.95,
    portfolio_value: float = 1.0,
) -> float:
    """Historical Expected Shortfall (Conditional VaR).

    Mean of sorted_returns[0..tail_index] inclusive, as a loss amount.  The
    averaged tail holds the VaR observation and everything worse, so the
    result is never below ``historical_var`` for the same inputs.
    """
    arr = validate_returns(returns)
    _validate_portfolio_value(portfolio_value)

    sorted_returns = np.sort(arr)
    idx = tail_index(len(arr), confidence)
    tail_mean = float(np.mean(sorted_returns[:idx + 1]))

    return float(max(-tail_mean, 0.0) * portfolio_value)


def return_volatility(returns: Sequence[float]) -> float:
    """Population standard deviation of the return series (per period).

    A constant series is exactly 0 rather than float noise from the mean.
    """
    arr = validate_returns(returns)
    if np.ptp(arr) == 0:
        return 0.0
    return float(np.std(arr))


def annualize_volatility(volatility: float, periods_per_year: int = TRADING_DAYS) -> float:
    return float(volatility * np.sqrt(periods_per_year))


def downside_volatility(returns: Sequence[float]) -> float:
    """Annualized downside deviation.

    Root-mean-square of the negative returns only, scaled by sqrt(252).
    Returns 0 when the series has no negative returns.
    """
    arr = validate_returns(returns)
    negatives = arr[arr < 0]
    if len(negatives) == 0:
        return 0.0
    return float(np.sqrt(np.mean(negatives ** 2)) * np.sqrt(TRADING_DAYS))


def annualized_mean_return(returns: Sequence[float]) -> float:
    arr = validate_returns(returns)
    return float(np.mean(arr) * TRADING_DAYS)


def sharpe_ratio(returns: Sequence[float], risk_free_rate: float = 0.0) -> float:
    """(annualized mean - risk_free_rate) / annualized volatility.

    A constant series has no volatility; its Sharpe ratio is reported as 0.
    """
    ann_vol = annualize_volatility(return_volatility(returns))
    if ann_vol == 0:
        logger.warning("sharpe_ratio: zero volatility, ratio set to 0")
        return 0.0
    return float((annualized_mean_return(returns) - risk_free_rate) / ann_vol)


def sortino_ratio(returns: Sequence[float], risk_free_rate: float = 0.0) -> float:
    """Excess annualized return over annualized downside deviation (0 if none)."""
    downside = downside_volatility(returns)
    if downside == 0:
        return 0.0
    return float((annualized_mean_return(returns) - risk_free_rate) / downside)


def calmar_ratio(returns: Sequence[float], max_drawdown: float) -> float:
    """Annualized mean return / max drawdown (0 when there is no drawdown)."""
    if max_drawdown <= 0:
        return 0.0
    return float(annualized_mean_return(returns) / max_drawdown)


def beta_alpha(
    returns: Sequence[float],
    market_returns: Sequence[float],
    risk_free_rate: float,
    market_return: float,
) -> Tuple[float, float]:
    """CAPM beta and Jensen's alpha against a benchmark return series.

    beta  = cov(r, m) / var(m)            (population moments)
    alpha = annualized mean(r) - (rf + beta * (market_return - rf))

    Args:
        returns: Portfolio periodic returns
        market_returns: Benchmark periodic returns over the same periods
        risk_free_rate: Annual risk-free rate
        market_return: Annual benchmark return

    Raises:
        InvalidInput: If the series lengths differ or the benchmark is constant
    """
    r = validate_returns(returns)
    m = validate_returns(market_returns)

    if len(r) != len(m):
        raise InvalidInput(
            f"Benchmark series length {len(m)} doesn't match return series length {len(r)}"
        )

    market_var = float(np.var(m))
    if np.ptp(m) == 0 or market_var == 0:
        raise InvalidInput("Benchmark return series has zero variance")

    covariance = float(np.mean((r - r.mean()) * (m - m.mean())))
    beta = covariance / market_var
    alpha = float(r.mean() * TRADING_DAYS) - (risk_free_rate + beta * (market_return - risk_free_rate))

    return float(beta), float(alpha)


def treynor_ratio(returns: Sequence[float], risk_free_rate: float, beta: float) -> float:
    """Excess annualized return per unit of beta (0 for non-positive beta)."""
    if beta <= 0:
        return 0.0
    return float((annualized_mean_return(returns) - risk_free_rate) / beta)


def risk_score(
    annualized_volatility: float,
    value_at_risk: float,
    max_drawdown: float,
    sharpe: float,
) -> float:
    """Composite 0-100 risk score.

    volatility  min(30, annualized_vol * 100)
    VaR         min(30, VaR / 10_000 * 30)
    drawdown    min(20, max_drawdown)
    Sharpe      min(20, max(0, 2 - sharpe) * 10)
    """
    vol_score = min(30.0, max(annualized_volatility, 0.0) * 100)
    var_score = min(30.0, max(value_at_risk, 0.0) / VAR_SCORE_NORMALIZER * 30)
    drawdown_score = min(20.0, max(max_drawdown, 0.0))
    sharpe_penalty = min(20.0, max(0.0, SHARPE_TARGET - sharpe) * 10)

    return float(min(100.0, vol_score + var_score + drawdown_score + sharpe_penalty))


def risk_level(score: float) -> RiskLevel:
    if score < 25:
        return RiskLevel.LOW
    if score < 50:
        return RiskLevel.MEDIUM
    if score < 75:
        return RiskLevel.HIGH
    return RiskLevel.EXTREME


def calculate_risk_metrics(
    portfolio_id: str,
    portfolio_value: float,
    returns: Sequence[float],
    confidence: float = 0.95,
    time_horizon: TimeHorizon = TimeHorizon.ONE_MONTH,
    risk_free_rate: float = 0.0,
    benchmark_return: float = 0.0,
    benchmark_returns: Optional[Sequence[float]] = None,
    values: Optional[Sequence[float]] = None,
    correlations: Optional[Dict[str, float]] = None,
) -> RiskMetrics:
    """Build a complete risk snapshot from a return series.

    Args:
        portfolio_id: Identifier stamped on the snapshot
        portfolio_value: Current portfolio value (> 0)
        returns: Chronological periodic returns (>= 2 points)
        confidence: VaR / ES confidence level in (0, 1)
        time_horizon: Horizon label recorded on the snapshot
        risk_free_rate: Annual risk-free rate
        benchmark_return: Annual benchmark return (used for alpha)
        benchmark_returns: Benchmark periodic returns aligned with ``returns``.
            Without it beta, alpha and Treynor are left unset.
        values: Chronological portfolio values for drawdown.  When omitted the
            value path is rebuilt by compounding ``returns``.
        correlations: Optional symbol-pair correlation mapping to attach

    Returns:
        Frozen RiskMetrics snapshot
    """
    arr = validate_returns(returns)
    _validate_confidence(confidence)
    _validate_portfolio_value(portfolio_value)

    var = historical_var(arr, confidence, portfolio_value)
    cvar = conditional_var(arr, confidence, portfolio_value)

    vol = return_volatility(arr)
    ann_vol = annualize_volatility(vol)
    downside = downside_volatility(arr)

    sharpe = sharpe_ratio(arr, risk_free_rate)
    sortino = sortino_ratio(arr, risk_free_rate)

    if values is not None and len(values) > 0:
        max_dd, current_dd = drawdown_stats(values)
    else:
        max_dd, current_dd = drawdown_stats(compound_values(arr))

    calmar = calmar_ratio(arr, max_dd)

    beta: Optional[float] = None
    alpha: Optional[float] = None
    treynor: Optional[float] = None
    if benchmark_returns is not None:
        beta, alpha = beta_alpha(arr, benchmark_returns, risk_free_rate, benchmark_return)
        treynor = treynor_ratio(arr, risk_free_rate, beta)

    score = risk_score(ann_vol, var, max_dd, sharpe)
    level = risk_level(score)

    metrics = RiskMetrics(
        portfolio_id=portfolio_id,
        time_horizon=time_horizon,
        confidence_level=confidence,
        observations=len(arr),
        value_at_risk=var,
        conditional_var=cvar,
        expected_shortfall=cvar,
        volatility=vol,
        annualized_volatility=ann_vol,
        downside_volatility=downside,
        sharpe_ratio=sharpe,
        sortino_ratio=sortino,
        calmar_ratio=calmar,
        treynor_ratio=treynor,
        beta=beta,
        alpha=alpha,
        jensen_alpha=alpha,
        max_drawdown=max_dd,
        current_drawdown=current_dd,
        correlations=dict(correlations or {}),
        risk_score=score,
        risk_level=level,
    )

    logger.info(
        "calculate_risk_metrics: snapshot built",
        portfolio_id=portfolio_id,
        observations=len(arr),
        value_at_risk=var,
        annualized_volatility=ann_vol,
        risk_score=score,
        risk_level=level.value,
    )

    return metrics
