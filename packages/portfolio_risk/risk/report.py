"""
Risk Report Module

Assembles a RiskReport from an existing snapshot, per-position risk, the
portfolio value history and (depending on report type) stress results and a
VaR backtest.

The regulatory backtest counts days whose return breached the reported VaR
and compares the count with n * (1 - confidence).  Besides the simple
tolerance rule it reports Kupiec's proportion-of-failures likelihood ratio,
which is asymptotically chi-square with one degree of freedom.
"""

import uuid

import numpy as np
import structlog
from scipy import stats
from scipy.special import xlogy
from typing import List, Optional, Sequence

from ..errors import InvalidInput
from ..models import (
    ExecutiveSummary,
    HistoricalAnalysis,
    HistoricalValue,
    KupiecTest,
    PositionRisk,
    ReportPeriod,
    ReportType,
    RiskMetrics,
    RiskReport,
    StressTestResult,
    VarBacktest,
)
from .returns import largest_moves, validate_returns

logger = structlog.get_logger(__name__)

# Thresholds for executive-summary flags
HIGH_VOLATILITY = 0.30
LOW_SHARPE = 0.5
SIGNIFICANT_DRAWDOWN = 20.0
HIGH_VAR = 1000.0

# Backtest passes while |violations - expected| < tolerance * expected
BACKTEST_TOLERANCE = 0.5


def kupiec_lr(observations: int, violations: int, confidence: float) -> float:
    """Kupiec proportion-of-failures likelihood ratio.

    LR = -2 ln[(1-p)^(n-x) p^x] + 2 ln[(1-x/n)^(n-x) (x/n)^x]
    with p = 1 - confidence.  ``xlogy`` keeps the 0 * ln(0) terms at 0 when
    there are no violations (or nothing but violations).
    """
    n, x = observations, violations
    p = 1 - confidence
    observed = x / n

    null_ll = xlogy(n - x, 1 - p) + xlogy(x, p)
    alt_ll = xlogy(n - x, 1 - observed) + xlogy(x, observed)

    return float(max(-2 * (null_ll - alt_ll), 0.0))


def backtest_var(
    returns: Sequence[float],
    value_at_risk: float,
    portfolio_value: float,
    confidence: float,
) -> VarBacktest:
    """Count VaR violations in a return series.

    A violation is a return below -VaR / portfolio_value.

    Args:
        returns: Historical periodic returns
        value_at_risk: Reported VaR as a loss amount
        portfolio_value: Value the VaR was computed against (> 0)
        confidence: Confidence level of the VaR

    Returns:
        VarBacktest with the tolerance rule and Kupiec statistics
    """
    arr = validate_returns(returns)
    if portfolio_value <= 0:
        raise InvalidInput(f"Portfolio value must be positive, got {portfolio_value}")
    if not 0 < confidence < 1:
        raise InvalidInput(f"Confidence must be between 0 and 1, got {confidence}")

    threshold = -value_at_risk / portfolio_value
    n = len(arr)
    violations = int(np.count_nonzero(arr < threshold))
    expected = n * (1 - confidence)

    deviation = abs(violations - expected)
    lr = kupiec_lr(n, violations, confidence)

    return VarBacktest(
        observations=n,
        violations=violations,
        expected_violations=float(expected),
        kupiec_test=KupiecTest(
            statistic=float(deviation),
            lr_statistic=lr,
            p_value=float(stats.chi2.sf(lr, df=1)),
            passed=bool(deviation < BACKTEST_TOLERANCE * expected),
        ),
    )


def identify_key_risks(metrics: RiskMetrics) -> List[str]:
    risks = []
    if metrics.annualized_volatility > HIGH_VOLATILITY:
        risks.append('High volatility')
    if metrics.sharpe_ratio < LOW_SHARPE:
        risks.append('Low risk-adjusted returns')
    if metrics.max_drawdown > SIGNIFICANT_DRAWDOWN:
        risks.append('Significant drawdown risk')
    if metrics.value_at_risk > HIGH_VAR:
        risks.append('High Value at Risk')
    return risks


def generate_recommendations(metrics: RiskMetrics) -> List[str]:
    recommendations = []
    if metrics.annualized_volatility > HIGH_VOLATILITY:
        recommendations.append('Consider diversifying portfolio')
    if metrics.sharpe_ratio < LOW_SHARPE:
        recommendations.append('Improve risk-adjusted returns')
    if metrics.max_drawdown > SIGNIFICANT_DRAWDOWN:
        recommendations.append('Implement stop-loss strategies')
    return recommendations


def build_risk_report(
    portfolio_id: str,
    report_type: ReportType,
    period: ReportPeriod,
    metrics: RiskMetrics,
    position_risks: List[PositionRisk],
    history: List[HistoricalValue],
    returns: Sequence[float],
    portfolio_value: float,
    stress_tests: Optional[List[StressTestResult]] = None,
    report_id: Optional[str] = None,
) -> RiskReport:
    """Compose a report from already computed parts.

    Stress results are attached as given; the caller decides which report
    types get them.  The VaR backtest is only run for REGULATORY reports.

    Args:
        portfolio_id: Portfolio the report covers
        report_type: SUMMARY, DETAILED or REGULATORY
        period: Reporting window
        metrics: Risk snapshot the report is built around
        position_risks: Per-position risk records
        history: Chronological value snapshots for best/worst day
        returns: Return series used for the backtest
        portfolio_value: Current portfolio value
        stress_tests: Stress results to include
        report_id: Explicit id; a random UUID is used when omitted
    """
    if period.end < period.start:
        raise InvalidInput(f"Report period ends ({period.end}) before it starts ({period.start})")

    worst_day, best_day = largest_moves(history)

    var_backtest = None
    if report_type == ReportType.REGULATORY:
        var_backtest = backtest_var(
            returns, metrics.value_at_risk, portfolio_value, metrics.confidence_level
        )

    report = RiskReport(
        id=report_id or str(uuid.uuid4()),
        portfolio_id=portfolio_id,
        report_type=report_type,
        period=period,
        executive_summary=ExecutiveSummary(
            overall_risk_level=metrics.risk_level,
            risk_score=metrics.risk_score,
            key_risks=identify_key_risks(metrics),
            recommendations=generate_recommendations(metrics),
        ),
        metrics=metrics,
        position_risks=position_risks,
        stress_tests=stress_tests or [],
        historical_analysis=HistoricalAnalysis(
            worst_day=worst_day,
            best_day=best_day,
            var_backtest=var_backtest,
        ),
    )

    logger.info(
        "build_risk_report: report built",
        portfolio_id=portfolio_id,
        report_type=report_type.value,
        num_positions=len(position_risks),
        num_stress_tests=len(report.stress_tests),
        var_violations=var_backtest.violations if var_backtest else None,
    )

    return report
