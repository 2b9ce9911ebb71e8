"""
Unit tests for report.py - Risk Report Module

Tests cover:
- Kupiec likelihood ratio
- VaR backtest tolerance rule
- Executive summary flags
- Report assembly per report type
"""

from datetime import date

import numpy as np
import pytest
from numpy.testing import assert_allclose

from portfolio_risk.errors import InvalidInput
from portfolio_risk.models import ReportPeriod, ReportType
from portfolio_risk.risk.metrics import calculate_risk_metrics
from portfolio_risk.risk.positions import calculate_position_risks
from portfolio_risk.risk.report import (
    backtest_var,
    build_risk_report,
    generate_recommendations,
    identify_key_risks,
    kupiec_lr,
)
from portfolio_risk.risk.stress import run_stress_tests


def returns_with_violations(n: int, violations: int) -> np.ndarray:
    returns = np.full(n, 0.001)
    returns[:violations] = -0.05
    return returns


@pytest.fixture
def metrics(sample_returns):
    return calculate_risk_metrics('pf-1', 100_000, sample_returns, risk_free_rate=0.045)


@pytest.fixture
def period():
    return ReportPeriod(start=date(2024, 1, 1), end=date(2024, 1, 8))


class TestKupiec:
    """Tests for kupiec_lr function."""

    def test_zero_when_rate_matches(self):
        assert kupiec_lr(200, 10, 0.95) == pytest.approx(0.0, abs=1e-9)

    def test_no_violations(self):
        assert_allclose(kupiec_lr(100, 0, 0.99), -2 * 100 * np.log(0.99))

    def test_grows_with_deviation(self):
        assert kupiec_lr(250, 10, 0.99) > kupiec_lr(250, 5, 0.99) > kupiec_lr(250, 3, 0.99)


class TestBacktestVar:
    """Tests for backtest_var function."""

    def test_expected_count_passes(self):
        backtest = backtest_var(returns_with_violations(100, 1), 1_000, 100_000, 0.99)

        assert backtest.observations == 100
        assert backtest.violations == 1
        assert_allclose(backtest.expected_violations, 1.0)
        assert backtest.kupiec_test.passed
        assert backtest.kupiec_test.p_value == pytest.approx(1.0, abs=1e-6)

    def test_too_many_violations_fail(self):
        backtest = backtest_var(returns_with_violations(100, 3), 1_000, 100_000, 0.99)

        assert backtest.violations == 3
        assert_allclose(backtest.kupiec_test.statistic, 2.0)
        assert not backtest.kupiec_test.passed
        assert backtest.kupiec_test.p_value < 0.2

    def test_return_at_threshold_is_not_a_violation(self):
        returns = [-0.01, 0.02, 0.01]

        backtest = backtest_var(returns, 1_000, 100_000, 0.9)

        assert backtest.violations == 0

    def test_invalid_portfolio_value_raises(self, small_returns):
        with pytest.raises(InvalidInput, match="Portfolio value"):
            backtest_var(small_returns, 100, 0, 0.95)


class TestExecutiveSummary:
    """Tests for identify_key_risks and generate_recommendations."""

    def test_all_flags(self, metrics):
        risky = metrics.model_copy(update={
            'annualized_volatility': 0.45,
            'sharpe_ratio': 0.1,
            'max_drawdown': 35.0,
            'value_at_risk': 5_000.0,
        })

        assert identify_key_risks(risky) == [
            'High volatility',
            'Low risk-adjusted returns',
            'Significant drawdown risk',
            'High Value at Risk',
        ]
        assert generate_recommendations(risky) == [
            'Consider diversifying portfolio',
            'Improve risk-adjusted returns',
            'Implement stop-loss strategies',
        ]

    def test_calm_portfolio(self, metrics):
        calm = metrics.model_copy(update={
            'annualized_volatility': 0.12,
            'sharpe_ratio': 1.4,
            'max_drawdown': 8.0,
            'value_at_risk': 500.0,
        })

        assert identify_key_risks(calm) == []
        assert generate_recommendations(calm) == []


class TestBuildRiskReport:
    """Tests for build_risk_report function."""

    def test_summary_report(self, metrics, sample_positions, sample_history, sample_returns, period):
        report = build_risk_report(
            'pf-1', ReportType.SUMMARY, period, metrics,
            calculate_position_risks(sample_positions, 100_000),
            sample_history, sample_returns, 100_000,
        )

        assert report.portfolio_id == 'pf-1'
        assert report.metrics == metrics
        assert report.executive_summary.overall_risk_level == metrics.risk_level
        assert report.executive_summary.risk_score == metrics.risk_score
        assert report.historical_analysis.worst_day.amount == 6_000.0
        assert report.historical_analysis.var_backtest is None
        assert report.stress_tests == []
        assert len(report.id) == 36

    def test_regulatory_report_has_backtest(self, metrics, sample_positions, sample_history,
                                            sample_returns, period):
        report = build_risk_report(
            'pf-1', ReportType.REGULATORY, period, metrics, [],
            sample_history, sample_returns, 100_000,
            stress_tests=run_stress_tests(sample_positions, 100_000),
            report_id='rep-1',
        )

        backtest = report.historical_analysis.var_backtest
        assert report.id == 'rep-1'
        assert backtest.observations == len(sample_returns)
        assert_allclose(backtest.expected_violations, len(sample_returns) * 0.05)
        assert len(report.stress_tests) > 0

    def test_reversed_period_raises(self, metrics, sample_history, sample_returns):
        period = ReportPeriod(start=date(2024, 2, 1), end=date(2024, 1, 1))

        with pytest.raises(InvalidInput, match="before it starts"):
            build_risk_report('pf-1', ReportType.SUMMARY, period, metrics, [],
                              sample_history, sample_returns, 100_000)
