"""
Unit tests for stress.py - Stress Testing Module

Tests cover:
- Uniform market shock losses
- Severity classification
- Stressed metrics from the baseline volatility
- Per-scenario failure isolation
"""

import pytest
import numpy as np
from numpy.testing import assert_allclose

from portfolio_risk.errors import InvalidInput
from portfolio_risk.models import Position, RiskLevel, StressScenario
from portfolio_risk.risk.stress import (
    BASELINE_VOLATILITY,
    DEFAULT_SCENARIOS,
    run_stress_tests,
    stress_severity,
    stress_test,
)


@pytest.fixture
def crash():
    return StressScenario(name='Crash', market_change=-30.0, volatility_multiplier=3.0)


class TestStressTest:
    """Tests for stress_test function."""

    def test_uniform_shock_loss_percentage(self, sample_positions, crash):
        """-30% applied to every position of a fully priced portfolio loses 30%."""
        result = stress_test(sample_positions, 100_000, crash)

        assert_allclose(result.portfolio_loss, 30_000.0)
        assert_allclose(result.loss_percentage, 30.0)
        assert_allclose(result.portfolio_value, 70_000.0)
        assert result.severity == stress_severity(result.loss_percentage)
        assert result.ok

    def test_asset_impacts(self, sample_positions, crash):
        result = stress_test(sample_positions, 100_000, crash)

        aapl = result.asset_impacts[0]
        assert aapl.symbol == 'AAPL'
        assert_allclose(aapl.stressed_value, 35_000.0)
        assert_allclose(aapl.loss, 15_000.0)
        assert_allclose(aapl.loss_percentage, 30.0)

    def test_rally_is_a_negative_loss(self, sample_positions):
        rally = StressScenario(name='Rally', market_change=10.0, volatility_multiplier=1.0)

        result = stress_test(sample_positions, 100_000, rally)

        assert_allclose(result.portfolio_loss, -10_000.0)
        assert_allclose(result.loss_percentage, 10.0)

    def test_stressed_metrics(self, sample_positions, crash):
        result = stress_test(sample_positions, 100_000, crash)

        stressed_vol = BASELINE_VOLATILITY * 3.0
        assert_allclose(result.metrics_under_stress.volatility, stressed_vol)
        assert_allclose(result.metrics_under_stress.var, 100_000 * stressed_vol * 1.645 / np.sqrt(252))
        assert_allclose(result.metrics_under_stress.max_drawdown, 30.0)

    def test_missing_price_raises(self, crash):
        positions = [Position(symbol='XYZ', quantity=10, current_price=None, total_value=1_000.0)]

        with pytest.raises(InvalidInput, match="Missing price data for XYZ"):
            stress_test(positions, 1_000, crash)


class TestSeverity:
    """Tests for stress_severity thresholds."""

    @pytest.mark.parametrize(
        "loss, level",
        [
            (5.0, RiskLevel.LOW),
            (10.0, RiskLevel.LOW),
            (10.1, RiskLevel.MEDIUM),
            (20.0, RiskLevel.MEDIUM),
            (25.0, RiskLevel.HIGH),
            (30.0, RiskLevel.HIGH),
            (30.1, RiskLevel.EXTREME),
        ],
    )
    def test_thresholds(self, loss, level):
        assert stress_severity(loss) == level


class TestRunStressTests:
    """Tests for run_stress_tests batch evaluation."""

    def test_defaults_used_when_no_scenarios(self, sample_positions):
        results = run_stress_tests(sample_positions, 100_000)

        assert [r.scenario_name for r in results] == [s.name for s in DEFAULT_SCENARIOS.values()]
        assert all(r.ok for r in results)

    def test_failure_isolated_per_scenario(self, sample_positions, crash):
        positions = sample_positions + [
            Position(symbol='STALE', quantity=5, current_price=None, total_value=0.0),
        ]
        results = run_stress_tests(positions, 100_000, [crash, crash])

        assert len(results) == 2
        assert all(not r.ok for r in results)
        assert all('STALE' in r.error for r in results)
        assert all(r.portfolio_loss is None for r in results)

    def test_invalid_portfolio_value_reported_per_scenario(self, sample_positions, crash):
        results = run_stress_tests(sample_positions, 0, [crash])

        assert len(results) == 1
        assert not results[0].ok
        assert 'Portfolio value' in results[0].error

    def test_severity_of_moderate_crash(self, sample_positions):
        scenario = StressScenario(name='Drop', market_change=-25.0, volatility_multiplier=2.0)

        result = run_stress_tests(sample_positions, 100_000, [scenario])[0]

        assert result.severity == RiskLevel.HIGH
