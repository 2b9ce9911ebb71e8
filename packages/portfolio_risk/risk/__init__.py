"""
Portfolio Risk Computation

Pure computation modules over return series, positions and scenarios.
Every function validates its inputs and returns an immutable model.

Modules:
- returns: Return-series validation, drawdown, price matrices
- correlation: Pairwise correlation mapping
- metrics: Historical VaR / CVaR, ratios, beta/alpha, risk score
- positions: Individual, marginal and component VaR per position
- stress: Uniform market shock scenarios
- monte_carlo: Chunked, seedable path simulation
- liquidity: Days-to-liquidate and market impact
- limits: Limit validation and breach detection
- report: Report assembly and VaR backtesting
"""

# Returns module
from .returns import (
    validate_returns,
    values_to_returns,
    compound_values,
    drawdown_stats,
    largest_moves,
    build_price_matrix,
    compute_simple_returns,
    annualized_volatility_by_symbol,
)

# Correlation module
from .correlation import (
    correlation_matrix,
    correlation_pairs,
)

# Metrics module
from .metrics import (
    historical_var,
    conditional_var,
    sharpe_ratio,
    sortino_ratio,
    beta_alpha,
    risk_score,
    risk_level,
    calculate_risk_metrics,
)

# Position risk module
from .positions import (
    calculate_position_risks,
    DEFAULT_VOLATILITY,
)

# Stress testing module
from .stress import (
    stress_test,
    run_stress_tests,
    DEFAULT_SCENARIOS,
)

# Monte Carlo module
from .monte_carlo import run_monte_carlo

# Liquidity module
from .liquidity import (
    calculate_liquidity_risk,
    DEFAULT_DAILY_VOLUME,
)

# Limits module
from .limits import (
    validate_limits,
    check_risk_limits,
)

# Report module
from .report import (
    backtest_var,
    build_risk_report,
)

__all__ = [
    # Returns
    'validate_returns',
    'values_to_returns',
    'compound_values',
    'drawdown_stats',
    'largest_moves',
    'build_price_matrix',
    'compute_simple_returns',
    'annualized_volatility_by_symbol',
    # Correlation
    'correlation_matrix',
    'correlation_pairs',
    # Metrics
    'historical_var',
    'conditional_var',
    'sharpe_ratio',
    'sortino_ratio',
    'beta_alpha',
    'risk_score',
    'risk_level',
    'calculate_risk_metrics',
    # Positions
    'calculate_position_risks',
    'DEFAULT_VOLATILITY',
    # Stress testing
    'stress_test',
    'run_stress_tests',
    'DEFAULT_SCENARIOS',
    # Monte Carlo
    'run_monte_carlo',
    # Liquidity
    'calculate_liquidity_risk',
    'DEFAULT_DAILY_VOLUME',
    # Limits
    'validate_limits',
    'check_risk_limits',
    # Report
    'backtest_var',
    'build_risk_report',
]
