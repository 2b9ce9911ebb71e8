"""
Portfolio Risk Analytics Engine

Historical-simulation VaR, volatility-adjusted ratios, drawdown, stress
scenarios, Monte Carlo projections, liquidity risk, limit monitoring and
reports for investment portfolios.

Packages:
- risk: Pure computation over return series, positions and scenarios
- data: Collaborator interfaces and market-data strategies
- db: SQL persistence of snapshots and limits
"""

from .errors import (
    DependencyFailure,
    InvalidConfiguration,
    InvalidInput,
    NotFound,
    RiskEngineError,
)
from .service import RiskAnalyticsService

__all__ = [
    'RiskAnalyticsService',
    'RiskEngineError',
    'NotFound',
    'InvalidInput',
    'InvalidConfiguration',
    'DependencyFailure',
]
