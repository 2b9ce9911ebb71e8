"""
Correlation Module

Correlation matrices and the flat symbol-pair mapping stored on risk
snapshots ("AAPL-MSFT" -> coefficient, both orderings present).
"""

import numpy as np
import pandas as pd
import structlog
from typing import Dict, List

from ..errors import InvalidInput

logger = structlog.get_logger(__name__)


def pair_key(symbol_a: str, symbol_b: str) -> str:
    return f"{symbol_a}-{symbol_b}"


def correlation_matrix(returns: pd.DataFrame) -> pd.DataFrame:
    """Compute correlation matrix from returns DataFrame.

    Args:
        returns: DataFrame of returns (T x N)

    Returns:
        DataFrame with symbol labels on both axes (N x N correlation matrix)

    Raises:
        InvalidInput: If there are too few observations or a column is constant
    """
    if returns.empty:
        raise InvalidInput("Cannot compute correlation from empty returns DataFrame")

    if len(returns) < 2:
        raise InvalidInput(f"Need at least 2 observations, got {len(returns)}")

    corr = returns.corr()

    if corr.isna().any().any():
        nan_symbols = corr.columns[corr.isna().any()].tolist()
        logger.error(
            "correlation_matrix: NaN values in correlation matrix",
            affected_symbols=nan_symbols
        )
        raise InvalidInput(f"NaN values in correlation matrix for symbols: {nan_symbols}")

    upper_vals = corr.values[np.triu_indices_from(corr.values, k=1)]
    avg_corr = float(upper_vals.mean()) if len(upper_vals) > 0 else 0.0

    logger.info(
        "correlation_matrix: correlation computed",
        num_assets=len(corr),
        avg_correlation=avg_corr,
    )

    return corr


def correlation_pairs(corr: pd.DataFrame) -> Dict[str, float]:
    """Flatten a correlation matrix into the symbol-pair mapping.

    Self-correlations are excluded; each unordered pair appears under both
    "A-B" and "B-A".
    """
    symbols: List[str] = list(corr.columns)
    pairs: Dict[str, float] = {}

    rows, cols = np.triu_indices(len(symbols), k=1)
    for i, j in zip(rows, cols):
        value = float(corr.iat[i, j])
        pairs[pair_key(symbols[i], symbols[j])] = value
        pairs[pair_key(symbols[j], symbols[i])] = value

    return pairs
