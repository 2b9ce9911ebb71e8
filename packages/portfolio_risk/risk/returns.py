"""
Return Series Module

Pure functions for validating return series, converting between value and
return series, measuring drawdown, and building aligned price matrices from
market data.
"""

import numpy as np
import pandas as pd
import structlog
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import InvalidInput
from ..models import DayMove, HistoricalValue

logger = structlog.get_logger(__name__)


def validate_returns(returns: Sequence[float], min_length: int = 2) -> np.ndarray:
    """Validate a periodic return series and return it as a float array.

    Args:
        returns: Chronological sequence of fractional returns
        min_length: Minimum number of observations required

    Returns:
        1-D float64 array (order preserved)

    Raises:
        InvalidInput: If the series is too short or contains non-finite values
    """
    try:
        arr = np.asarray(returns, dtype=float).flatten()
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"Return series must be numeric: {exc}") from exc

    if len(arr) < min_length:
        raise InvalidInput(
            f"Return series needs at least {min_length} points, got {len(arr)}"
        )

    if not np.isfinite(arr).all():
        bad = int(np.sum(~np.isfinite(arr)))
        raise InvalidInput(f"Return series contains {bad} non-finite values")

    return arr


def values_to_returns(values: Sequence[float]) -> np.ndarray:
    """Simple returns from a chronological value series.

    r_t = (V_t - V_{t-1}) / V_{t-1}

    Raises:
        InvalidInput: If any value except the last is zero or negative
    """
    arr = np.asarray(values, dtype=float).flatten()
    if len(arr) < 2:
        raise InvalidInput(f"Need at least 2 values to compute returns, got {len(arr)}")

    if (arr[:-1] <= 0).any():
        raise InvalidInput("Zero or negative values detected in value series")

    return np.diff(arr) / arr[:-1]


def compound_values(returns: Sequence[float], start: float = 1.0) -> np.ndarray:
    """Rebuild a value path by compounding returns from ``start``.

    The result has len(returns) + 1 points and begins with ``start``.
    """
    arr = np.asarray(returns, dtype=float).flatten()
    return start * np.concatenate([[1.0], np.cumprod(1.0 + arr)])


def drawdown_stats(values: Sequence[float]) -> Tuple[float, float]:
    """Maximum and current drawdown of a chronological value series.

    Walks the series tracking the running peak; drawdown at each point is
    (peak - value) / peak * 100, clamped to [0, 100].  Later values may reach
    zero (or go negative on a levered path); only the starting value, and
    therefore every running peak, must be positive.

    Args:
        values: Chronological portfolio values

    Returns:
        (max_drawdown, current_drawdown) in percent.  Current drawdown is
        floored at 0 and never exceeds max drawdown.  An empty series has no
        drawdown.
    """
    arr = np.asarray(values, dtype=float).flatten()
    if len(arr) == 0:
        return 0.0, 0.0

    if not np.isfinite(arr).all():
        raise InvalidInput("Value series must contain finite values")
    if arr[0] <= 0:
        raise InvalidInput(f"Value series must start positive, got {arr[0]}")

    peaks = np.maximum.accumulate(arr)
    drawdowns = np.clip((peaks - arr) / peaks * 100, 0.0, 100.0)

    max_drawdown = float(max(drawdowns.max(), 0.0))
    current_drawdown = float(max(drawdowns[-1], 0.0))

    return max_drawdown, current_drawdown


def largest_moves(history: List[HistoricalValue]) -> Tuple[DayMove, DayMove]:
    """Largest single-step loss and gain in a value history.

    Args:
        history: Chronological value snapshots

    Returns:
        (worst_day, best_day).  Amounts are positive magnitudes; a move with
        no date means no such step occurred.
    """
    worst = DayMove()
    best = DayMove()

    for prev, curr in zip(history, history[1:]):
        change = curr.value - prev.value
        if change < 0 and -change > worst.amount:
            worst = DayMove(date=curr.date, amount=-change)
        if change > 0 and change > best.amount:
            best = DayMove(date=curr.date, amount=change)

    return worst, best


def build_price_matrix(
    prices: Dict[str, pd.DataFrame],
    price_col: str = 'adj_close',
    min_history: int = 20,
) -> pd.DataFrame:
    """Build aligned price matrix from dict of symbol -> DataFrame.

    Each DataFrame has columns: date and ``price_col``.  Aligns all series to
    the intersection of their dates and drops symbols with fewer than
    ``min_history`` observations.  Prices are never forward-filled.

    Returns:
        DataFrame with DatetimeIndex and one column per surviving symbol
    """
    if not prices:
        logger.warning("build_price_matrix: empty prices dict provided")
        return pd.DataFrame()

    series_dict = {}
    dropped_symbols = []

    for symbol, df in prices.items():
        if df is None or df.empty:
            dropped_symbols.append((symbol, "empty_dataframe"))
            continue

        if price_col not in df.columns or 'date' not in df.columns:
            dropped_symbols.append((symbol, "missing_columns"))
            continue

        df = df.copy()
        if not pd.api.types.is_datetime64_any_dtype(df['date']):
            df['date'] = pd.to_datetime(df['date'])

        price_series = df.set_index('date')[price_col].dropna()

        if len(price_series) < min_history:
            dropped_symbols.append((symbol, f"insufficient_history_{len(price_series)}"))
            continue

        series_dict[symbol] = price_series

    if dropped_symbols:
        logger.info(
            "build_price_matrix: dropped symbols",
            dropped_count=len(dropped_symbols),
            dropped=dropped_symbols[:10]
        )

    if not series_dict:
        logger.warning("build_price_matrix: no valid symbols remain after filtering")
        return pd.DataFrame()

    price_matrix = pd.DataFrame(series_dict).dropna().sort_index()

    logger.info(
        "build_price_matrix: matrix built",
        num_symbols=len(price_matrix.columns),
        num_dates=len(price_matrix),
    )

    return price_matrix


def compute_simple_returns(price_matrix: pd.DataFrame) -> pd.DataFrame:
    """Compute simple returns: (P_t - P_{t-1}) / P_{t-1}

    Args:
        price_matrix: DataFrame with DatetimeIndex and symbol columns

    Returns:
        DataFrame with simple returns (first row dropped due to NaN)

    Raises:
        InvalidInput: If zero prices are present
    """
    if price_matrix.empty:
        logger.warning("compute_simple_returns: empty price matrix provided")
        return pd.DataFrame()

    if (price_matrix == 0).any().any():
        zero_prices = (price_matrix == 0).sum()
        logger.error(
            "compute_simple_returns: zero prices detected",
            affected_symbols=zero_prices[zero_prices > 0].to_dict()
        )
        raise InvalidInput("Zero prices detected in price matrix")

    return price_matrix.pct_change().iloc[1:]


def annualized_volatility_by_symbol(
    returns: pd.DataFrame,
    periods_per_year: int = 252,
    default: Optional[float] = None,
) -> Dict[str, float]:
    """Population standard deviation of each column, annualized.

    Columns with fewer than two observations map to ``default`` when given
    and are omitted otherwise.
    """
    vols: Dict[str, float] = {}
    for symbol in returns.columns:
        col = returns[symbol].dropna()
        if len(col) < 2:
            if default is not None:
                vols[symbol] = default
            continue
        vols[symbol] = float(np.std(col.values) * np.sqrt(periods_per_year))
    return vols
