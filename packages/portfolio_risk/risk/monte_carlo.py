"""
Monte Carlo Simulation Module

Projects portfolio value paths from the empirical mean and standard deviation
of a return series.  Daily shocks are standard normals drawn with the
Box-Muller transform from an injected ``numpy.random.Generator``.

Simulations are generated in fixed-size chunks on a thread pool.  Each chunk
owns a child generator spawned from the injected one and chunk results are
merged in chunk order, so a seeded generator reproduces identical output for
any worker count.
"""

import math
import os
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

import numpy as np
import structlog

from ..errors import InvalidInput
from ..models import (
    MonteCarloResults,
    MonteCarloSimulation,
    SimulationOutcome,
    SimulationPath,
    TimeHorizon,
)
from .returns import validate_returns

logger = structlog.get_logger(__name__)

PERCENTILES = (5, 10, 25, 50, 75, 90, 95)
DEFAULT_CHUNK_SIZE = 1000
DEFAULT_PATH_SAMPLE = 100
MAX_SIMULATIONS = 100_000


def box_muller(rng: np.random.Generator, size) -> np.ndarray:
    """Standard normal samples from pairs of uniform draws.

    z = sqrt(-2 ln u1) * cos(2 pi u2) with u1, u2 in (0, 1].
    """
    u1 = 1.0 - rng.random(size)
    u2 = 1.0 - rng.random(size)
    return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)


def _simulate_chunk(
    rng: np.random.Generator,
    start_value: float,
    mean: float,
    std: float,
    n_paths: int,
    days: int,
    keep_paths: int,
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """Simulate ``n_paths`` compounded value paths of ``days`` steps.

    Returns:
        (final_values, kept_paths) where kept_paths holds the first
        ``keep_paths`` full paths including the starting value, or None.
    """
    shocks = mean + std * box_muller(rng, (n_paths, days))
    growth = np.cumprod(1.0 + shocks, axis=1)

    finals = start_value * growth[:, -1]

    kept = None
    if keep_paths > 0:
        head = start_value * growth[:keep_paths]
        kept = np.hstack([np.full((head.shape[0], 1), start_value), head])

    return finals, kept


def simulate_final_values(
    start_value: float,
    mean: float,
    std: float,
    num_simulations: int,
    days: int,
    rng: np.random.Generator,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    path_sample: int = DEFAULT_PATH_SAMPLE,
    max_workers: Optional[int] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Run all simulations and return (final_values, sampled_paths).

    Final values are in simulation order (unsorted).  Only the first
    ``path_sample`` simulations keep their full path.
    """
    if num_simulations < 1:
        raise InvalidInput(f"Number of simulations must be >= 1, got {num_simulations}")
    if days < 1:
        raise InvalidInput(f"Simulation horizon must be >= 1 day, got {days}")
    if chunk_size < 1:
        raise InvalidInput(f"Chunk size must be >= 1, got {chunk_size}")

    n_chunks = math.ceil(num_simulations / chunk_size)
    child_rngs = rng.spawn(n_chunks)

    jobs = []
    remaining_paths = path_sample
    for i, child in enumerate(child_rngs):
        n_paths = min(chunk_size, num_simulations - i * chunk_size)
        keep = min(max(remaining_paths, 0), n_paths)
        remaining_paths -= keep
        jobs.append((child, start_value, mean, std, n_paths, days, keep))

    workers = max_workers or os.cpu_count() or 1
    workers = max(1, min(workers, n_chunks))

    if workers == 1:
        results = [_simulate_chunk(*job) for job in jobs]
    else:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="monte_carlo") as executor:
            results = list(executor.map(lambda job: _simulate_chunk(*job), jobs))

    finals = np.concatenate([r[0] for r in results])
    kept = [r[1] for r in results if r[1] is not None]
    paths = np.vstack(kept) if kept else np.empty((0, days + 1))

    return finals, paths


def _percentiles(sorted_finals: np.ndarray) -> dict:
    n = len(sorted_finals)
    return {p: float(sorted_finals[int(math.floor(n * p / 100))]) for p in PERCENTILES}


def run_monte_carlo(
    portfolio_id: str,
    portfolio_value: float,
    returns: Sequence[float],
    num_simulations: int,
    time_horizon: TimeHorizon,
    rng: Optional[np.random.Generator] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    path_sample: int = DEFAULT_PATH_SAMPLE,
    max_workers: Optional[int] = None,
    max_simulations: int = MAX_SIMULATIONS,
) -> MonteCarloSimulation:
    """Project the distribution of portfolio value over ``time_horizon``.

    Args:
        portfolio_id: Identifier stamped on the result
        portfolio_value: Starting value (> 0)
        returns: Historical periodic returns (>= 2 points)
        num_simulations: Number of paths, 1..max_simulations
        time_horizon: Horizon, mapped to a day count (1D=1 ... 1Y=365)
        rng: Random source; seed it for reproducible output.  A fresh
            unseeded generator is used when omitted.
        chunk_size: Simulations per work unit
        path_sample: Number of full paths retained for inspection
        max_workers: Thread count (defaults to the CPU count)
        max_simulations: Upper bound on ``num_simulations``

    Returns:
        MonteCarloSimulation with percentiles, probability of loss,
        best/worst/most-likely outcomes and a bounded path sample
    """
    arr = validate_returns(returns)

    if portfolio_value <= 0:
        raise InvalidInput(f"Portfolio value must be positive, got {portfolio_value}")
    if not 1 <= num_simulations <= max_simulations:
        raise InvalidInput(
            f"Number of simulations must be between 1 and {max_simulations}, got {num_simulations}"
        )

    if rng is None:
        rng = np.random.default_rng()

    mean = float(np.mean(arr))
    std = float(np.std(arr))
    days = time_horizon.days

    finals, paths = simulate_final_values(
        start_value=portfolio_value,
        mean=mean,
        std=std,
        num_simulations=num_simulations,
        days=days,
        rng=rng,
        chunk_size=chunk_size,
        path_sample=path_sample,
        max_workers=max_workers,
    )

    sorted_finals = np.sort(finals)
    percentiles = _percentiles(sorted_finals)

    probability_of_loss = float(np.count_nonzero(sorted_finals < portfolio_value) / num_simulations)
    expected_return = float(sorted_finals.mean() / portfolio_value - 1)
    single = 1 / num_simulations

    sampled: List[SimulationPath] = [
        SimulationPath(
            simulation_id=i,
            final_value=float(path[-1]),
            max_value=float(path.max()),
            min_value=float(path.min()),
            path=path.tolist(),
        )
        for i, path in enumerate(paths)
    ]

    results = MonteCarloResults(
        expected_return=expected_return,
        expected_volatility=float(std * np.sqrt(days)),
        percentiles=percentiles,
        probability_of_loss=probability_of_loss,
        best_case=SimulationOutcome(value=float(sorted_finals[-1]), probability=single),
        worst_case=SimulationOutcome(value=float(sorted_finals[0]), probability=single),
        most_likely=SimulationOutcome(value=percentiles[50], probability=0.5),
        paths=sampled,
    )

    logger.info(
        "run_monte_carlo: simulation complete",
        portfolio_id=portfolio_id,
        num_simulations=num_simulations,
        days=days,
        probability_of_loss=probability_of_loss,
        p5=percentiles[5],
        p95=percentiles[95],
    )

    return MonteCarloSimulation(
        portfolio_id=portfolio_id,
        num_simulations=num_simulations,
        time_horizon=time_horizon,
        days=days,
        results=results,
    )
