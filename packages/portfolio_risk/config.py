"""Configuration for the risk engine loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings

from .data.cache import CachedMarketStats, TTLCache
from .data.memory import InMemoryPortfolioStore
from .data.sources import MarketStatsSource, RiskStore
from .data.synthetic import SyntheticMarketData
from .data.yahoo import YahooMarketData
from .db.store import SqlRiskStore


class Settings(BaseSettings):
    """Risk engine configuration.

    All fields are loaded from environment variables (or ``.env``) and have
    defaults suitable for local development with synthetic market data.
    """

    MARKET_DATA_PROVIDER: Literal["synthetic", "yahoo"] = "synthetic"
    RISK_FREE_RATE: float = 0.045
    BENCHMARK_SYMBOL: str = "SPY"
    BENCHMARK_ANNUAL_RETURN: float = 0.10  # Synthetic provider only
    MARKET_DATA_CACHE_TTL: int = 300  # Seconds; 0 disables caching
    MARKET_DATA_CACHE_SIZE: int = 1024
    MARKET_DATA_LOOKBACK_DAYS: int = 365
    SYNTHETIC_SEED: Optional[int] = None

    MONTE_CARLO_MAX_WORKERS: int = 0  # 0 = CPU count
    MONTE_CARLO_CHUNK_SIZE: int = 1000
    MONTE_CARLO_MAX_SIMULATIONS: int = 100_000
    MONTE_CARLO_PATH_SAMPLE: int = 100

    POSTGRES_URL: str = ""  # Optional, enables the SQL risk store
    DB_SSL: bool = False
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


def build_market_data(settings: Settings) -> MarketStatsSource:
    """Instantiate the configured market-data strategy.

    The source is wrapped in ``CachedMarketStats`` unless the cache TTL is 0.
    """
    if settings.MARKET_DATA_PROVIDER == "yahoo":
        source: MarketStatsSource = YahooMarketData(
            risk_free_rate=settings.RISK_FREE_RATE,
            benchmark_symbol=settings.BENCHMARK_SYMBOL,
            lookback_days=settings.MARKET_DATA_LOOKBACK_DAYS,
        )
    else:
        source = SyntheticMarketData(
            seed=settings.SYNTHETIC_SEED,
            risk_free_rate=settings.RISK_FREE_RATE,
            benchmark_return=settings.BENCHMARK_ANNUAL_RETURN,
            benchmark_symbol=settings.BENCHMARK_SYMBOL,
            lookback_days=settings.MARKET_DATA_LOOKBACK_DAYS,
        )

    if settings.MARKET_DATA_CACHE_TTL <= 0:
        return source

    cache = TTLCache(maxsize=settings.MARKET_DATA_CACHE_SIZE)
    return CachedMarketStats(source, cache, ttl_seconds=settings.MARKET_DATA_CACHE_TTL)


def build_risk_store(settings: Settings) -> RiskStore:
    """SQL store when POSTGRES_URL is set, otherwise an in-memory store."""
    if settings.POSTGRES_URL:
        return SqlRiskStore(settings.POSTGRES_URL, ssl=settings.DB_SSL)
    return InMemoryPortfolioStore()
