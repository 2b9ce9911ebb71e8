"""Collaborator interfaces and market-data strategies for the risk service."""

from .cache import CachedMarketStats, TTLCache
from .memory import InMemoryPortfolioStore
from .sources import MarketStatsSource, PortfolioSource, ReturnSeriesSource, RiskStore
from .synthetic import SyntheticMarketData
from .yahoo import YahooMarketData

__all__ = [
    'CachedMarketStats',
    'TTLCache',
    'InMemoryPortfolioStore',
    'MarketStatsSource',
    'PortfolioSource',
    'ReturnSeriesSource',
    'RiskStore',
    'SyntheticMarketData',
    'YahooMarketData',
]
