"""SQL persistence for risk snapshots and limits (SQLAlchemy + asyncpg)."""

from .engine import close_engine, get_engine, init_db
from .store import SqlRiskStore

__all__ = ['SqlRiskStore', 'get_engine', 'init_db', 'close_engine']
