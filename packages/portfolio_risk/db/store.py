"""SQL-backed risk store: snapshot and limit persistence via SQLAlchemy + asyncpg."""

from __future__ import annotations

import uuid
from typing import Any, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from ..models import RiskLimits, RiskMetrics, utc_now
from .engine import get_engine

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_UPSERT_METRICS = text("""
    INSERT INTO risk_metrics (
        portfolio_id, calculated_at, time_horizon, confidence_level,
        value_at_risk, risk_score, risk_level, metrics_json
    )
    VALUES (
        :portfolio_id, :calculated_at, :time_horizon, :confidence_level,
        :value_at_risk, :risk_score, :risk_level, :metrics_json
    )
    ON CONFLICT (portfolio_id, calculated_at, time_horizon, confidence_level)
    DO UPDATE SET
        value_at_risk = EXCLUDED.value_at_risk,
        risk_score = EXCLUDED.risk_score,
        risk_level = EXCLUDED.risk_level,
        metrics_json = EXCLUDED.metrics_json
""")

_SELECT_LATEST_METRICS = text("""
    SELECT metrics_json
    FROM risk_metrics
    WHERE portfolio_id = :portfolio_id
    ORDER BY calculated_at DESC
    LIMIT 1
""")

_UPSERT_LIMITS = text("""
    INSERT INTO risk_limits (
        id, portfolio_id, max_drawdown, max_var, max_volatility,
        min_sharpe_ratio, max_concentration, max_leverage, active, created_at
    )
    VALUES (
        :id, :portfolio_id, :max_drawdown, :max_var, :max_volatility,
        :min_sharpe_ratio, :max_concentration, :max_leverage, :active, :created_at
    )
    ON CONFLICT (portfolio_id)
    DO UPDATE SET
        id = EXCLUDED.id,
        max_drawdown = EXCLUDED.max_drawdown,
        max_var = EXCLUDED.max_var,
        max_volatility = EXCLUDED.max_volatility,
        min_sharpe_ratio = EXCLUDED.min_sharpe_ratio,
        max_concentration = EXCLUDED.max_concentration,
        max_leverage = EXCLUDED.max_leverage,
        active = EXCLUDED.active,
        created_at = EXCLUDED.created_at
""")


def _get_engine(postgres_url: Optional[str] = None, ssl: Optional[bool] = None) -> AsyncEngine:
    return get_engine(postgres_url, ssl)


class SqlRiskStore:
    """RiskStore backed by the ``risk_metrics`` and ``risk_limits`` tables."""

    def __init__(self, postgres_url: Optional[str] = None, ssl: Optional[bool] = None) -> None:
        self._postgres_url = postgres_url
        self._ssl = ssl

    async def save_metrics(self, metrics: RiskMetrics) -> None:
        params: dict[str, Any] = {
            "portfolio_id": metrics.portfolio_id,
            "calculated_at": metrics.calculated_at,
            "time_horizon": metrics.time_horizon.value,
            "confidence_level": metrics.confidence_level,
            "value_at_risk": metrics.value_at_risk,
            "risk_score": metrics.risk_score,
            "risk_level": metrics.risk_level.value,
            "metrics_json": metrics.model_dump_json(),
        }

        engine = _get_engine(self._postgres_url, self._ssl)
        async with engine.begin() as conn:
            await conn.execute(_UPSERT_METRICS, params)

        logger.info(
            "risk_metrics_saved",
            portfolio_id=metrics.portfolio_id,
            calculated_at=metrics.calculated_at,
        )

    async def find_latest_metrics(self, portfolio_id: str) -> Optional[RiskMetrics]:
        engine = _get_engine(self._postgres_url, self._ssl)
        async with engine.connect() as conn:
            result = await conn.execute(_SELECT_LATEST_METRICS, {"portfolio_id": portfolio_id})
            row = result.first()

        if row is None:
            return None
        return RiskMetrics.model_validate_json(row[0])

    async def save_limits(self, portfolio_id: str, limits: RiskLimits) -> RiskLimits:
        stored = limits.model_copy(update={
            "id": limits.id or str(uuid.uuid4()),
            "portfolio_id": portfolio_id,
            "created_at": limits.created_at or utc_now(),
        })

        params = stored.model_dump(
            include={
                "id",
                "portfolio_id",
                "max_drawdown",
                "max_var",
                "max_volatility",
                "min_sharpe_ratio",
                "max_concentration",
                "max_leverage",
                "active",
                "created_at",
            }
        )

        engine = _get_engine(self._postgres_url, self._ssl)
        async with engine.begin() as conn:
            await conn.execute(_UPSERT_LIMITS, params)

        logger.info("risk_limits_saved", portfolio_id=portfolio_id, limits_id=stored.id)
        return stored
