"""Database tables for persisted risk snapshots and limit configurations.

Snapshots keep a handful of queryable columns next to the full JSON payload;
limits keep one active row per portfolio.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    text,
)

risk_metadata = MetaData()

# ---------------------------------------------------------------------------
# Risk snapshots
# ---------------------------------------------------------------------------

risk_metrics = Table(
    "risk_metrics",
    risk_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("portfolio_id", String, nullable=False),
    Column("calculated_at", DateTime(timezone=True), nullable=False),
    Column("time_horizon", String, nullable=False),
    Column("confidence_level", Float, nullable=False),
    Column("value_at_risk", Float, nullable=False),
    Column("risk_score", Float, nullable=False),
    Column("risk_level", String, nullable=False),
    Column("metrics_json", Text, nullable=False),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    ),
    UniqueConstraint(
        "portfolio_id",
        "calculated_at",
        "time_horizon",
        "confidence_level",
        name="uq_risk_metrics_key",
    ),
)

Index(
    "idx_risk_metrics_portfolio_calculated",
    risk_metrics.c.portfolio_id,
    risk_metrics.c.calculated_at.desc(),
)

# ---------------------------------------------------------------------------
# Risk limits
# ---------------------------------------------------------------------------

risk_limits = Table(
    "risk_limits",
    risk_metadata,
    Column("id", String, primary_key=True),
    Column("portfolio_id", String, nullable=False),
    Column("max_drawdown", Float, nullable=True),
    Column("max_var", Float, nullable=True),
    Column("max_volatility", Float, nullable=True),
    Column("min_sharpe_ratio", Float, nullable=True),
    Column("max_concentration", Float, nullable=True),
    Column("max_leverage", Float, nullable=True),
    Column("active", Boolean, nullable=False, server_default=text("true")),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("portfolio_id", name="uq_risk_limits_portfolio"),
)
