"""Tests for portfolio_risk.db.store persistence logic.

These tests verify parameter construction and SQL statement selection
without requiring a live PostgreSQL connection.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from portfolio_risk.db import store as db_store
from portfolio_risk.db.store import SqlRiskStore
from portfolio_risk.models import RiskLimits
from portfolio_risk.risk.metrics import calculate_risk_metrics


def _mock_engine(mock_conn):
    """Engine whose begin() and connect() both yield ``mock_conn``."""
    mock_engine = MagicMock()
    for method in (mock_engine.begin, mock_engine.connect):
        method.return_value.__aenter__ = AsyncMock(return_value=mock_conn)
        method.return_value.__aexit__ = AsyncMock(return_value=False)
    return mock_engine


@pytest.fixture
def snapshot(small_returns):
    return calculate_risk_metrics(
        'pf-1', 10_000, small_returns,
        correlations={'AAPL-MSFT': 0.4, 'MSFT-AAPL': 0.4},
    )


def test_metrics_upsert_conflict_target():
    """Recomputing a snapshot with the same key replaces it."""
    sql_text = str(db_store._UPSERT_METRICS.text)
    assert "ON CONFLICT (portfolio_id, calculated_at, time_horizon, confidence_level)" in sql_text
    assert "DO UPDATE SET" in sql_text


def test_limits_upsert_one_row_per_portfolio():
    sql_text = str(db_store._UPSERT_LIMITS.text)
    assert "ON CONFLICT (portfolio_id)" in sql_text


def test_latest_metrics_ordered_by_calculation_time():
    sql_text = str(db_store._SELECT_LATEST_METRICS.text)
    assert "ORDER BY calculated_at DESC" in sql_text
    assert "LIMIT 1" in sql_text


@pytest.mark.asyncio
async def test_save_metrics_executes_upsert(snapshot):
    mock_conn = AsyncMock()

    with patch.object(db_store, "_get_engine", return_value=_mock_engine(mock_conn)):
        await SqlRiskStore().save_metrics(snapshot)

    assert mock_conn.execute.call_count == 1
    stmt, params = mock_conn.execute.call_args_list[0][0]
    assert stmt is db_store._UPSERT_METRICS
    assert params["portfolio_id"] == 'pf-1'
    assert params["time_horizon"] == '1M'
    assert params["risk_level"] == snapshot.risk_level.value
    assert params["value_at_risk"] == snapshot.value_at_risk
    assert '"AAPL-MSFT":0.4' in params["metrics_json"]


@pytest.mark.asyncio
async def test_find_latest_metrics_round_trips_json(snapshot):
    mock_result = MagicMock()
    mock_result.first.return_value = (snapshot.model_dump_json(),)
    mock_conn = AsyncMock()
    mock_conn.execute.return_value = mock_result

    with patch.object(db_store, "_get_engine", return_value=_mock_engine(mock_conn)):
        found = await SqlRiskStore().find_latest_metrics('pf-1')

    assert found == snapshot
    stmt, params = mock_conn.execute.call_args_list[0][0]
    assert stmt is db_store._SELECT_LATEST_METRICS
    assert params == {"portfolio_id": 'pf-1'}


@pytest.mark.asyncio
async def test_find_latest_metrics_none_when_empty():
    mock_result = MagicMock()
    mock_result.first.return_value = None
    mock_conn = AsyncMock()
    mock_conn.execute.return_value = mock_result

    with patch.object(db_store, "_get_engine", return_value=_mock_engine(mock_conn)):
        assert await SqlRiskStore().find_latest_metrics('pf-1') is None


@pytest.mark.asyncio
async def test_save_limits_assigns_id_and_timestamp():
    mock_conn = AsyncMock()

    with patch.object(db_store, "_get_engine", return_value=_mock_engine(mock_conn)):
        stored = await SqlRiskStore().save_limits('pf-1', RiskLimits(max_var=5_000.0))

    assert stored.id is not None
    assert stored.portfolio_id == 'pf-1'
    assert stored.created_at is not None

    stmt, params = mock_conn.execute.call_args_list[0][0]
    assert stmt is db_store._UPSERT_LIMITS
    assert params["id"] == stored.id
    assert params["max_var"] == 5_000.0
    assert params["max_drawdown"] is None
    assert params["active"] is True


@pytest.mark.asyncio
async def test_save_limits_keeps_existing_id():
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)
    limits = RiskLimits(id='lim-1', created_at=created, min_sharpe_ratio=0.5)
    mock_conn = AsyncMock()

    with patch.object(db_store, "_get_engine", return_value=_mock_engine(mock_conn)):
        stored = await SqlRiskStore().save_limits('pf-1', limits)

    assert stored.id == 'lim-1'
    assert stored.created_at == created
