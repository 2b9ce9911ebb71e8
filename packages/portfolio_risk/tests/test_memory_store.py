"""Tests for the in-memory portfolio store."""

from datetime import date, datetime, timedelta, timezone

import pytest

from portfolio_risk.data.memory import InMemoryPortfolioStore
from portfolio_risk.data.sources import PortfolioSource, ReturnSeriesSource, RiskStore
from portfolio_risk.models import Portfolio
from portfolio_risk.risk.metrics import calculate_risk_metrics


@pytest.fixture
def empty_store():
    return InMemoryPortfolioStore()


def test_implements_protocols(store):
    assert isinstance(store, PortfolioSource)
    assert isinstance(store, ReturnSeriesSource)
    assert isinstance(store, RiskStore)


@pytest.mark.asyncio
async def test_missing_portfolio_is_none(empty_store):
    assert await empty_store.get_portfolio('nope') is None
    assert await empty_store.get_positions('nope') == []
    assert await empty_store.get_return_series('nope', 30) == []


@pytest.mark.asyncio
async def test_stored_returns_trimmed_to_window(store, sample_returns):
    returns = await store.get_return_series('pf-1', 30)

    assert returns == pytest.approx(list(sample_returns[-30:]))


@pytest.mark.asyncio
async def test_returns_derived_from_history(empty_store, sample_history):
    empty_store.add_portfolio(Portfolio(id='pf-h', total_value=103_000.0), history=sample_history)

    returns = await empty_store.get_return_series('pf-h', 252)

    assert len(returns) == len(sample_history) - 1
    assert returns[0] == pytest.approx(0.02)


@pytest.mark.asyncio
async def test_fallback_source_used(market):
    store = InMemoryPortfolioStore(fallback_returns=market)
    store.add_portfolio(Portfolio(id='pf-x', total_value=10_000.0))

    returns = await store.get_return_series('pf-x', 40)

    assert returns == await market.get_return_series('pf-x', 40)


@pytest.mark.asyncio
async def test_history_filtered_by_window(empty_store, sample_history):
    empty_store.add_portfolio(Portfolio(id='pf-h', total_value=103_000.0), history=sample_history)

    values = await empty_store.get_historical_values('pf-h', date(2024, 1, 3), date(2024, 1, 5))

    assert [v.date for v in values] == [date(2024, 1, 3), date(2024, 1, 4), date(2024, 1, 5)]


@pytest.mark.asyncio
async def test_history_rebuilt_ends_at_total_value(store):
    end = date(2024, 3, 31)

    values = await store.get_historical_values('pf-1', end - timedelta(days=10), end)

    assert len(values) == 11
    assert values[-1].date == end
    assert values[-1].value == pytest.approx(100_000.0)


@pytest.mark.asyncio
async def test_latest_metrics_by_calculation_time(empty_store, small_returns):
    older = calculate_risk_metrics('pf-1', 10_000, small_returns).model_copy(
        update={'calculated_at': datetime(2024, 1, 1, tzinfo=timezone.utc)}
    )
    newer = calculate_risk_metrics('pf-1', 10_000, small_returns).model_copy(
        update={'calculated_at': datetime(2024, 6, 1, tzinfo=timezone.utc)}
    )

    await empty_store.save_metrics(newer)
    await empty_store.save_metrics(older)

    assert await empty_store.find_latest_metrics('pf-1') == newer
    assert await empty_store.find_latest_metrics('pf-2') is None
