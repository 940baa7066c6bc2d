"""Tests for DomainCache"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from tradovate_mcp.data.cache import DomainCache
from tradovate_mcp.infrastructure.brokers.tradovate.exceptions import ApiError

API_DATA = {
    "contract/list": [{"id": 1, "name": "ESZ4"}, {"id": 2, "name": "NQZ4"}],
    "position/list": [{"id": 10, "accountId": 100, "contractId": 1, "netPos": 2}],
    "order/list": [
        {"id": 20, "accountId": 100, "contractId": 1, "action": "Buy", "orderQty": 1, "orderType": "Limit", "price": 5000.0},
        {"id": 21, "accountId": 101, "contractId": 2, "action": "Sell", "orderQty": 1, "orderType": "Market"},
    ],
    "account/list": [{"id": 100, "name": "DEMO123"}],
}


@pytest.fixture
def client():
    mock_client = MagicMock()
    mock_client.get = AsyncMock(side_effect=lambda endpoint, **kwargs: API_DATA[endpoint])
    return mock_client


@pytest.mark.unit
@pytest.mark.asyncio
async def test_refresh_all_populates_caches(client):
    cache = DomainCache(client)

    await cache.refresh_all()

    assert set(cache.contracts) == {1, 2}
    assert cache.positions[10].net_pos == 2
    assert cache.orders[20].price == 5000.0
    assert cache.accounts[100].name == "DEMO123"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_values(client):
    """Test an API error leaves the last known cache in place"""
    cache = DomainCache(client)
    await cache.refresh_contracts()

    client.get = AsyncMock(side_effect=ApiError(500, "down"))
    result = await cache.refresh_contracts()

    assert set(result) == {1, 2}
    assert cache.find_contract_by_name("NQZ4").id == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unexpected_payload_keeps_previous_values(client):
    cache = DomainCache(client)
    await cache.refresh_orders()

    client.get = AsyncMock(return_value={"errorText": "nope"})
    await cache.refresh_orders()

    assert set(cache.orders) == {20, 21}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_account_filters(client):
    cache = DomainCache(client)
    await cache.refresh_all()

    assert [o.id for o in cache.orders_for_account(101)] == [21]
    assert len(cache.orders_for_account()) == 2
    assert [p.id for p in cache.positions_for_account(100)] == [10]
    assert cache.positions_for_account(999) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_periodic_refresh_runs_until_cancelled(client, mocker):
    cache = DomainCache(client)
    refresh = mocker.patch.object(cache, "refresh_all", new_callable=AsyncMock)

    task = asyncio.create_task(cache.run_periodic_refresh(interval=0.01))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert refresh.await_count >= 2
