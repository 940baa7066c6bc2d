"""DomainCache - last known contracts, positions, orders and accounts

Each refresh replaces one map from its list endpoint. A failed refresh
keeps the previous values so tools can still answer from cache.
"""

import asyncio
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger

from tradovate_mcp.domain.models import Account, Contract, Order, Position
from tradovate_mcp.infrastructure.brokers.protocols import RestClient
from tradovate_mcp.infrastructure.brokers.tradovate.exceptions import (
    TradovateClientError,
)

T = TypeVar("T", Contract, Position, Order, Account)


class DomainCache:
    """In-memory caches keyed by entity id"""

    def __init__(self, client: RestClient) -> None:
        self._client = client
        self.contracts: dict[int, Contract] = {}
        self.positions: dict[int, Position] = {}
        self.orders: dict[int, Order] = {}
        self.accounts: dict[int, Account] = {}

    async def refresh_contracts(self) -> dict[int, Contract]:
        self.contracts = await self._refresh(
            "contract/list", Contract.from_api, self.contracts
        )
        return self.contracts

    async def refresh_positions(self) -> dict[int, Position]:
        self.positions = await self._refresh(
            "position/list", Position.from_api, self.positions
        )
        return self.positions

    async def refresh_orders(self) -> dict[int, Order]:
        self.orders = await self._refresh("order/list", Order.from_api, self.orders)
        return self.orders

    async def refresh_accounts(self) -> dict[int, Account]:
        self.accounts = await self._refresh(
            "account/list", Account.from_api, self.accounts
        )
        return self.accounts

    async def refresh_all(self) -> None:
        """Refresh all four caches concurrently"""
        logger.info("Refreshing Tradovate data caches...")
        await asyncio.gather(
            self.refresh_contracts(),
            self.refresh_positions(),
            self.refresh_orders(),
            self.refresh_accounts(),
        )
        logger.info(
            f"Cached {len(self.contracts)} contracts, {len(self.positions)} positions, "
            f"{len(self.orders)} orders, {len(self.accounts)} accounts"
        )

    async def run_periodic_refresh(self, interval: float = 300.0) -> None:
        """Refresh every ``interval`` seconds until cancelled"""
        while True:
            await asyncio.sleep(interval)
            await self.refresh_all()

    def find_contract_by_name(self, name: str) -> Contract | None:
        for contract in self.contracts.values():
            if contract.name == name:
                return contract
        return None

    def orders_for_account(self, account_id: int | None = None) -> list[Order]:
        if account_id is None:
            return list(self.orders.values())
        return [o for o in self.orders.values() if o.account_id == account_id]

    def positions_for_account(self, account_id: int | None = None) -> list[Position]:
        if account_id is None:
            return list(self.positions.values())
        return [p for p in self.positions.values() if p.account_id == account_id]

    async def _refresh(
        self,
        endpoint: str,
        parse: Callable[[dict[str, Any]], T],
        previous: dict[int, T],
    ) -> dict[int, T]:
        try:
            items = await self._client.get(endpoint)
        except TradovateClientError as e:
            logger.error(f"Error fetching {endpoint}, keeping cached values: {e}")
            return previous

        if not isinstance(items, list):
            logger.warning(f"Unexpected {endpoint} response: {items!r}")
            return previous

        refreshed: dict[int, T] = {}
        for item in items:
            if not isinstance(item, dict) or "id" not in item:
                continue
            entity = parse(item)
            refreshed[entity.id] = entity
        return refreshed
