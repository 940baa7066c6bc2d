"""FastMCP tool and resource surface for Tradovate

Tools answer with readable text. Read-only tools fall back to the cached
data when the API cannot be reached; order tools never simulate.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

from fastmcp import FastMCP
from loguru import logger

from tradovate_mcp.data.cache import DomainCache
from tradovate_mcp.domain.models import (
    ORDER_ACTIONS,
    Order,
    validate_order_prices,
)
from tradovate_mcp.infrastructure.brokers.tradovate.exceptions import (
    TradovateClientError,
)
from tradovate_mcp.infrastructure.brokers.tradovate.facade import TradovateClient
from tradovate_mcp.shared.exceptions import ToolError

SERVER_NAME = "tradovate-mcp"
MARKET_DATA_TIMEOUT = 10.0

# Timeframe -> (elementSize, underlyingType)
CHART_TIMEFRAMES: dict[str, tuple[int, str]] = {
    "1min": (1, "MinuteBar"),
    "5min": (5, "MinuteBar"),
    "15min": (15, "MinuteBar"),
    "30min": (30, "MinuteBar"),
    "1hour": (60, "MinuteBar"),
    "4hour": (240, "MinuteBar"),
    "1day": (1, "DailyBar"),
}


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


class TradovateTools:
    """Tool handlers bound to one client and its caches"""

    def __init__(self, client: TradovateClient, cache: DomainCache) -> None:
        self._client = client
        self._cache = cache

    async def get_contract_details(self, symbol: str) -> str:
        """Get details for a futures contract by symbol (e.g. ESZ4)."""
        if not symbol:
            raise ToolError("Symbol is required")

        try:
            contract = await self._client.find_contract(symbol)
        except TradovateClientError as e:
            logger.error(f"Error getting contract details for {symbol}: {e}")
            cached = self._cache.find_contract_by_name(symbol)
            if cached is None:
                return f"Contract not found for symbol: {symbol}"
            return f"Contract details for {symbol} (cached):\n{_dump(cached.to_dict())}"

        if contract is None:
            return f"Contract not found for symbol: {symbol}"
        return f"Contract details for {symbol}:\n{_dump(contract)}"

    async def list_positions(self, account_id: int | None = None) -> str:
        """List open positions, optionally for one account."""
        suffix = f" for account {account_id}" if account_id is not None else ""
        params = {"accountId": account_id} if account_id is not None else None

        try:
            positions = await self._retry_once(
                "listing positions", lambda: self._client.get("position/list", params=params)
            )
        except TradovateClientError as e:
            cached = [p.to_dict() for p in self._cache.positions_for_account(account_id)]
            if not cached:
                return f"Error fetching positions: {e}"
            return f"Positions{suffix} (cached):\n{_dump(cached)}"

        if not positions:
            return f"No positions found{suffix}"
        return f"Positions{suffix}:\n{_dump(positions)}"

    async def list_orders(self, account_id: int | None = None) -> str:
        """List orders, optionally for one account."""
        suffix = f" for account {account_id}" if account_id is not None else ""
        params = {"accountId": account_id} if account_id is not None else None

        try:
            orders = await self._retry_once(
                "listing orders", lambda: self._client.get("order/list", params=params)
            )
        except TradovateClientError:
            cached = [o.to_dict() for o in self._cache.orders_for_account(account_id)]
            if not cached:
                return f"No orders found{suffix} (cached)"
            return f"Orders{suffix} (cached):\n{_dump(cached)}"

        if not orders:
            return f"No orders found{suffix}"
        return f"Orders{suffix}:\n{_dump(orders)}"

    async def place_order(
        self,
        symbol: str,
        action: str,
        order_type: str,
        quantity: int,
        price: float | None = None,
        stop_price: float | None = None,
    ) -> str:
        """Place a Market, Limit, Stop or StopLimit order on the first account."""
        if not symbol or not action or not order_type or not quantity:
            raise ToolError("Symbol, action, orderType, and quantity are required")
        if action not in ORDER_ACTIONS:
            raise ToolError(f"Action must be one of {ORDER_ACTIONS}")
        try:
            validate_order_prices(order_type, price, stop_price)
        except ValueError as e:
            raise ToolError(str(e)) from e

        try:
            contract = await self._client.find_contract(symbol)
            if contract is None:
                return f"Contract not found for symbol: {symbol}"

            accounts = await self._client.get("account/list")
            if not accounts:
                return "No accounts found"

            order_data: dict[str, Any] = {
                "accountSpec": accounts[0].get("name"),
                "accountId": accounts[0]["id"],
                "symbol": contract.get("name", symbol),
                "action": action,
                "orderQty": quantity,
                "orderType": order_type,
                "isAutomated": True,
            }
            if price is not None:
                order_data["price"] = price
            if stop_price is not None:
                order_data["stopPrice"] = stop_price

            result = await self._client.post("order/placeorder", order_data)
        except TradovateClientError as e:
            logger.error(f"Error placing order: {e}")
            return f"Failed to place order: {e}"

        self._remember_order(result)
        return f"Order placed successfully:\n{_dump(result)}"

    async def modify_order(
        self,
        order_id: int,
        price: float | None = None,
        stop_price: float | None = None,
        quantity: int | None = None,
    ) -> str:
        """Modify price, stop price or quantity of a working order."""
        if not order_id:
            raise ToolError("Order ID is required")

        try:
            order = await self._client.get("order/item", params={"id": order_id})
            if not order:
                return f"Order not found with ID: {order_id}"

            modify_data: dict[str, Any] = {
                "orderId": order_id,
                "orderQty": quantity if quantity is not None else order.get("orderQty"),
                "orderType": order.get("orderType"),
                "isAutomated": True,
            }
            if price is not None:
                modify_data["price"] = price
            if stop_price is not None:
                modify_data["stopPrice"] = stop_price

            result = await self._client.post("order/modifyorder", modify_data)
        except TradovateClientError as e:
            logger.error(f"Error modifying order {order_id}: {e}")
            return f"Failed to modify order {order_id}: {e}"

        return f"Order modified successfully:\n{_dump(result)}"

    async def cancel_order(self, order_id: int) -> str:
        """Cancel a working order."""
        if not order_id:
            raise ToolError("Order ID is required")

        try:
            result = await self._client.post(
                "order/cancelorder", {"orderId": order_id, "isAutomated": True}
            )
        except TradovateClientError as e:
            logger.error(f"Error canceling order {order_id}: {e}")
            return f"Failed to cancel order {order_id}: {e}"

        cached = self._cache.orders.get(order_id)
        if cached is not None:
            cached.ord_status = "Canceled"
        return f"Order canceled successfully:\n{_dump(result)}"

    async def liquidate_position(self, symbol: str) -> str:
        """Close the open position in a contract."""
        if not symbol:
            raise ToolError("Symbol is required")

        async def liquidate() -> str:
            contract = await self._client.find_contract(symbol)
            if contract is None:
                return f"Contract not found for symbol: {symbol}"

            positions = await self._client.get("position/list") or []
            position = next(
                (p for p in positions if p.get("contractId") == contract["id"]),
                None,
            )
            if position is None:
                return f"No position found for symbol: {symbol}"

            result = await self._client.post(
                "order/liquidateposition",
                {
                    "accountId": position["accountId"],
                    "contractId": position["contractId"],
                    "admin": False,
                },
            )
            return f"Position liquidated successfully:\n{_dump(result)}"

        try:
            return await self._retry_once(f"liquidating {symbol}", liquidate)
        except TradovateClientError as e:
            return f"Failed to liquidate position for {symbol}: {e}"

    async def get_account_summary(self, account_id: int | None = None) -> str:
        """Balance, open P&L and margin for an account (first account by default)."""

        async def summarize() -> str:
            if account_id is not None:
                account = await self._client.get("account/item", params={"id": account_id})
                if not account:
                    return f"Account not found with ID: {account_id}"
            else:
                accounts = await self._client.get("account/list")
                if not accounts:
                    return "No accounts found"
                account = accounts[0]

            balance = await self._client.post(
                "cashBalance/getcashbalancesnapshot", {"accountId": account["id"]}
            ) or {}
            positions = await self._client.get(
                "position/list", params={"accountId": account["id"]}
            ) or []

            cash = balance.get("totalCashValue", balance.get("cashBalance", 0)) or 0
            margin = balance.get("initialMargin", 0) or 0
            open_pnl = sum(p.get("openPnl") or 0 for p in positions)
            summary = {
                "account": account,
                "balance": cash,
                "openPnl": open_pnl,
                "realizedPnl": sum(p.get("realizedPnl") or 0 for p in positions),
                "totalEquity": cash + open_pnl,
                "marginUsed": margin,
                "availableMargin": cash - margin + open_pnl,
                "positionCount": len(positions),
            }
            return f"Account summary for {account.get('name')}:\n{_dump(summary)}"

        try:
            return await self._retry_once("getting account summary", summarize)
        except TradovateClientError as e:
            return f"Error getting account summary: {e}"

    async def get_market_data(
        self, symbol: str, data_type: str, chart_timeframe: str = "1min"
    ) -> str:
        """Get a Quote, DOM or Chart snapshot for a contract."""
        if not symbol or not data_type:
            raise ToolError("Symbol and dataType are required")

        subscribers = {
            "Quote": lambda cb: self._client.subscribe_quote(symbol, cb),
            "DOM": lambda cb: self._client.subscribe_dom(symbol, cb),
            "Chart": lambda cb: self._client.subscribe_chart(
                symbol, *self._chart_request(chart_timeframe), cb
            ),
        }
        if data_type not in subscribers:
            raise ToolError(f"Unsupported data type: {data_type}")

        try:
            subscription = await subscribers[data_type](lambda event: None)
        except TradovateClientError as e:
            logger.error(f"Error getting market data for {symbol}: {e}")
            return f"Failed to get market data for {symbol}: {e}"

        try:
            data = await subscription.first_event(timeout=MARKET_DATA_TIMEOUT)
        except asyncio.TimeoutError:
            return f"No {data_type} data received for {symbol} within {MARKET_DATA_TIMEOUT:.0f}s"
        finally:
            try:
                await subscription.cancel()
            except TradovateClientError as e:
                logger.warning(f"Failed to cancel {data_type} subscription for {symbol}: {e}")

        return f"Market data for {symbol} ({data_type}):\n{_dump(data)}"

    @staticmethod
    def _chart_request(timeframe: str) -> tuple[dict[str, Any], dict[str, Any]]:
        size, underlying = CHART_TIMEFRAMES.get(timeframe, CHART_TIMEFRAMES["1min"])
        description = {
            "underlyingType": underlying,
            "elementSize": size,
            "elementSizeUnit": "UnderlyingUnits",
            "withHistogram": False,
        }
        return description, {"asMuchAsElements": 60}

    async def contracts_resource(self) -> str:
        return _dump([c.to_dict() for c in self._cache.contracts.values()])

    async def contract_resource(self, contract_id: int) -> str:
        contract = self._cache.contracts.get(int(contract_id))
        if contract is None:
            raise ToolError(f"Contract not found: {contract_id}")
        return _dump(contract.to_dict())

    async def positions_resource(self) -> str:
        return _dump([p.to_dict() for p in self._cache.positions.values()])

    async def position_resource(self, position_id: int) -> str:
        position = self._cache.positions.get(int(position_id))
        if position is None:
            raise ToolError(f"Position not found: {position_id}")
        return _dump(position.to_dict())

    async def _retry_once(
        self, action: str, call: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Run ``call``; on a client error log it and run it once more"""
        try:
            return await call()
        except TradovateClientError as e:
            logger.error(f"Error {action}, retrying: {e}")
        return await call()

    def _remember_order(self, result: Any) -> None:
        if isinstance(result, dict) and isinstance(result.get("orderId"), int):
            logger.info(f"Order {result['orderId']} placed")
        elif isinstance(result, dict) and "id" in result:
            order = Order.from_api(result)
            self._cache.orders[order.id] = order


def create_server(tools: TradovateTools) -> FastMCP:
    """Register the tool handlers and cache resources on a FastMCP server"""
    mcp = FastMCP(SERVER_NAME)

    for handler in (
        tools.get_contract_details,
        tools.list_positions,
        tools.list_orders,
        tools.place_order,
        tools.modify_order,
        tools.cancel_order,
        tools.liquidate_position,
        tools.get_account_summary,
        tools.get_market_data,
    ):
        mcp.tool(handler)

    mcp.resource("tradovate://contract/", mime_type="application/json")(
        tools.contracts_resource
    )
    mcp.resource("tradovate://contract/{contract_id}", mime_type="application/json")(
        tools.contract_resource
    )
    mcp.resource("tradovate://position/", mime_type="application/json")(
        tools.positions_resource
    )
    mcp.resource("tradovate://position/{position_id}", mime_type="application/json")(
        tools.position_resource
    )
    return mcp
