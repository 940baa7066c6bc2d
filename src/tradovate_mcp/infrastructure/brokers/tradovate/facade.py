"""TradovateClient - facade over the token, HTTP and real-time components"""

from typing import Any

from tradovate_mcp.core.config import Config

from .auth import TokenManager
from .connection import ConnectionSupervisor
from .requests import TradovateRequestClient
from .subscriptions import (
    EventCallback,
    Subscription,
    SubscriptionManager,
    find_contract,
)


class TradovateClient:
    """Tradovate API client (facade pattern)

    Delegates to TokenManager, TradovateRequestClient, ConnectionSupervisor
    and SubscriptionManager. Tools talk to this class only.
    """

    def __init__(
        self,
        config: Config | None = None,
        token_manager: TokenManager | None = None,
        request_client: TradovateRequestClient | None = None,
        supervisor: ConnectionSupervisor | None = None,
        subscriptions: SubscriptionManager | None = None,
    ) -> None:
        """Initialize the client

        Components not passed in are built from ``config``.

        Args:
            config: Configuration (defaults to Config.from_env())
            token_manager: Shared token manager
            request_client: REST client
            supervisor: Real-time connection supervisor
            subscriptions: Subscription manager
        """
        self._config = config or Config.from_env()
        self._token_manager = token_manager or TokenManager(self._config)
        self._request_client = request_client or TradovateRequestClient(
            self._config, self._token_manager
        )
        self._supervisor = supervisor or ConnectionSupervisor(
            self._config, self._token_manager
        )
        self._subscriptions = subscriptions or SubscriptionManager(
            self._request_client
        )

    @property
    def config(self) -> Config:
        return self._config

    @property
    def token_manager(self) -> TokenManager:
        return self._token_manager

    @property
    def supervisor(self) -> ConnectionSupervisor:
        return self._supervisor

    async def get(
        self,
        endpoint: str,
        params: dict | None = None,
        market_data: bool = False,
    ) -> Any:
        """Make GET request

        Args:
            endpoint: API endpoint path
            params: Query parameters
            market_data: Use the market-data REST base

        Returns:
            Decoded JSON response
        """
        return await self._request_client.get(
            endpoint, params=params, market_data=market_data
        )

    async def post(
        self,
        endpoint: str,
        data: dict | None = None,
        params: dict | None = None,
        market_data: bool = False,
    ) -> Any:
        """Make POST request

        Args:
            endpoint: API endpoint path
            data: JSON payload
            params: Query parameters
            market_data: Use the market-data REST base

        Returns:
            Decoded JSON response
        """
        return await self._request_client.post(
            endpoint, data=data, params=params, market_data=market_data
        )

    async def send_trading(
        self, url: str, body: dict | None = None, query: str | None = None
    ) -> dict[str, Any]:
        """Send a request over the trading WebSocket"""
        session = await self._supervisor.trading()
        return await session.send(url, body, query)

    async def send_market_data(
        self, url: str, body: dict | None = None, query: str | None = None
    ) -> dict[str, Any]:
        """Send a request over the market-data WebSocket"""
        session = await self._supervisor.market_data()
        return await session.send(url, body, query)

    async def find_contract(self, symbol: str) -> dict[str, Any] | None:
        return await find_contract(self._request_client, symbol)

    async def subscribe_quote(
        self, symbol: str | int, callback: EventCallback
    ) -> Subscription:
        return await self._subscribe_market_data(
            "md/subscribequote", {"symbol": symbol}, callback
        )

    async def subscribe_dom(
        self, symbol: str | int, callback: EventCallback
    ) -> Subscription:
        return await self._subscribe_market_data(
            "md/subscribedom", {"symbol": symbol}, callback
        )

    async def subscribe_histogram(
        self, symbol: str | int, callback: EventCallback
    ) -> Subscription:
        return await self._subscribe_market_data(
            "md/subscribehistogram", {"symbol": symbol}, callback
        )

    async def subscribe_chart(
        self,
        symbol: str | int,
        chart_description: dict[str, Any],
        time_range: dict[str, Any],
        callback: EventCallback,
    ) -> Subscription:
        """Subscribe to chart bars

        Args:
            symbol: Contract name or id
            chart_description: e.g. {"underlyingType": "MinuteBar",
                "elementSize": 5, "elementSizeUnit": "UnderlyingUnits"}
            time_range: e.g. {"asMuchAsElements": 100}
            callback: Called with each chart update
        """
        body = {
            "symbol": symbol,
            "chartDescription": chart_description,
            "timeRange": time_range,
        }
        return await self._subscribe_market_data("md/getchart", body, callback)

    async def sync_user(
        self, user_ids: list[int], callback: EventCallback
    ) -> Subscription:
        """Start user data sync on the trading session"""
        session = await self._supervisor.trading()
        return await self._subscriptions.subscribe(
            session, "user/syncrequest", {"users": user_ids}, callback
        )

    async def _subscribe_market_data(
        self, url: str, body: dict[str, Any], callback: EventCallback
    ) -> Subscription:
        session = await self._supervisor.market_data()
        return await self._subscriptions.subscribe(session, url, body, callback)

    async def close(self) -> None:
        """Close sockets and HTTP clients"""
        await self._supervisor.close_all()
        await self._request_client.close()
        await self._token_manager.close()
