"""SubscriptionManager - real-time subscriptions on top of a RealtimeSession

Each subscription is a listener on its session that filters push events
down to the ones belonging to it, plus a cancel handle that sends the
matching unsubscribe request.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from ..protocols import RealtimeSession, RestClient
from .exceptions import (
    ApiError,
    SubscribeTicketExhaustedError,
    TradovateSubscriptionError,
    WrongSessionRoleError,
)
from .socket import SessionRole

EventCallback = Callable[[dict[str, Any]], None]


@dataclass(frozen=True)
class SubscriptionRoute:
    """How a subscribe URL filters its events and how it is cancelled"""

    url: str
    role: SessionRole
    collection: str | None = None
    match_field: str | None = None
    cancel_url: str | None = None
    cancel_field: str | None = None

    @property
    def keyed_by_contract(self) -> bool:
        return self.match_field == "contractId"


ROUTES: dict[str, SubscriptionRoute] = {
    route.url: route
    for route in (
        SubscriptionRoute(
            "md/getchart",
            SessionRole.MARKET_DATA,
            collection="charts",
            match_field="id",
            cancel_url="md/cancelChart",
            cancel_field="subscriptionId",
        ),
        SubscriptionRoute(
            "md/subscribedom",
            SessionRole.MARKET_DATA,
            collection="doms",
            match_field="contractId",
            cancel_url="md/unsubscribedom",
            cancel_field="symbol",
        ),
        SubscriptionRoute(
            "md/subscribequote",
            SessionRole.MARKET_DATA,
            collection="quotes",
            match_field="contractId",
            cancel_url="md/unsubscribequote",
            cancel_field="symbol",
        ),
        SubscriptionRoute(
            "md/subscribehistogram",
            SessionRole.MARKET_DATA,
            collection="histograms",
            match_field="contractId",
            cancel_url="md/unsubscribehistogram",
            cancel_field="symbol",
        ),
        SubscriptionRoute("user/syncrequest", SessionRole.TRADING),
    )
}


async def find_contract(
    request_client: RestClient, symbol: str
) -> dict[str, Any] | None:
    """Look a contract up by name, falling back to the first suggestion"""
    try:
        contract = await request_client.get("contract/find", params={"name": symbol})
    except ApiError as e:
        logger.debug(f"contract/find failed for {symbol}: {e}")
        contract = None

    if isinstance(contract, dict) and contract.get("id") is not None:
        return contract

    suggestions = await request_client.get(
        "contract/suggest", params={"name": symbol}
    )
    if isinstance(suggestions, list) and suggestions and isinstance(suggestions[0], dict):
        logger.info(f"Resolved {symbol} via contract/suggest")
        return suggestions[0]
    return None


class Subscription:
    """Handle for a live subscription"""

    def __init__(
        self,
        session: RealtimeSession,
        route: SubscriptionRoute,
        callback: EventCallback,
    ) -> None:
        self._session = session
        self._route = route
        self._callback = callback
        self._remove_listener: Callable[[], None] | None = None
        self._cancel_body: dict[str, Any] | None = None
        self._cancelled = False
        self._first: dict[str, Any] | None = None
        self._first_seen = asyncio.Event()
        self.realtime_id: Any = None
        self.contract_id: int | None = None

    @property
    def url(self) -> str:
        return self._route.url

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def deliver(self, event: dict[str, Any]) -> None:
        if self._cancelled:
            return
        if not self._first_seen.is_set():
            self._first = event
            self._first_seen.set()
        self._callback(event)

    async def first_event(self, timeout: float = 10.0) -> dict[str, Any]:
        """Wait for the first delivered event

        Raises:
            asyncio.TimeoutError: If nothing arrives within ``timeout``
        """
        await asyncio.wait_for(self._first_seen.wait(), timeout=timeout)
        return self._first  # type: ignore[return-value]

    async def cancel(self) -> None:
        """Stop delivery and send the unsubscribe request, once"""
        if self._cancelled:
            return
        self._cancelled = True
        if self._remove_listener is not None:
            self._remove_listener()

        if self._route.cancel_url is None:
            return
        logger.info(f"Cancelling {self._route.url} subscription")
        await self._session.send(self._route.cancel_url, self._cancel_body)


class _EventFilter:
    """Session listener selecting one subscription's pushes

    Pushes seen before the filter key is known are held and replayed
    once it is.
    """

    MAX_BACKLOG = 1000

    def __init__(self, route: SubscriptionRoute, deliver: EventCallback) -> None:
        self._route = route
        self._deliver = deliver
        self._key: Any = None
        self._armed = False
        self._backlog: list[dict[str, Any]] = []

    def arm(self, key: Any) -> None:
        self._key = key
        self._armed = True
        backlog, self._backlog = self._backlog, []
        for item in backlog:
            self._forward(item)

    def __call__(self, event: dict[str, Any]) -> None:
        for item in self._extract(event):
            if self._armed:
                self._forward(item)
            elif len(self._backlog) < self.MAX_BACKLOG:
                self._backlog.append(item)

    def _extract(self, event: dict[str, Any]) -> list[dict[str, Any]]:
        data = event.get("d")
        if self._route.collection is None:
            users = isinstance(data, dict) and data.get("users")
            if users or event.get("e") == "props":
                return [data]
            return []

        if not isinstance(data, dict):
            return []
        items = data.get(self._route.collection)
        if not isinstance(items, list):
            return []
        return [item for item in items if isinstance(item, dict)]

    def _forward(self, item: dict[str, Any]) -> None:
        field = self._route.match_field
        # A None key (continuous "@" symbols) accepts every item
        if field is None or self._key is None or item.get(field) == self._key:
            self._deliver(item)


class SubscriptionManager:
    """Creates subscriptions on the right session role

    Handles symbol to contract resolution and the p-ticket pagination
    loop Tradovate uses to pace subscribe requests.
    """

    def __init__(
        self,
        request_client: RestClient | None = None,
        max_ticket_rounds: int = 10,
    ) -> None:
        self._request_client = request_client
        self._max_ticket_rounds = max_ticket_rounds

    async def resolve_symbol(self, symbol: Any) -> int | None:
        """Map a symbol to a contract id

        Integers are taken as contract ids. ``@``-prefixed continuous
        symbols are left to the server and resolve to None.

        Raises:
            TradovateSubscriptionError: If the symbol cannot be resolved
        """
        if isinstance(symbol, int) and not isinstance(symbol, bool):
            return symbol
        if not isinstance(symbol, str) or not symbol:
            raise TradovateSubscriptionError(f"Invalid symbol: {symbol!r}")
        if symbol.startswith("@"):
            return None
        if self._request_client is None:
            raise TradovateSubscriptionError(
                f"Cannot resolve {symbol}: no request client configured"
            )

        contract = await find_contract(self._request_client, symbol)
        if contract is None:
            raise TradovateSubscriptionError(f"Contract not found for symbol {symbol}")
        return contract["id"]

    async def subscribe(
        self,
        session: RealtimeSession,
        url: str,
        body: dict[str, Any] | None,
        callback: EventCallback,
    ) -> Subscription:
        """Subscribe to a real-time feed

        Args:
            session: Session to subscribe on; its role must match the URL
            url: One of the ROUTES keys
            body: Subscribe request body
            callback: Called with each matching event, in server order

        Returns:
            Subscription handle

        Raises:
            WrongSessionRoleError: If the session role does not match
            TradovateSubscriptionError: For unknown URLs or bad symbols
            SubscribeTicketExhaustedError: If pagination never finishes
        """
        route = ROUTES.get(url.lower()) or ROUTES.get(url)
        if route is None:
            raise TradovateSubscriptionError(f"Unsupported subscription url: {url}")
        if session.role is not route.role:
            raise WrongSessionRoleError(
                f"{url} requires a {route.role.value} session, got {session.role.value}"
            )

        body = dict(body or {})
        subscription = Subscription(session, route, callback)

        if route.keyed_by_contract:
            subscription.contract_id = await self.resolve_symbol(body.get("symbol"))

        event_filter = _EventFilter(route, subscription.deliver)
        remove_listener = session.add_listener(event_filter)
        subscription._remove_listener = remove_listener
        if route.match_field != "id":
            event_filter.arm(subscription.contract_id)

        established = False
        try:
            response = await self._request_with_tickets(session, route.url, body)
            data = response.get("d")
            data = data if isinstance(data, dict) else {}

            if route.match_field == "id":
                realtime_id = data.get("realtimeId") or data.get("subscriptionId")
                if realtime_id is None:
                    raise TradovateSubscriptionError(
                        f"{url} response carried no realtimeId: {response}"
                    )
                subscription.realtime_id = realtime_id
                event_filter.arm(realtime_id)
            established = True
        finally:
            if not established:
                remove_listener()

        if route.cancel_field == "subscriptionId":
            subscription._cancel_body = {"subscriptionId": subscription.realtime_id}
        elif route.cancel_field == "symbol":
            subscription._cancel_body = {"symbol": body.get("symbol")}

        if route.collection is None and data.get("users"):
            subscription.deliver(data)

        logger.info(f"Subscribed to {route.url} on {session.label}")
        return subscription

    async def _request_with_tickets(
        self, session: RealtimeSession, url: str, body: dict[str, Any]
    ) -> dict[str, Any]:
        response = await session.send(url, body)
        rounds = 0
        while True:
            data = response.get("d")
            ticket = data.get("p-ticket") if isinstance(data, dict) else None
            if not ticket:
                return response

            rounds += 1
            if rounds > self._max_ticket_rounds:
                raise SubscribeTicketExhaustedError(
                    f"{url} still paginating after {self._max_ticket_rounds} tickets"
                )
            delay = float(data.get("p-time") or 0)
            logger.info(f"Received p-ticket for {url}, retrying in {delay}s")
            await asyncio.sleep(delay)
            response = await session.send(url, {**body, "p-ticket": ticket})
