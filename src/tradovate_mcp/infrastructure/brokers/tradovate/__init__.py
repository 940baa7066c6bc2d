"""Tradovate infrastructure module

TokenManager - access token acquisition, refresh and invalidation
TradovateRequestClient - HTTP requests with throttle retry
TradovateSocket - authenticated, multiplexed real-time WebSocket
SubscriptionManager - real-time subscriptions with p-ticket pagination
ConnectionSupervisor - market-data and trading session lifecycle
TradovateClient - facade used by the MCP tools
"""

from .auth import Credentials, TokenManager
from .connection import ConnectionSupervisor
from .exceptions import (
    TradovateAuthenticationError,
    TradovateClientError,
    TradovateConnectionError,
    TradovateRequestError,
    TradovateSubscriptionError,
)
from .facade import TradovateClient
from .requests import TradovateRequestClient
from .socket import SessionRole, SessionState, TradovateSocket
from .subscriptions import Subscription, SubscriptionManager

__all__ = [
    "ConnectionSupervisor",
    "Credentials",
    "SessionRole",
    "SessionState",
    "Subscription",
    "SubscriptionManager",
    "TokenManager",
    "TradovateAuthenticationError",
    "TradovateClient",
    "TradovateClientError",
    "TradovateConnectionError",
    "TradovateRequestClient",
    "TradovateRequestError",
    "TradovateSocket",
    "TradovateSubscriptionError",
]
