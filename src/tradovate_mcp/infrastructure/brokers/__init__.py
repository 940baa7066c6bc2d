"""Infrastructure brokers module."""

from .protocols import RealtimeSession, RestClient, TokenSource
from .tradovate.exceptions import (
    TradovateAuthenticationError,
    TradovateClientError,
    TradovateConnectionError,
)
from .tradovate.facade import TradovateClient

__all__ = [
    "TradovateClient",
    "TradovateAuthenticationError",
    "TradovateClientError",
    "TradovateConnectionError",
    "RealtimeSession",
    "RestClient",
    "TokenSource",
]
