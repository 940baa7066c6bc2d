"""Broker protocols defining the seams between Tradovate components.

Concrete classes satisfy these structurally; tests substitute fakes.
"""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class TokenSource(Protocol):
    """Protocol for access token providers."""

    async def acquire(self) -> str:
        """Return a currently valid access token."""
        ...

    def invalidate(self, clear_refresh: bool = False) -> None:
        """Forget the current access token."""
        ...


@runtime_checkable
class RestClient(Protocol):
    """Protocol for authenticated REST access."""

    async def get(
        self,
        endpoint: str,
        params: dict | None = None,
        market_data: bool = False,
    ) -> Any:
        """Make a GET request."""
        ...

    async def post(
        self,
        endpoint: str,
        data: dict | None = None,
        params: dict | None = None,
        market_data: bool = False,
    ) -> Any:
        """Make a POST request."""
        ...


@runtime_checkable
class RealtimeSession(Protocol):
    """Protocol for an authenticated real-time session."""

    @property
    def role(self) -> Any:
        """Market-data or trading."""
        ...

    @property
    def label(self) -> str:
        """Name used in log lines."""
        ...

    async def send(
        self,
        url: str,
        body: dict[str, Any] | None = None,
        query: str | None = None,
    ) -> dict[str, Any]:
        """Send a request and wait for its correlated response."""
        ...

    def add_listener(
        self, listener: Callable[[dict[str, Any]], None]
    ) -> Callable[[], None]:
        """Register a push-event listener; returns its remover."""
        ...
