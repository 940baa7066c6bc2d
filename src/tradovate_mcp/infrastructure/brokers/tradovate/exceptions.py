"""Tradovate exceptions module"""

from typing import Any

from tradovate_mcp.shared.exceptions import TradovateMCPError


class TradovateClientError(TradovateMCPError):
    """Base exception for Tradovate client errors"""

    pass


# Token manager


class TradovateAuthenticationError(TradovateClientError):
    """Raised when a token cannot be obtained"""

    pass


class CredentialsMissingError(TradovateAuthenticationError):
    """Raised when a required credential is empty"""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing Tradovate credentials: {missing}")


class AuthDeniedError(TradovateAuthenticationError):
    """Raised when Tradovate rejects credentials or a token"""

    pass


class AuthTransportError(TradovateAuthenticationError):
    """Raised when the auth endpoint cannot be reached"""

    pass


# HTTP client


class TradovateRequestError(TradovateClientError):
    """Raised when a request to Tradovate fails"""

    pass


class ThrottledError(TradovateRequestError):
    """Raised when Tradovate keeps answering 429 after the retry"""

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint
        super().__init__(f"Rate limit exceeded for {endpoint}")


class ApiError(TradovateRequestError):
    """Raised for non-success HTTP responses"""

    def __init__(self, status: int, text: str) -> None:
        self.status = status
        self.text = text
        super().__init__(f"Tradovate API error ({status}): {text}")


class TransportError(TradovateRequestError):
    """Raised when an HTTP request fails below the HTTP layer"""

    def __init__(self, endpoint: str, cause: BaseException) -> None:
        self.endpoint = endpoint
        self.cause = cause
        super().__init__(f"Tradovate API request to {endpoint} failed: {cause}")


class OperationRejectedError(TradovateRequestError):
    """Raised when a socket request receives a non-200 response"""

    def __init__(
        self,
        url: str,
        body: dict[str, Any] | None,
        reason: Any,
        status: int | None = None,
    ) -> None:
        self.url = url
        self.body = body
        self.reason = reason
        self.status = status
        super().__init__(
            f"Operation '{url}' rejected (status={status}): {reason!r}"
        )


# Socket session and supervisor


class TradovateConnectionError(TradovateClientError):
    """Raised when a WebSocket connection fails"""

    pass


class ConnectTimeoutError(TradovateConnectionError):
    """Raised when connect + authorize does not finish in time"""

    pass


class AuthorizeRejectedError(TradovateConnectionError):
    """Raised when the server refuses the authorize handshake"""

    def __init__(self, reason: Any, status: int | None = None) -> None:
        self.reason = reason
        self.status = status
        super().__init__(f"Authorization failed (status={status}): {reason!r}")


class NotConnectedError(TradovateConnectionError):
    """Raised when a request is made on a session that is not authenticated"""

    pass


class ClosedDuringRequestError(TradovateConnectionError):
    """Raised when the socket closes while a request is outstanding"""

    pass


class SupervisorClosedError(TradovateConnectionError):
    """Raised to waiters when the connection supervisor shuts down"""

    pass


# Subscriptions


class TradovateSubscriptionError(TradovateClientError):
    """Raised when a subscription cannot be established"""

    pass


class WrongSessionRoleError(TradovateSubscriptionError):
    """Raised when subscribing on a session of the wrong role"""

    pass


class SubscribeTicketExhaustedError(TradovateSubscriptionError):
    """Raised when the server keeps issuing p-tickets"""

    pass


# Wire format


class FrameDecodeError(TradovateClientError):
    """Raised when an inbound frame cannot be decoded"""

    pass
