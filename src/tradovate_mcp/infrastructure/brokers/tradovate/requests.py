"""TradovateRequestClient - authenticated JSON requests with throttle retry"""

import asyncio
from typing import Any

import httpx
from loguru import logger

from tradovate_mcp.core.config import Config
from tradovate_mcp.core.logging import install_logging_bridge

from .auth import TokenManager
from .exceptions import (
    ApiError,
    AuthDeniedError,
    ThrottledError,
    TransportError,
)


class TradovateRequestClient:
    """Low-level HTTP request client

    Responsibilities:
    - Bearer token from the TokenManager on every attempt
    - Routing to the trading or market-data REST base
    - Error decoding
    - One retry after a 429
    """

    def __init__(
        self,
        config: Config,
        token_manager: TokenManager,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize request client

        Args:
            config: Configuration with REST bases, timeouts and throttle delay
            token_manager: Source of access tokens
            http_client: Optional preconfigured client (tests, shared pools)
        """
        self._config = config
        self._token_manager = token_manager
        self._http_client = http_client
        install_logging_bridge()

    def _build_http_client(
        self,
        timeout: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> httpx.AsyncClient:
        """Create an AsyncClient with httpx request/response logging hooks."""
        return httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            event_hooks={
                "request": [self._log_httpx_request],
                "response": [self._log_httpx_response],
            },
        )

    async def _log_httpx_request(self, request: httpx.Request) -> None:
        """Log outbound httpx requests with headers (auth masked)."""
        headers = {
            k: ("***" if k.lower() == "authorization" else v)
            for k, v in request.headers.items()
        }
        logger.debug(f"HTTPX request: {request.method} {request.url} {headers}")

    async def _log_httpx_response(self, response: httpx.Response) -> None:
        """Log httpx responses with status and body."""
        await response.aread()
        logger.debug(
            f"HTTPX response: status={response.status_code} url={response.url} body={response.text}"
        )

    def set_http_client(self, client: httpx.AsyncClient) -> None:
        """Set the HTTP client (for testing or external management)"""
        self._http_client = client

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = self._build_http_client(
                timeout=self._config.request_timeout
            )
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def request(
        self,
        method: str,
        endpoint: str,
        data: dict | None = None,
        params: dict | None = None,
        market_data: bool = False,
    ) -> Any:
        """Make an authenticated request to the Tradovate REST API

        Retry Strategy:
        - 429: wait throttle_delay (2s) and retry once
        - 401: invalidate the token and fail, no retry
        - Anything else: fail immediately

        Args:
            method: HTTP method (GET, POST)
            endpoint: API endpoint path (e.g., "contract/find")
            data: JSON payload
            params: Query parameters
            market_data: Route to the market-data REST base

        Returns:
            Decoded JSON body, or None for an empty body

        Raises:
            AuthDeniedError: On 401
            ThrottledError: On a second 429
            ApiError: On any other non-success status
            TransportError: On network errors
        """
        base_url = (
            self._config.endpoints.md_rest_url
            if market_data
            else self._config.endpoints.rest_url
        )
        url = f"{base_url}/{endpoint.lstrip('/')}"

        for attempt in range(2):
            token = await self._token_manager.acquire()
            headers = {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
            logger.debug(f"{method} {url} (attempt {attempt + 1})")

            try:
                response = await self._client().request(
                    method.upper(), url, headers=headers, json=data, params=params
                )
            except httpx.RequestError as e:
                logger.error(f"Network error calling {endpoint}: {e}")
                raise TransportError(endpoint, e) from e

            if response.is_success:
                return self._decode(response)

            if response.status_code == 401:
                reason = self._error_text(response) or "Unauthorized"
                logger.warning(f"Unauthorized calling {endpoint}: {reason}")
                self._token_manager.invalidate()
                raise AuthDeniedError(reason)

            if response.status_code == 429:
                if attempt == 0:
                    logger.warning(
                        f"Rate limit exceeded on {endpoint}, retrying in {self._config.throttle_delay}s"
                    )
                    await asyncio.sleep(self._config.throttle_delay)
                    continue
                raise ThrottledError(endpoint)

            text = self._error_text(response) or "Unknown error"
            logger.error(f"Request to {endpoint} failed: {response.status_code} - {text}")
            raise ApiError(response.status_code, text)

        raise ThrottledError(endpoint)

    async def get(
        self,
        endpoint: str,
        params: dict | None = None,
        market_data: bool = False,
    ) -> Any:
        """Make GET request"""
        return await self.request(
            "GET", endpoint, params=params, market_data=market_data
        )

    async def post(
        self,
        endpoint: str,
        data: dict | None = None,
        params: dict | None = None,
        market_data: bool = False,
    ) -> Any:
        """Make POST request"""
        return await self.request(
            "POST", endpoint, data=data, params=params, market_data=market_data
        )

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _error_text(response: httpx.Response) -> str:
        """Return errorText from the body when present, else the raw text."""
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict) and body.get("errorText"):
            return str(body["errorText"])
        return response.text
