"""TokenManager - access token acquisition, refresh and invalidation"""

import asyncio
import os
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

import httpx
from loguru import logger

from tradovate_mcp.core.config import Config

from .exceptions import (
    AuthDeniedError,
    AuthTransportError,
    CredentialsMissingError,
    TradovateAuthenticationError,
)

TOKEN_SKEW_MS = 5 * 60 * 1000
DEFAULT_TOKEN_LIFETIME_MS = 24 * 60 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Credentials:
    """Tradovate API credentials for a full access token request"""

    name: str
    password: str
    appId: str
    appVersion: str
    deviceId: str
    cid: str
    sec: str

    @classmethod
    def from_env(cls) -> "Credentials":
        """Read credentials from environment variables"""
        credentials = cls(
            name=os.getenv("TRADOVATE_USERNAME", ""),
            password=os.getenv("TRADOVATE_PASSWORD", ""),
            appId=os.getenv("TRADOVATE_APP_ID", ""),
            appVersion=os.getenv("TRADOVATE_APP_VERSION", "1.0.0"),
            deviceId=os.getenv("TRADOVATE_DEVICE_ID", ""),
            cid=os.getenv("TRADOVATE_CID", ""),
            sec=os.getenv("TRADOVATE_SECRET", ""),
        )
        logger.debug(
            f"Credentials read from environment, missing: {credentials.missing_fields()}"
        )
        return credentials

    def missing_fields(self) -> list[str]:
        return [k for k, v in asdict(self).items() if not v]

    def to_payload(self) -> dict[str, str]:
        return asdict(self)


def _parse_expiration(value: Any, fallback_ms: int) -> int:
    """Convert an ``expirationTime`` field to epoch milliseconds

    Tradovate sends an ISO-8601 timestamp; numeric epoch milliseconds are
    accepted as well.
    """
    if value is None or value == "":
        return fallback_ms
    if isinstance(value, bool):
        return fallback_ms
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            pass
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Unparseable expirationTime {value!r}, using default")
            return fallback_ms
        return int(parsed.timestamp() * 1000)
    return fallback_ms


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("errorText"):
        return str(body["errorText"])
    return response.text or f"HTTP {response.status_code}"


class TokenManager:
    """Owns the Tradovate session tokens

    Responsibilities:
    - Returning a currently valid access token via acquire()
    - Refresh-before-expire using the refresh token
    - Falling back to a full credential exchange
    - Invalidation on authorization failures

    At most one acquisition is in flight; concurrent callers await the
    same result.
    """

    def __init__(
        self,
        config: Config,
        http_client: httpx.AsyncClient | None = None,
        credentials_loader: Callable[[], Credentials] = Credentials.from_env,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize token manager

        Args:
            config: Configuration providing the REST base URL
            http_client: Client for auth calls (built lazily when omitted)
            credentials_loader: Called once per full-auth attempt
            clock: Returns the current time in epoch milliseconds
        """
        self._config = config
        self._http_client = http_client
        self._credentials_loader = credentials_loader
        self._clock = clock

        self._access_token: str | None = None
        self._access_token_expiry: int | None = None
        self._refresh_token: str | None = None
        self._pending: asyncio.Task[str] | None = None

    @property
    def access_token(self) -> str | None:
        return self._access_token

    @property
    def access_token_expiry(self) -> int | None:
        """Access token expiry in epoch milliseconds"""
        return self._access_token_expiry

    @property
    def refresh_token(self) -> str | None:
        return self._refresh_token

    def set_http_client(self, client: httpx.AsyncClient) -> None:
        """Set the HTTP client (for testing or external management)"""
        self._http_client = client

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._config.request_timeout
            )
        return self._http_client

    def is_token_valid(self) -> bool:
        """Check the access token is usable for at least five more minutes"""
        if not self._access_token or self._access_token_expiry is None:
            return False
        return self._clock() < self._access_token_expiry - TOKEN_SKEW_MS

    async def acquire(self) -> str:
        """Return a valid access token, negotiating a new one if needed

        Returns:
            Access token string

        Raises:
            CredentialsMissingError: If a credential is empty
            AuthDeniedError: If Tradovate rejects the credentials
            AuthTransportError: If the auth endpoint cannot be reached
        """
        if self.is_token_valid():
            return self._access_token  # type: ignore[return-value]

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._negotiate())
            self._pending.add_done_callback(self._clear_pending)
        return await asyncio.shield(self._pending)

    def _clear_pending(self, task: "asyncio.Task[str]") -> None:
        if self._pending is task:
            self._pending = None
        if not task.cancelled():
            # Mark retrieved; awaiting callers re-raise it themselves
            task.exception()

    def invalidate(self, clear_refresh: bool = False) -> None:
        """Forget the access token

        Args:
            clear_refresh: Also drop the refresh token (after a failed refresh)
        """
        logger.info(
            f"Invalidating access token (clear_refresh={clear_refresh})"
        )
        self._access_token = None
        self._access_token_expiry = None
        if clear_refresh:
            self._refresh_token = None

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def _negotiate(self) -> str:
        if self._refresh_token:
            try:
                return await self._refresh()
            except TradovateAuthenticationError as e:
                logger.warning(
                    f"Failed to refresh token, will attempt full authentication: {e}"
                )
        return await self._authenticate()

    async def _refresh(self) -> str:
        url = f"{self._config.endpoints.rest_url}/auth/renewAccessToken"
        name = self._credentials_loader().name
        logger.info("Refreshing access token...")

        try:
            response = await self._client().post(
                url, json={"name": name, "refreshToken": self._refresh_token}
            )
        except httpx.RequestError as e:
            self.invalidate(clear_refresh=True)
            raise AuthTransportError(f"Token refresh failed: {e}") from e

        data = self._token_body(response)
        if data is None:
            self.invalidate(clear_refresh=True)
            raise AuthDeniedError(
                f"Token refresh rejected: {_error_text(response)}"
            )

        self._store(data, keep_refresh=True)
        logger.info("Successfully refreshed access token")
        return data["accessToken"]

    async def _authenticate(self) -> str:
        credentials = self._credentials_loader()
        missing = credentials.missing_fields()
        if missing:
            logger.error(f"Credential validation failed, missing: {missing}")
            raise CredentialsMissingError(missing)

        url = f"{self._config.endpoints.rest_url}/auth/accessTokenRequest"
        logger.info("Requesting new access token...")

        try:
            response = await self._client().post(
                url, json=credentials.to_payload()
            )
        except httpx.RequestError as e:
            raise AuthTransportError(
                f"Authentication request failed: {e}"
            ) from e

        data = self._token_body(response)
        if data is None:
            raise AuthDeniedError(
                f"Authentication with Tradovate API failed: {_error_text(response)}"
            )

        self._store(data, keep_refresh=False)
        expiration_dt = datetime.fromtimestamp(
            self._access_token_expiry / 1000  # type: ignore[operator]
        )
        logger.info(
            f"Successfully authenticated with Tradovate API, token expires at {expiration_dt}"
        )
        return data["accessToken"]

    def _token_body(self, response: httpx.Response) -> dict[str, Any] | None:
        """Return the JSON body when it carries an access token"""
        if not response.is_success:
            logger.warning(
                f"Auth endpoint returned {response.status_code}: {_error_text(response)}"
            )
            return None
        try:
            data = response.json()
        except ValueError:
            return None
        if isinstance(data, dict) and data.get("accessToken"):
            return data
        return None

    def _store(self, data: dict[str, Any], keep_refresh: bool) -> None:
        self._access_token = data["accessToken"]
        self._access_token_expiry = _parse_expiration(
            data.get("expirationTime"),
            self._clock() + DEFAULT_TOKEN_LIFETIME_MS,
        )
        if data.get("refreshToken"):
            self._refresh_token = data["refreshToken"]
        elif not keep_refresh:
            self._refresh_token = None
