"""TradovateSocket - one authenticated, multiplexed real-time WebSocket"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosed, WebSocketException

from .exceptions import (
    AuthorizeRejectedError,
    ClosedDuringRequestError,
    ConnectTimeoutError,
    FrameDecodeError,
    NotConnectedError,
    OperationRejectedError,
    TradovateConnectionError,
)
from .frames import (
    HEARTBEAT_FRAME,
    FrameType,
    decode_frame,
    encode_authorize,
    encode_request,
)

Listener = Callable[[dict[str, Any]], None]
Connector = Callable[[str], Awaitable[Any]]


class SessionRole(str, Enum):
    """Side of the API a session is bound to"""

    MARKET_DATA = "market-data"
    TRADING = "trading"


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    ERROR = "error"


async def open_websocket(url: str) -> Any:
    """Open a client WebSocket; Tradovate heartbeats replace protocol pings."""
    return await websockets.connect(
        url, ping_interval=None, close_timeout=10, max_size=None
    )


@dataclass
class _PendingRequest:
    url: str
    query: str | None
    body: dict[str, Any] | None
    waiter: asyncio.Future


class TradovateSocket:
    """Client for the Tradovate real-time WebSocket APIs

    Responsibilities:
    - Post-open authorize handshake
    - Request/response correlation by integer id
    - Fan-out of push events to listeners
    - Client heartbeats driven by inbound traffic

    The session is the only writer to its socket and the only mutator of
    its request table and listener list.
    """

    CONNECT_TIMEOUT = 30.0
    HEARTBEAT_INTERVAL = 2.5

    def __init__(
        self,
        role: SessionRole,
        url: str,
        *,
        label: str | None = None,
        connect_timeout: float = CONNECT_TIMEOUT,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
        connector: Connector = open_websocket,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize a disconnected session

        Args:
            role: Market-data or trading
            url: WebSocket URL to connect to
            label: Name used in log lines
            connect_timeout: Seconds allowed for open + authorize
            heartbeat_interval: Minimum seconds between client heartbeats
            connector: Coroutine opening the WebSocket (tests inject fakes)
            clock: Monotonic clock in seconds
        """
        self._role = role
        self._url = url
        self._label = label or role.value
        self._connect_timeout = connect_timeout
        self._heartbeat_interval = heartbeat_interval
        self._connector = connector
        self._clock = clock

        self._state = SessionState.DISCONNECTED
        self._ws: Any = None
        self._reader: asyncio.Task | None = None
        self._counter = 0
        self._pending: dict[int, _PendingRequest] = {}
        self._listeners: list[Listener] = []
        self._token: str | None = None
        self._authorize_id: int | None = None
        self._authorized: asyncio.Future | None = None
        self._last_heartbeat = clock()
        self._send_lock = asyncio.Lock()
        self._closed = asyncio.Event()

    def __repr__(self) -> str:
        return f"TradovateSocket(label={self._label!r}, url={self._url!r}, state={self._state.value})"

    @property
    def role(self) -> SessionRole:
        return self._role

    @property
    def url(self) -> str:
        return self._url

    @property
    def label(self) -> str:
        return self._label

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        """True while authenticated with a live socket"""
        return self._state is SessionState.AUTHENTICATED and self._ws is not None

    @property
    def pending_requests(self) -> int:
        return len(self._pending)

    def _next_id(self) -> int:
        request_id = self._counter
        self._counter += 1
        return request_id

    async def connect(self, token: str) -> None:
        """Open the socket and complete the authorize handshake

        Args:
            token: Access token sent in the authorize request

        Raises:
            ConnectTimeoutError: If the handshake does not finish in time
            AuthorizeRejectedError: If the server refuses the token
            ClosedDuringRequestError: If the server closes before authorizing
            TradovateConnectionError: If the socket cannot be opened
        """
        if self._state is SessionState.AUTHENTICATED:
            return
        if self._state not in (SessionState.DISCONNECTED, SessionState.ERROR):
            raise TradovateConnectionError(
                f"{self._label}: connect already in progress ({self._state.value})"
            )

        logger.info(f"Connecting to Tradovate WebSocket at {self._url}...")
        self._token = token
        self._state = SessionState.CONNECTING
        self._closed.clear()
        self._authorized = asyncio.get_running_loop().create_future()

        try:
            await asyncio.wait_for(
                self._open_and_authorize(), timeout=self._connect_timeout
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Connection timeout for {self._url}")
            await self._abort()
            raise ConnectTimeoutError(
                f"Connection timeout for {self._url} after {self._connect_timeout}s"
            ) from e
        except TradovateConnectionError as e:
            logger.error(f"{self._label}: connect failed: {e}")
            await self._abort()
            raise
        except (OSError, WebSocketException) as e:
            logger.error(f"WebSocket connection error for {self._url}: {e}")
            await self._abort()
            raise TradovateConnectionError(
                f"Failed to open WebSocket {self._url}: {e}"
            ) from e

        logger.info(f"{self._label}: WebSocket connected and authenticated")

    async def _open_and_authorize(self) -> None:
        self._ws = await self._connector(self._url)
        self._last_heartbeat = self._clock()
        self._reader = asyncio.create_task(
            self._read_loop(self._ws), name=f"tradovate-{self._label}-reader"
        )
        await asyncio.shield(self._authorized)  # type: ignore[arg-type]

    async def _abort(self) -> None:
        if self._authorized is not None and not self._authorized.done():
            self._authorized.cancel()
        await self._shutdown(
            ClosedDuringRequestError(f"{self._label}: connect aborted")
        )
        self._state = SessionState.ERROR

    async def send(
        self,
        url: str,
        body: dict[str, Any] | None = None,
        query: str | None = None,
    ) -> dict[str, Any]:
        """Send a request and wait for its correlated response

        Waits indefinitely; callers impose their own deadlines. A caller
        that gives up leaves the record in place and the late response is
        dropped.

        Args:
            url: Endpoint, e.g. "order/placeorder"
            body: JSON body
            query: Optional query string line

        Returns:
            The response element (``i``, ``s``, ``d``)

        Raises:
            NotConnectedError: If the session is not authenticated
            OperationRejectedError: If the response status is not 200
            ClosedDuringRequestError: If the socket closes first
        """
        if not self.is_connected:
            raise NotConnectedError(
                f"{self._label}: WebSocket is not connected. Call connect() first."
            )

        request_id = self._next_id()
        waiter = asyncio.get_running_loop().create_future()
        self._pending[request_id] = _PendingRequest(url, query, body, waiter)

        try:
            await self._write(encode_request(url, request_id, query, body))
        except (ConnectionClosed, OSError) as e:
            self._pending.pop(request_id, None)
            raise ClosedDuringRequestError(
                f"{self._label}: WebSocket closed while sending {url}"
            ) from e

        return await waiter

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a push-event listener

        Returns:
            Callable removing the listener; safe to call more than once
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def close(self) -> None:
        """Close the socket locally and drop requests and listeners"""
        if self._ws is None and self._reader is None:
            self._state = SessionState.DISCONNECTED
            self._closed.set()
            return

        logger.info(f"{self._label}: closing WebSocket connection...")
        await self._shutdown(
            ClosedDuringRequestError(f"{self._label}: WebSocket closed")
        )
        self._state = SessionState.DISCONNECTED

    async def wait_closed(self) -> None:
        """Return once the socket has stopped reading"""
        await self._closed.wait()

    async def _shutdown(self, error: TradovateConnectionError) -> None:
        ws, self._ws = self._ws, None
        reader, self._reader = self._reader, None

        if ws is not None:
            try:
                await ws.close()
            except (OSError, WebSocketException) as e:
                logger.debug(f"{self._label}: error while closing socket: {e}")

        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)

        self._reject_authorization(error)
        self._fail_pending(error)
        self._listeners.clear()
        self._closed.set()

    async def _write(self, text: str) -> None:
        ws = self._ws
        if ws is None:
            raise NotConnectedError(f"{self._label}: WebSocket is not open")
        async with self._send_lock:
            await ws.send(text)

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                await self._handle_message(raw)
        except ConnectionClosed as e:
            logger.warning(f"{self._label}: WebSocket connection closed: {e}")
        except (OSError, WebSocketException) as e:
            logger.error(f"{self._label}: WebSocket error: {e}")
        finally:
            self._on_transport_closed(ws)

    def _on_transport_closed(self, ws: Any) -> None:
        if self._ws is ws:
            self._ws = None

        self._reject_authorization(
            ClosedDuringRequestError(
                f"{self._label}: WebSocket closed before authorization"
            )
        )
        if self._state is SessionState.AUTHENTICATED:
            logger.warning(f"{self._label}: WebSocket connection lost")
            self._state = SessionState.DISCONNECTED

        self._fail_pending(
            ClosedDuringRequestError(f"{self._label}: WebSocket closed")
        )
        self._listeners.clear()
        self._closed.set()

    async def _handle_message(self, raw: str | bytes) -> None:
        await self._maybe_heartbeat()

        try:
            frame = decode_frame(raw)
        except FrameDecodeError as e:
            logger.warning(f"{self._label}: dropping frame: {e}")
            return

        logger.debug(f"{self._label} {frame.type.value} {frame.payload}")

        if frame.type is FrameType.OPEN:
            await self._send_authorize()
        elif frame.type is FrameType.ARRAY:
            if isinstance(frame.payload, list):
                self._dispatch_batch(frame.payload)
            else:
                logger.warning(f"{self._label}: non-array batch {frame.payload!r}")
        elif frame.type is FrameType.CLOSE:
            logger.info(f"{self._label}: server sent close {frame.payload}")
            if self._ws is not None:
                await self._ws.close()

    async def _maybe_heartbeat(self) -> None:
        now = self._clock()
        if now - self._last_heartbeat >= self._heartbeat_interval:
            self._last_heartbeat = now
            await self._write(HEARTBEAT_FRAME)

    async def _send_authorize(self) -> None:
        if self._state is not SessionState.CONNECTING:
            logger.warning(
                f"{self._label}: ignoring open frame in state {self._state.value}"
            )
            return
        request_id = self._next_id()
        self._authorize_id = request_id
        self._state = SessionState.AUTHENTICATING
        logger.info(f"Sending authorization message with ID {request_id}")
        await self._write(encode_authorize(request_id, self._token or ""))

    def _dispatch_batch(self, items: list[Any]) -> None:
        for item in items:
            if not isinstance(item, dict):
                logger.debug(f"{self._label}: skipping non-object event {item!r}")
                continue

            request_id = item.get("i")
            if (
                self._state is SessionState.AUTHENTICATING
                and request_id is not None
                and request_id == self._authorize_id
            ):
                self._complete_authorization(item)
                continue

            if "s" in item and request_id in self._pending:
                self._resolve(self._pending.pop(request_id), item)
                continue

            self._broadcast(item)

    def _complete_authorization(self, item: dict[str, Any]) -> None:
        status = item.get("s")
        future = self._authorized
        if status == 200:
            logger.info("Authentication successful")
            self._state = SessionState.AUTHENTICATED
            if future is not None and not future.done():
                future.set_result(None)
            return

        logger.error(f"Authorization failed: {item}")
        self._state = SessionState.ERROR
        if future is not None and not future.done():
            future.set_exception(AuthorizeRejectedError(item.get("d"), status))

    def _resolve(self, record: _PendingRequest, item: dict[str, Any]) -> None:
        if record.waiter.done():
            logger.debug(
                f"{self._label}: dropping late response for {record.url} ({item.get('i')})"
            )
            return

        status = item.get("s")
        if status == 200:
            record.waiter.set_result(item)
            return

        logger.error(f"{self._label}: {record.url} failed: {item}")
        record.waiter.set_exception(
            OperationRejectedError(record.url, record.body, item.get("d"), status)
        )

    def _broadcast(self, item: dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(item)
            except Exception:
                logger.exception(f"{self._label}: listener raised, continuing")

    def _reject_authorization(self, error: TradovateConnectionError) -> None:
        future = self._authorized
        if future is not None and not future.done():
            future.set_exception(error)

    def _fail_pending(self, error: TradovateConnectionError) -> None:
        pending, self._pending = self._pending, {}
        for record in pending.values():
            if not record.waiter.done():
                record.waiter.set_exception(error)
