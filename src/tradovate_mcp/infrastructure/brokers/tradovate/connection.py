"""ConnectionSupervisor - keeps the market-data and trading sessions alive"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from tradovate_mcp.core.config import Config

from .auth import TokenManager
from .exceptions import (
    AuthorizeRejectedError,
    SupervisorClosedError,
    TradovateClientError,
)
from .socket import SessionRole, SessionState, TradovateSocket

SocketFactory = Callable[..., TradovateSocket]


@dataclass
class _Slot:
    role: SessionRole
    url: str
    state: SessionState = SessionState.DISCONNECTED
    session: TradovateSocket | None = None
    waiters: list[asyncio.Future] = field(default_factory=list)
    task: asyncio.Task | None = None


class ConnectionSupervisor:
    """Owns one session slot per role

    Responsibilities:
    - Background connect loop per slot (token, fresh session, connect)
    - Handing the authenticated session to waiting callers
    - Fixed-delay reconnect after failures and connection loss
    - Shutdown of both slots
    """

    def __init__(
        self,
        config: Config,
        token_manager: TokenManager,
        socket_factory: SocketFactory = TradovateSocket,
        reconnect_delay: float | None = None,
        max_reconnect_attempts: int | None = None,
    ) -> None:
        """Initialize supervisor

        Args:
            config: Configuration with WebSocket URLs and timeouts
            token_manager: Source of access tokens for authorize
            socket_factory: Builds a session for (role, url, ...)
            reconnect_delay: Seconds between attempts (config default 5s)
            max_reconnect_attempts: Consecutive failures before giving up;
                None retries forever
        """
        self._config = config
        self._token_manager = token_manager
        self._socket_factory = socket_factory
        self._reconnect_delay = (
            config.reconnect_delay if reconnect_delay is None else reconnect_delay
        )
        self._max_reconnect_attempts = max_reconnect_attempts
        self._closed = False
        self._slots = {
            SessionRole.MARKET_DATA: _Slot(
                SessionRole.MARKET_DATA, config.endpoints.md_ws_url
            ),
            SessionRole.TRADING: _Slot(
                SessionRole.TRADING, config.endpoints.trading_ws_url
            ),
        }

    @property
    def closed(self) -> bool:
        return self._closed

    def state(self, role: SessionRole) -> SessionState:
        return self._slots[role].state

    def start(self) -> None:
        """Launch the connect loops that are not already running"""
        if self._closed:
            raise SupervisorClosedError("Connection supervisor is closed")
        for slot in self._slots.values():
            self._ensure_running(slot)

    def _ensure_running(self, slot: _Slot) -> None:
        if slot.task is None or slot.task.done():
            logger.info(f"Starting {slot.role.value} connection loop")
            slot.task = asyncio.create_task(
                self._run(slot), name=f"tradovate-{slot.role.value}-supervisor"
            )

    async def market_data(self) -> TradovateSocket:
        """Return the authenticated market-data session, waiting if needed"""
        return await self._session(SessionRole.MARKET_DATA)

    async def trading(self) -> TradovateSocket:
        """Return the authenticated trading session, waiting if needed"""
        return await self._session(SessionRole.TRADING)

    async def _session(self, role: SessionRole) -> TradovateSocket:
        if self._closed:
            raise SupervisorClosedError("Connection supervisor is closed")

        slot = self._slots[role]
        if slot.session is not None and slot.session.is_connected:
            return slot.session

        self.start()
        waiter = asyncio.get_running_loop().create_future()
        slot.waiters.append(waiter)
        try:
            return await waiter
        finally:
            if waiter in slot.waiters:
                slot.waiters.remove(waiter)

    async def _run(self, slot: _Slot) -> None:
        failures = 0
        while not self._closed:
            slot.state = SessionState.CONNECTING
            try:
                token = await self._token_manager.acquire()
                session = self._socket_factory(
                    slot.role,
                    slot.url,
                    label=slot.role.value,
                    connect_timeout=self._config.connect_timeout,
                )
                slot.session = session
                await session.connect(token)
            except TradovateClientError as e:
                failures += 1
                logger.error(
                    f"{slot.role.value} connection attempt {failures} failed: {e}"
                )
                if isinstance(e, AuthorizeRejectedError):
                    self._token_manager.invalidate()
                slot.state = SessionState.ERROR
                self._reject_waiters(slot, e)
                await self._drop_session(slot)

                if (
                    self._max_reconnect_attempts is not None
                    and failures >= self._max_reconnect_attempts
                ):
                    logger.error(
                        f"Giving up on {slot.role.value} after {failures} attempts"
                    )
                    return

                await asyncio.sleep(self._reconnect_delay)
                slot.state = SessionState.DISCONNECTED
                continue

            failures = 0
            slot.state = SessionState.AUTHENTICATED
            self._resolve_waiters(slot, session)

            await session.wait_closed()
            if self._closed:
                return

            logger.warning(
                f"{slot.role.value} connection lost, reconnecting in {self._reconnect_delay}s"
            )
            slot.session = None
            slot.state = SessionState.DISCONNECTED
            await asyncio.sleep(self._reconnect_delay)

    async def _drop_session(self, slot: _Slot) -> None:
        session, slot.session = slot.session, None
        if session is not None:
            await session.close()

    def _resolve_waiters(self, slot: _Slot, session: TradovateSocket) -> None:
        waiters, slot.waiters = slot.waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(session)

    def _reject_waiters(self, slot: _Slot, error: TradovateClientError) -> None:
        waiters, slot.waiters = slot.waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(error)

    async def close_all(self) -> None:
        """Close both sessions and stop reconnecting"""
        logger.info("Closing all Tradovate connections...")
        self._closed = True
        for slot in self._slots.values():
            task, slot.task = slot.task, None
            if task is not None and task is not asyncio.current_task():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
            await self._drop_session(slot)
            self._reject_waiters(
                slot, SupervisorClosedError("Connection supervisor closed")
            )
            slot.state = SessionState.DISCONNECTED
