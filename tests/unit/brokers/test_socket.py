"""Tests for TradovateSocket against an in-memory WebSocket"""

import asyncio
import itertools
import json

import pytest

from tests.fakes import AUTH_OK, FakeWebSocket, settle
from tradovate_mcp.infrastructure.brokers.protocols import RealtimeSession
from tradovate_mcp.infrastructure.brokers.tradovate.exceptions import (
    AuthorizeRejectedError,
    ClosedDuringRequestError,
    ConnectTimeoutError,
    NotConnectedError,
    OperationRejectedError,
    TradovateConnectionError,
)
from tradovate_mcp.infrastructure.brokers.tradovate.socket import (
    SessionRole,
    SessionState,
    TradovateSocket,
)

URL = "wss://md-demo.tradovateapi.com/v1/websocket"


def batch(*elements) -> str:
    return "a" + json.dumps(list(elements))


async def connected(fake_ws: FakeWebSocket, connector, **kwargs) -> TradovateSocket:
    fake_ws.feed("o", AUTH_OK)
    socket = TradovateSocket(SessionRole.MARKET_DATA, URL, connector=connector, **kwargs)
    await socket.connect("tok")
    return socket


@pytest.mark.unit
def test_socket_initial_state(connector):
    socket = TradovateSocket(SessionRole.TRADING, URL, connector=connector)

    assert socket.state is SessionState.DISCONNECTED
    assert socket.role is SessionRole.TRADING
    assert socket.label == "trading"
    assert socket.is_connected is False
    assert isinstance(socket, RealtimeSession)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_connect_sends_authorize_first(fake_ws, connector):
    """Test the authorize request is the first frame and uses id 0"""
    socket = await connected(fake_ws, connector)

    assert socket.state is SessionState.AUTHENTICATED
    assert socket.is_connected is True
    assert fake_ws.sent == ['authorize\n0\n\n{"token":"tok"}']


@pytest.mark.unit
@pytest.mark.asyncio
async def test_authorize_rejected(fake_ws, connector):
    """Test a non-200 authorize response fails connect and closes the socket"""
    fake_ws.feed("o", batch({"i": 0, "s": 401, "d": "Access is denied"}))
    socket = TradovateSocket(SessionRole.MARKET_DATA, URL, connector=connector)

    with pytest.raises(AuthorizeRejectedError) as exc_info:
        await socket.connect("bad")

    assert exc_info.value.reason == "Access is denied"
    assert exc_info.value.status == 401
    assert socket.state is SessionState.ERROR
    assert fake_ws.closed is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_connect_times_out(fake_ws, connector):
    """Test connect gives up when the server never opens"""
    socket = TradovateSocket(
        SessionRole.MARKET_DATA, URL, connector=connector, connect_timeout=0.05
    )

    with pytest.raises(ConnectTimeoutError):
        await socket.connect("tok")

    assert socket.state is SessionState.ERROR
    assert fake_ws.closed is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_server_close_before_authorization(fake_ws, connector):
    fake_ws.feed("o")
    fake_ws.server_close()
    socket = TradovateSocket(SessionRole.MARKET_DATA, URL, connector=connector)

    with pytest.raises(ClosedDuringRequestError):
        await socket.connect("tok")

    assert socket.state is SessionState.ERROR


@pytest.mark.unit
@pytest.mark.asyncio
async def test_open_failure_raises_connection_error():
    async def refuse(url):
        raise OSError("connection refused")

    socket = TradovateSocket(SessionRole.TRADING, URL, connector=refuse)

    with pytest.raises(TradovateConnectionError):
        await socket.connect("tok")

    assert socket.state is SessionState.ERROR


@pytest.mark.unit
@pytest.mark.asyncio
async def test_send_requires_authentication(connector):
    socket = TradovateSocket(SessionRole.TRADING, URL, connector=connector)

    with pytest.raises(NotConnectedError):
        await socket.send("order/placeorder", {"orderQty": 1})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_responses_are_correlated_by_id(fake_ws, connector):
    """Test out-of-order responses resolve the matching waiters"""
    socket = await connected(fake_ws, connector)

    first = asyncio.create_task(socket.send("account/list"))
    second = asyncio.create_task(socket.send("position/list"))
    await settle()

    assert fake_ws.sent[1] == "account/list\n1\n\n{}"
    assert fake_ws.sent[2] == "position/list\n2\n\n{}"

    fake_ws.feed(batch({"i": 2, "s": 200, "d": ["positions"]}, {"i": 1, "s": 200, "d": ["accounts"]}))

    assert (await first)["d"] == ["accounts"]
    assert (await second)["d"] == ["positions"]
    assert socket.pending_requests == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_non_200_response_rejects_request(fake_ws, connector):
    """Test a failed response rejects only its own waiter"""
    socket = await connected(fake_ws, connector)
    body = {"accountId": 1, "action": "Buy"}

    failing = asyncio.create_task(socket.send("order/placeorder", body))
    other = asyncio.create_task(socket.send("account/list"))
    await settle()
    fake_ws.feed(batch({"i": 1, "s": 404, "d": "Not found"}))

    with pytest.raises(OperationRejectedError) as exc_info:
        await failing

    assert exc_info.value.url == "order/placeorder"
    assert exc_info.value.body == body
    assert exc_info.value.reason == "Not found"
    assert exc_info.value.status == 404
    assert not other.done()

    fake_ws.feed(batch({"i": 2, "s": 200, "d": []}))
    assert (await other)["d"] == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_late_response_for_cancelled_request_is_dropped(fake_ws, connector):
    socket = await connected(fake_ws, connector)
    received = []
    socket.add_listener(received.append)

    request = asyncio.create_task(socket.send("account/list"))
    await settle()
    request.cancel()
    await settle()

    fake_ws.feed(batch({"i": 1, "s": 200, "d": []}))
    await settle()

    assert socket.pending_requests == 0
    assert received == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_push_events_broadcast_in_order(fake_ws, connector):
    """Test unmatched elements reach every listener in server order"""
    socket = await connected(fake_ws, connector)
    first, second = [], []
    socket.add_listener(first.append)
    socket.add_listener(second.append)

    fake_ws.feed(batch({"e": "md", "d": {"n": 1}}, {"e": "md", "d": {"n": 2}}))
    await settle()

    assert [event["d"]["n"] for event in first] == [1, 2]
    assert first == second


@pytest.mark.unit
@pytest.mark.asyncio
async def test_listener_exception_does_not_stop_dispatch(fake_ws, connector):
    socket = await connected(fake_ws, connector)
    received = []

    def broken(event):
        raise RuntimeError("listener bug")

    socket.add_listener(broken)
    socket.add_listener(received.append)

    fake_ws.feed(batch({"e": "md", "d": {}}))
    await settle()

    assert len(received) == 1
    assert socket.is_connected is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_remove_listener_is_idempotent(fake_ws, connector):
    socket = await connected(fake_ws, connector)
    received = []
    remove = socket.add_listener(received.append)

    remove()
    remove()
    fake_ws.feed(batch({"e": "md", "d": {}}))
    await settle()

    assert received == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_malformed_frame_is_skipped(fake_ws, connector):
    socket = await connected(fake_ws, connector)
    received = []
    socket.add_listener(received.append)

    fake_ws.feed("a[{broken", batch({"e": "md", "d": {}}))
    await settle()

    assert len(received) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_heartbeat_follows_inbound_traffic(fake_ws, connector):
    """Test "[]" is sent on inbound traffic once 2.5s have passed"""
    # init, open, "o", auth batch, then one reading per heartbeat frame
    times = [0.0, 0.0, 0.5, 1.0, 2.6, 3.0, 5.0, 5.2]
    clock = itertools.chain(times, itertools.repeat(times[-1])).__next__
    socket = await connected(fake_ws, connector, clock=clock)

    fake_ws.feed("h", "h", "h", "h")
    await settle()

    assert fake_ws.sent == ['authorize\n0\n\n{"token":"tok"}', "[]", "[]"]
    assert socket.is_connected is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_local_close_rejects_pending_requests(fake_ws, connector):
    socket = await connected(fake_ws, connector)
    request = asyncio.create_task(socket.send("account/list"))
    await settle()

    await socket.close()

    with pytest.raises(ClosedDuringRequestError):
        await request
    assert socket.state is SessionState.DISCONNECTED
    assert fake_ws.closed is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_remote_close_after_authentication(fake_ws, connector):
    """Test losing the socket moves to DISCONNECTED and wakes wait_closed"""
    socket = await connected(fake_ws, connector)
    request = asyncio.create_task(socket.send("account/list"))
    await settle()

    fake_ws.server_close()
    await asyncio.wait_for(socket.wait_closed(), timeout=1)

    assert socket.state is SessionState.DISCONNECTED
    assert socket.is_connected is False
    with pytest.raises(ClosedDuringRequestError):
        await request


@pytest.mark.unit
@pytest.mark.asyncio
async def test_server_close_frame_closes_transport(fake_ws, connector):
    socket = await connected(fake_ws, connector)

    fake_ws.feed('c[1000,"bye"]')
    await asyncio.wait_for(socket.wait_closed(), timeout=1)

    assert fake_ws.closed is True
    assert socket.state is SessionState.DISCONNECTED
