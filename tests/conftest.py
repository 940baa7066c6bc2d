"""Pytest fixtures for Tradovate MCP tests"""

import pytest

from tests.fakes import FakeWebSocket
from tradovate_mcp.core.config import Config, Environment
from tradovate_mcp.infrastructure.brokers.tradovate.auth import Credentials


@pytest.fixture
def config() -> Config:
    """Demo configuration with default timings"""
    return Config.for_environment(Environment.DEMO)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(
        name="trader",
        password="secret",
        appId="tradovate-mcp",
        appVersion="1.0.0",
        deviceId="device-1",
        cid="123",
        sec="api-secret",
    )


@pytest.fixture
def fake_ws() -> FakeWebSocket:
    return FakeWebSocket()


@pytest.fixture
def connector(fake_ws):
    """Connector returning the fake WebSocket"""

    async def connect(url: str) -> FakeWebSocket:
        return fake_ws

    return connect
