"""Configuration tests for Config, Environment and Endpoints"""

import pytest

from tradovate_mcp.core.config import Config, Endpoints, Environment
from tradovate_mcp.shared.exceptions import ConfigurationError

ENV_KEYS = [
    "TRADOVATE_API_ENVIRONMENT",
    "TRADOVATE_REQUEST_TIMEOUT",
    "TRADOVATE_CONNECT_TIMEOUT",
    "TRADOVATE_RECONNECT_DELAY",
    "TRADOVATE_THROTTLE_DELAY",
    "TRADOVATE_CACHE_REFRESH_INTERVAL",
    "TRADOVATE_LOG_LEVEL",
    "TRADOVATE_LOG_DIR",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.setattr("tradovate_mcp.core.config.load_dotenv", lambda: None)
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestEnvironmentSelection:
    """Tests for the demo/live selector"""

    @pytest.mark.parametrize("value", ["live", "LIVE", " Live "])
    def test_live_is_case_insensitive(self, value):
        assert Environment.parse(value) is Environment.LIVE

    @pytest.mark.parametrize("value", [None, "", "demo", "production", "lve"])
    def test_anything_else_is_demo(self, value):
        assert Environment.parse(value) is Environment.DEMO

    def test_live_endpoints(self):
        endpoints = Endpoints.for_environment(Environment.LIVE)

        assert endpoints.rest_url == "https://live.tradovateapi.com/v1"
        assert endpoints.md_rest_url == "https://md.tradovateapi.com/v1"
        assert endpoints.trading_ws_url == "wss://live.tradovateapi.com/v1/websocket"
        assert endpoints.md_ws_url == "wss://md.tradovateapi.com/v1/websocket"

    def test_demo_endpoints(self):
        endpoints = Endpoints.for_environment(Environment.DEMO)

        assert endpoints.rest_url == "https://demo.tradovateapi.com/v1"
        assert endpoints.md_ws_url == "wss://md-demo.tradovateapi.com/v1/websocket"


class TestFromEnv:
    """Tests for Config.from_env"""

    def test_defaults(self):
        config = Config.from_env()

        assert config.environment is Environment.DEMO
        assert config.connect_timeout == 30.0
        assert config.reconnect_delay == 5.0
        assert config.throttle_delay == 2.0
        assert config.cache_refresh_interval == 300.0
        assert config.log_level == "INFO"

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("TRADOVATE_API_ENVIRONMENT", "live")
        monkeypatch.setenv("TRADOVATE_RECONNECT_DELAY", "1.5")
        monkeypatch.setenv("TRADOVATE_LOG_LEVEL", "debug")

        config = Config.from_env()

        assert config.environment is Environment.LIVE
        assert config.endpoints.rest_url == "https://live.tradovateapi.com/v1"
        assert config.reconnect_delay == 1.5
        assert config.log_level == "DEBUG"

    def test_invalid_number_raises(self, monkeypatch):
        monkeypatch.setenv("TRADOVATE_CONNECT_TIMEOUT", "soon")

        with pytest.raises(ConfigurationError, match="TRADOVATE_CONNECT_TIMEOUT"):
            Config.from_env()

    def test_negative_number_raises(self, monkeypatch):
        monkeypatch.setenv("TRADOVATE_THROTTLE_DELAY", "-1")

        with pytest.raises(ConfigurationError):
            Config.from_env()
