"""Configuration management for the Tradovate MCP server"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from tradovate_mcp.shared.exceptions import ConfigurationError


class Environment(str, Enum):
    """Tradovate API environment"""

    DEMO = "demo"
    LIVE = "live"

    @classmethod
    def parse(cls, value: str | None) -> "Environment":
        """Map a raw setting to an environment.

        Only ``live`` selects the live environment; anything else is demo.
        """
        if value is not None and value.strip().lower() == cls.LIVE.value:
            return cls.LIVE
        return cls.DEMO


@dataclass(frozen=True)
class Endpoints:
    """Base URLs for one Tradovate environment"""

    rest_url: str
    md_rest_url: str
    trading_ws_url: str
    md_ws_url: str

    @classmethod
    def for_environment(cls, environment: Environment) -> "Endpoints":
        if environment is Environment.LIVE:
            return cls(
                rest_url="https://live.tradovateapi.com/v1",
                md_rest_url="https://md.tradovateapi.com/v1",
                trading_ws_url="wss://live.tradovateapi.com/v1/websocket",
                md_ws_url="wss://md.tradovateapi.com/v1/websocket",
            )
        return cls(
            rest_url="https://demo.tradovateapi.com/v1",
            md_rest_url="https://md-demo.tradovateapi.com/v1",
            trading_ws_url="wss://demo.tradovateapi.com/v1/websocket",
            md_ws_url="wss://md-demo.tradovateapi.com/v1/websocket",
        )


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {raw!r}")
    return value


@dataclass
class Config:
    """Configuration for the Tradovate MCP server loaded from environment"""

    environment: Environment = Environment.DEMO
    endpoints: Endpoints = field(
        default_factory=lambda: Endpoints.for_environment(Environment.DEMO)
    )

    # Seconds
    request_timeout: float = 30.0
    connect_timeout: float = 30.0
    reconnect_delay: float = 5.0
    throttle_delay: float = 2.0
    cache_refresh_interval: float = 300.0

    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def for_environment(cls, environment: Environment) -> "Config":
        """Build a default configuration for an environment"""
        return cls(
            environment=environment,
            endpoints=Endpoints.for_environment(environment),
        )

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables

        A ``.env`` file in the working directory is honoured when present.

        Returns:
            Config instance with values from environment

        Raises:
            ConfigurationError: If a numeric setting is invalid
        """
        load_dotenv()

        environment = Environment.parse(os.getenv("TRADOVATE_API_ENVIRONMENT"))

        config = cls(
            environment=environment,
            endpoints=Endpoints.for_environment(environment),
            request_timeout=_float_env(
                "TRADOVATE_REQUEST_TIMEOUT", cls.request_timeout
            ),
            connect_timeout=_float_env(
                "TRADOVATE_CONNECT_TIMEOUT", cls.connect_timeout
            ),
            reconnect_delay=_float_env(
                "TRADOVATE_RECONNECT_DELAY", cls.reconnect_delay
            ),
            throttle_delay=_float_env(
                "TRADOVATE_THROTTLE_DELAY", cls.throttle_delay
            ),
            cache_refresh_interval=_float_env(
                "TRADOVATE_CACHE_REFRESH_INTERVAL", cls.cache_refresh_interval
            ),
            log_level=os.getenv("TRADOVATE_LOG_LEVEL", cls.log_level).upper(),
            log_dir=os.getenv("TRADOVATE_LOG_DIR", cls.log_dir),
        )

        logger.info("Configuration loaded:")
        logger.info(f"  Environment: {config.environment.value}")
        logger.info(f"  REST: {config.endpoints.rest_url}")
        logger.info(f"  Trading WebSocket: {config.endpoints.trading_ws_url}")
        logger.info(f"  Market Data WebSocket: {config.endpoints.md_ws_url}")
        logger.info(f"  Connect Timeout: {config.connect_timeout}s")
        logger.info(f"  Reconnect Delay: {config.reconnect_delay}s")
        logger.info(f"  Log Dir: {Path(config.log_dir).resolve()}")

        return config
