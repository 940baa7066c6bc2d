"""Tests for the CLI entry point"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from tradovate_mcp import cli
from tradovate_mcp.data.cache import DomainCache
from tradovate_mcp.infrastructure.brokers.tradovate import TradovateClient
from tradovate_mcp.shared.exceptions import ConfigurationError


@pytest.fixture
def quiet_logging(mocker):
    return mocker.patch("tradovate_mcp.cli.configure_logging")


@pytest.mark.unit
def test_main_returns_1_on_configuration_error(mocker, quiet_logging):
    mocker.patch(
        "tradovate_mcp.cli.Config.from_env",
        side_effect=ConfigurationError("TRADOVATE_CONNECT_TIMEOUT must be a number"),
    )
    run = mocker.patch("tradovate_mcp.cli.asyncio.run")

    assert cli.main() == 1
    run.assert_not_called()


@pytest.mark.unit
def test_main_runs_server(mocker, quiet_logging, config):
    mocker.patch("tradovate_mcp.cli.Config.from_env", return_value=config)
    serve = mocker.patch("tradovate_mcp.cli.serve", MagicMock(return_value="coro"))
    run = mocker.patch("tradovate_mcp.cli.asyncio.run")

    assert cli.main() == 0
    serve.assert_called_once_with(config)
    run.assert_called_once_with("coro")
    quiet_logging.assert_called_once_with(config.log_level, config.log_dir)


@pytest.mark.unit
def test_main_reports_unhandled_errors(mocker, quiet_logging, config):
    mocker.patch("tradovate_mcp.cli.Config.from_env", return_value=config)
    mocker.patch("tradovate_mcp.cli.serve", MagicMock())
    mocker.patch("tradovate_mcp.cli.asyncio.run", side_effect=RuntimeError("boom"))

    assert cli.main() == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_serve_warms_cache_and_closes_client(mocker, config):
    """Test serve refreshes caches first and closes the client on exit"""
    client = MagicMock()
    client.close = AsyncMock()
    cache = MagicMock()
    cache.refresh_all = AsyncMock()
    cache.run_periodic_refresh = AsyncMock()

    container = MagicMock()
    container.get.side_effect = {TradovateClient: client, DomainCache: cache}.__getitem__
    mocker.patch("tradovate_mcp.cli.create_container", return_value=container)
    mcp = MagicMock()
    mcp.run_async = AsyncMock()
    mocker.patch("tradovate_mcp.cli.create_server", return_value=mcp)

    await cli.serve(config)

    cache.refresh_all.assert_awaited_once()
    cache.run_periodic_refresh.assert_called_once_with(config.cache_refresh_interval)
    mcp.run_async.assert_awaited_once_with(transport="stdio")
    client.close.assert_awaited_once()
