import asyncio
import sys

from loguru import logger

from tradovate_mcp.core.config import Config
from tradovate_mcp.core.logging import configure_logging
from tradovate_mcp.data.cache import DomainCache
from tradovate_mcp.infrastructure.brokers.tradovate import TradovateClient
from tradovate_mcp.server import TradovateTools, create_server
from tradovate_mcp.shared.container import create_container
from tradovate_mcp.shared.exceptions import ConfigurationError


async def serve(config: Config) -> None:
    """Warm the caches, then run the MCP server over stdio until it exits"""
    container = create_container(config)
    client = container.get(TradovateClient)
    cache = container.get(DomainCache)
    mcp = create_server(TradovateTools(client, cache))

    await cache.refresh_all()
    refresher = asyncio.create_task(
        cache.run_periodic_refresh(config.cache_refresh_interval),
        name="tradovate-cache-refresh",
    )
    try:
        await mcp.run_async(transport="stdio")
    finally:
        refresher.cancel()
        await asyncio.gather(refresher, return_exceptions=True)
        logger.info("Shutting down Tradovate connections...")
        await client.close()


def main() -> int:
    """CLI entry point for the Tradovate MCP server

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        configure_logging()
        logger.error(f"Configuration error: {e}")
        return 1

    configure_logging(config.log_level, config.log_dir)
    logger.info("=" * 60)
    logger.info(f"TRADOVATE MCP SERVER ({config.environment.value.upper()})")
    logger.info("=" * 60)

    try:
        asyncio.run(serve(config))
        return 0
    except KeyboardInterrupt:
        logger.warning("Server stopped manually.")
        return 1
    except Exception as e:
        logger.opt(exception=e).critical(f"Unhandled exception in server: {e}")
        return 1
    finally:
        logger.info("Server shutdown complete.")


if __name__ == "__main__":
    sys.exit(main())
