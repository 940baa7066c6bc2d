"""Logging setup: loguru sinks and the stdlib logging bridge"""

import logging
import sys
from pathlib import Path

from loguru import logger

_BRIDGED_LOGGERS = ("httpx", "websockets", "fastmcp", "mcp")
_logging_bridge_installed = False


class _LoguruHandler(logging.Handler):
    """Bridge stdlib logging into loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=6, exception=record.exc_info).log(
            level, record.getMessage()
        )


def install_logging_bridge() -> None:
    """Bridge stdlib logging used by httpx/websockets/fastmcp into loguru once."""
    global _logging_bridge_installed
    if _logging_bridge_installed:
        return

    handler = _LoguruHandler()
    for name in _BRIDGED_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.setLevel(logging.INFO)
        std_logger.addHandler(handler)
        std_logger.propagate = False

    _logging_bridge_installed = True


def configure_logging(level: str = "INFO", log_dir: str | Path = "logs") -> None:
    """Configure loguru sinks for a server process

    stdout carries the MCP stdio transport, so console output goes to
    stderr only.

    Args:
        level: Minimum level for both sinks
        log_dir: Directory for the rotating log file
    """
    logger.remove()
    logger.add(sys.stderr, level=level)
    logger.add(
        str(Path(log_dir) / "tradovate_mcp_{time}.log"),
        rotation="1 day",
        retention="30 days",
        compression="gz",
        level=level,
    )
    install_logging_bridge()
