"""Consolidated base exceptions for the Tradovate MCP server.

Broker specific errors live in
``tradovate_mcp.infrastructure.brokers.tradovate.exceptions`` and derive
from ``TradovateMCPError``.
"""


class TradovateMCPError(Exception):
    """Base exception for Tradovate MCP errors"""

    pass


class ConfigurationError(TradovateMCPError):
    """Raised when configuration is invalid or missing"""

    pass


class ToolError(TradovateMCPError):
    """Raised when a tool is invoked with invalid arguments"""

    pass
