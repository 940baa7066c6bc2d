"""Shared utilities: base exceptions and dependency wiring."""

from .container import DIContainer, create_container
from .exceptions import ConfigurationError, ToolError, TradovateMCPError

__all__ = [
    "DIContainer",
    "create_container",
    "ConfigurationError",
    "ToolError",
    "TradovateMCPError",
]
