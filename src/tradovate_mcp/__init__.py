"""Tradovate MCP server: real-time session core and tool surface"""

__version__ = "0.1.0"
