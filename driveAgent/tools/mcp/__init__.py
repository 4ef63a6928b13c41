"""MCP (Model Context Protocol) integration for driveAgent."""

from .client import MCPToolClient
from .connection import StdioMCPConnection
from .manager import MCPServerManager, load_mcp_config

__all__ = [
    "MCPServerManager",
    "MCPToolClient",
    "StdioMCPConnection",
    "load_mcp_config",
]
