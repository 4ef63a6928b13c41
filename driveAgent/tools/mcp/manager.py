"""MCP server lifecycle manager with lazy startup support."""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Dict, List

import yaml

from .connection import StdioMCPConnection

LOGGER = logging.getLogger(__name__)


def load_mcp_config(config_path: Path) -> dict:
    """Load MCP configuration from YAML file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid
    """
    if not config_path.exists():
        raise FileNotFoundError(f"MCP config not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        config = yaml.safe_load(f)

    if not config:
        return {"servers": {}, "settings": {}}
    return config


class MCPServerManager:
    """
    Manages lifecycle of MCP servers with lazy startup.

    - Lazy startup: servers only started on first use
    - Connection reuse: one connection per server
    - Cleanup: all servers closed on shutdown
    """

    def __init__(self, config: dict, connection_factory: Callable[..., StdioMCPConnection] = StdioMCPConnection):
        """
        Args:
            config: MCP configuration dict loaded from mcp_servers.yaml
            connection_factory: Builds a connection from (server_id, command, args, env)
        """
        self.config = config
        self.connection_factory = connection_factory
        self._servers: Dict[str, StdioMCPConnection] = {}
        self._server_configs: Dict[str, dict] = {}

        for server_id, server_cfg in (config.get("servers") or {}).items():
            if server_cfg.get("enabled", True):
                self._server_configs[server_id] = server_cfg
                LOGGER.debug(f"  Registered MCP server config: {server_id}")

    async def get_server(self, server_id: str) -> StdioMCPConnection:
        """
        Get server connection, starting it on first use.

        Raises:
            ValueError: If server not configured
            RuntimeError: If server fails to start
        """
        if server_id in self._servers:
            return self._servers[server_id]

        if server_id not in self._server_configs:
            raise ValueError(f"MCP server not configured: {server_id}")

        LOGGER.info(f"🚀 Starting MCP server: {server_id}")
        connection = await self._start_server(server_id)
        self._servers[server_id] = connection
        return connection

    async def _start_server(self, server_id: str) -> StdioMCPConnection:
        cfg = self._server_configs[server_id]
        connection = self.connection_factory(
            server_id,
            cfg["command"],
            cfg.get("args", []),
            cfg.get("env", {}) or {},
        )

        startup_timeout = (self.config.get("settings") or {}).get("startup_timeout", 30)
        try:
            await asyncio.wait_for(connection.start(), timeout=startup_timeout)
        except asyncio.TimeoutError:
            await connection.close()
            raise RuntimeError(f"MCP server startup timeout: {server_id}")
        except Exception as e:
            await connection.close()
            raise RuntimeError(f"Failed to start MCP server '{server_id}': {e}") from e

        LOGGER.info(f"  ✓ MCP server started: {server_id}")
        return connection

    async def shutdown(self):
        """Shutdown all MCP servers and cleanup resources."""
        if not self._servers:
            return

        LOGGER.info(f"Shutting down {len(self._servers)} MCP server(s)...")
        for server_id, connection in self._servers.items():
            try:
                await connection.close()
                LOGGER.info(f"  ✓ Closed: {server_id}")
            except Exception as e:
                LOGGER.error(f"  ✗ Failed to close {server_id}: {e}")

        self._servers.clear()

    def list_configured_servers(self) -> List[str]:
        return list(self._server_configs.keys())

    def list_started_servers(self) -> List[str]:
        return list(self._servers.keys())
