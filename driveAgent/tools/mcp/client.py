"""ToolClient backed by one or more MCP servers."""

import logging
from typing import Any, Dict, List

from driveAgent.tools.client import ToolCallResult, ToolDefinition
from driveAgent.utils.error_handler import ToolExecutionError

from .manager import MCPServerManager

LOGGER = logging.getLogger(__name__)


class MCPToolClient:
    """Merges the tools of every configured MCP server into one registry.

    Tool names must be unique across servers; on a clash the first server wins.
    """

    def __init__(self, manager: MCPServerManager):
        self.manager = manager
        self._tool_servers: Dict[str, str] = {}

    async def list_tools(self) -> List[ToolDefinition]:
        tools: List[ToolDefinition] = []
        self._tool_servers = {}
        for server_id in self.manager.list_configured_servers():
            connection = await self.manager.get_server(server_id)
            for tool in await connection.list_tools():
                if tool.name in self._tool_servers:
                    LOGGER.warning(
                        f"Tool {tool.name} from {server_id} shadowed by {self._tool_servers[tool.name]}"
                    )
                    continue
                self._tool_servers[tool.name] = server_id
                tools.append(tool)
        LOGGER.info(f"Loaded {len(tools)} MCP tools from {len(self.manager.list_configured_servers())} server(s)")
        return tools

    async def call_tool(self, name: str, args: Dict[str, Any]) -> ToolCallResult:
        if not self._tool_servers:
            await self.list_tools()

        server_id = self._tool_servers.get(name)
        if server_id is None:
            raise ToolExecutionError(f"Unknown tool: {name}")

        connection = await self.manager.get_server(server_id)
        return await connection.call_tool(name, args)

    async def close(self) -> None:
        await self.manager.shutdown()
