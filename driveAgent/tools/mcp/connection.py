"""MCP server connection over stdio."""

import logging
import os
from typing import Any, Dict, List

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from driveAgent.tools.client import ToolCallResult, ToolDefinition

LOGGER = logging.getLogger(__name__)


def resolve_env(env: Dict[str, str]) -> Dict[str, str]:
    """Merge the process environment with ``env``, expanding ``${VAR}`` references."""
    full_env = os.environ.copy()
    for key, value in env.items():
        value = str(value)
        if value.startswith("${") and value.endswith("}"):
            full_env[key] = os.environ.get(value[2:-1], "")
        else:
            full_env[key] = value
    return full_env


class StdioMCPConnection:
    """MCP connection using stdio (standard input/output) mode."""

    def __init__(self, server_id: str, command: str, args: List[str], env: Dict[str, str]):
        self.server_id = server_id
        self.command = command
        self.args = args
        self.env = env
        self._initialized = False
        self._client = None
        self._stdio_context = None

    async def start(self):
        """Start the server process and establish the client session."""
        LOGGER.debug(f"  Starting stdio server: {self.command} {' '.join(self.args)}")

        server_params = StdioServerParameters(
            command=self.command,
            args=self.args,
            env=resolve_env(self.env),
        )

        stdio_context = stdio_client(server_params)
        read_stream, write_stream = await stdio_context.__aenter__()
        self._stdio_context = stdio_context

        self._client = ClientSession(read_stream, write_stream)
        await self._client.__aenter__()
        await self._client.initialize()
        self._initialized = True

        LOGGER.debug(f"  ✓ Stdio connection established for server: {self.server_id}")

    async def list_tools(self) -> List[ToolDefinition]:
        if not self._initialized:
            raise RuntimeError(f"Server not initialized: {self.server_id}")

        result = await self._client.list_tools()
        return [
            ToolDefinition(
                name=tool.name,
                description=tool.description or "",
                input_schema=dict(tool.inputSchema or {}),
            )
            for tool in result.tools
        ]

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> ToolCallResult:
        if not self._initialized:
            raise RuntimeError(f"Server not initialized: {self.server_id}")

        LOGGER.debug(f"  Calling tool: {tool_name} on server {self.server_id}")
        result = await self._client.call_tool(tool_name, arguments)

        # Content can be TextContent, ImageContent or EmbeddedResource; keep the text parts
        text_parts = [item.text for item in (result.content or []) if hasattr(item, "text")]
        return ToolCallResult(content=text_parts, is_error=bool(result.isError))

    async def close(self):
        """Close the client session and the stdio transport."""
        if self._client:
            try:
                await self._client.__aexit__(None, None, None)
            except Exception as e:
                LOGGER.warning(f"  Error closing client session for {self.server_id}: {e}")
            self._client = None

        if self._stdio_context:
            try:
                await self._stdio_context.__aexit__(None, None, None)
            except Exception as e:
                LOGGER.warning(f"  Error closing stdio context for {self.server_id}: {e}")
            self._stdio_context = None

        self._initialized = False
        LOGGER.debug(f"  ✓ Closed stdio connection for server: {self.server_id}")
