"""Cached operation registry."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from driveAgent.utils.error_handler import TOOLS_UNAVAILABLE, BackendUnavailableError

from .client import ToolCallResult, ToolClient, ToolDefinition

LOGGER = logging.getLogger(__name__)


class ToolCatalog:
    """Owns the cached tool list of one ``ToolClient``.

    The first ``list_tools`` call fetches from the client; later calls reuse the
    cache until ``invalidate`` is called.
    """

    def __init__(self, client: ToolClient):
        self.client = client
        self._tools: Optional[List[ToolDefinition]] = None
        self._by_name: Dict[str, ToolDefinition] = {}
        self._lock = asyncio.Lock()

    async def list_tools(self) -> List[ToolDefinition]:
        if self._tools is not None:
            return self._tools

        async with self._lock:
            if self._tools is None:
                try:
                    tools = await self.client.list_tools()
                except BackendUnavailableError:
                    raise
                except Exception as e:
                    LOGGER.error(f"Failed to load tool catalog: {e}")
                    raise BackendUnavailableError(f"Tool catalog unavailable: {e}", TOOLS_UNAVAILABLE) from e
                self._tools = list(tools)
                self._by_name = {t.name: t for t in self._tools}
                LOGGER.info(f"Tool catalog loaded: {len(self._tools)} tools")
        return self._tools

    async def get(self, name: str) -> Optional[ToolDefinition]:
        await self.list_tools()
        return self._by_name.get(name)

    async def call_tool(self, name: str, args: Dict[str, Any]) -> ToolCallResult:
        return await self.client.call_tool(name, args)

    def invalidate(self) -> None:
        self._tools = None
        self._by_name = {}
        LOGGER.debug("Tool catalog invalidated")
