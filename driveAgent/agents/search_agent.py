"""Name search, semantic search and indexing."""

from __future__ import annotations

from typing import FrozenSet

from driveAgent.agents.base_agent import BaseAgent
from driveAgent.agents.prompts import SEARCH_PROMPT, render_agent_prompt
from driveAgent.agents.schema import AgentContext

STATUS_PREVIEW_CHARS = 500

SEARCH_TOOLS: FrozenSet[str] = frozenset(
    {
        "search_files",
        "list_files",
        "list_folder_contents",
        "get_file_info",
        "read_file",
        "semantic_search_files",
        "query_workspace_knowledge",
        "summarize_directory",
        "index_file",
        "index_all_files",
        "get_indexing_status",
    }
)


class SearchAgent(BaseAgent):
    agent_type = "search"

    def get_allowed_tools(self) -> FrozenSet[str]:
        return SEARCH_TOOLS

    async def enrich_context(self, context: AgentContext) -> AgentContext:
        if "indexing_status" not in context.notes:
            status = await self.lookup("get_indexing_status", {}, context)
            if status:
                context.notes["indexing_status"] = status[:STATUS_PREVIEW_CHARS]
        return context

    def get_system_prompt(self, context: AgentContext) -> str:
        lines = []
        if context.folder_id:
            lines.append(f"Current folder id (default search scope): {context.folder_id}")
        if "indexing_status" in context.notes:
            lines.append(f"Indexing status: {context.notes['indexing_status']}")
        return render_agent_prompt(SEARCH_PROMPT, context.user_id, lines)
