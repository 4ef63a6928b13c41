"""Text work on a single file."""

from __future__ import annotations

from typing import FrozenSet

from driveAgent.agents.base_agent import BaseAgent
from driveAgent.agents.prompts import DOCUMENT_PROMPT, render_agent_prompt
from driveAgent.agents.schema import AgentContext

DOCUMENT_PREVIEW_CHARS = 8000

DOCUMENT_TOOLS: FrozenSet[str] = frozenset(
    {
        "read_file",
        "write_file",
        "create_file",
        "get_file_info",
        "list_folder_contents",
        "search_files",
    }
)


class DocumentAgent(BaseAgent):
    agent_type = "document"

    def get_allowed_tools(self) -> FrozenSet[str]:
        return DOCUMENT_TOOLS

    async def enrich_context(self, context: AgentContext) -> AgentContext:
        if context.file_id and not context.document_content:
            content = await self.lookup("read_file", {"fileId": context.file_id}, context)
            if content is not None:
                context.document_content = content
        return context

    def get_system_prompt(self, context: AgentContext) -> str:
        lines = []
        if context.file_id:
            label = f" ({context.file_name})" if context.file_name else ""
            lines.append(f"Open file id: {context.file_id}{label}")
            lines.append("Requests like \"this document\" refer to the open file.")
        if context.document_content:
            preview = context.document_content[:DOCUMENT_PREVIEW_CHARS]
            if len(context.document_content) > DOCUMENT_PREVIEW_CHARS:
                preview += f"\n[... {len(context.document_content) - DOCUMENT_PREVIEW_CHARS} more chars, use read_file for the rest]"
            lines.append(f"Current content:\n---\n{preview}\n---")
        if context.folder_id:
            lines.append(f"Current folder id: {context.folder_id}")
        return render_agent_prompt(DOCUMENT_PROMPT, context.user_id, lines)
