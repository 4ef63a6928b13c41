"""File, folder and sharing operations."""

from __future__ import annotations

from typing import FrozenSet

from driveAgent.agents.base_agent import BaseAgent
from driveAgent.agents.prompts import DRIVE_PROMPT, render_agent_prompt
from driveAgent.agents.schema import AgentContext

FOLDER_PATH_PREVIEW_CHARS = 500

DRIVE_TOOLS: FrozenSet[str] = frozenset(
    {
        # Files
        "list_files",
        "get_file_info",
        "create_file",
        "rename_file",
        "move_file",
        "trash_file",
        "restore_file",
        "delete_file",
        "star_file",
        "get_download_url",
        # Folders
        "list_folder_contents",
        "get_folder_path",
        "create_folder",
        "rename_folder",
        "move_folder",
        "trash_folder",
        "restore_folder",
        "delete_folder",
        "star_folder",
        "list_trash",
        "list_starred",
        # Sharing
        "create_share_link",
        "list_share_links",
        "revoke_share_link",
        "share_with_user",
        "list_permissions",
        "list_shared_with_me",
        # Account
        "whoami",
    }
)


class DriveAgent(BaseAgent):
    agent_type = "drive"

    def get_allowed_tools(self) -> FrozenSet[str]:
        return DRIVE_TOOLS

    async def enrich_context(self, context: AgentContext) -> AgentContext:
        if context.folder_id and "current_folder_path" not in context.notes:
            path = await self.lookup("get_folder_path", {"folderId": context.folder_id}, context)
            if path:
                context.notes["current_folder_path"] = path[:FOLDER_PATH_PREVIEW_CHARS]
        return context

    def get_system_prompt(self, context: AgentContext) -> str:
        lines = []
        if context.folder_id:
            lines.append(f"Current folder id: {context.folder_id}")
            if "current_folder_path" in context.notes:
                lines.append(f"Current folder path: {context.notes['current_folder_path']}")
            lines.append("Operations without an explicit location apply to the current folder.")
        if context.file_id:
            label = f" ({context.file_name})" if context.file_name else ""
            lines.append(f"Selected file id: {context.file_id}{label}")
        return render_agent_prompt(DRIVE_PROMPT, context.user_id, lines)
