"""Agent types, per-turn agent context and routing decisions."""

from __future__ import annotations

from typing import Dict, Literal, Optional, Tuple

from pydantic import BaseModel, Field

AgentType = Literal["drive", "document", "search"]
AGENT_TYPES: Tuple[str, ...] = ("drive", "document", "search")
DEFAULT_AGENT_TYPE: AgentType = "drive"

RouteSource = Literal["explicit", "pattern", "conversation", "llm", "default"]

AGENT_DESCRIPTIONS: Dict[str, str] = {
    "drive": "File and folder management: create, list, move, rename, trash, restore, delete, star, share and permissions.",
    "document": "Text content work on a single file: read, write, edit, rewrite, translate, summarize.",
    "search": "Finding content: name search, semantic search over indexed files, indexing, workspace knowledge.",
}


def is_agent_type(value: object) -> bool:
    return isinstance(value, str) and value in AGENT_TYPES


class AgentContext(BaseModel):
    """Caller context for one agent run.

    The caller supplies ``user_id`` and the UI location; agents add their own
    enrichment notes under ``notes`` before building the system prompt.
    """

    user_id: str
    type: AgentType = DEFAULT_AGENT_TYPE
    folder_id: Optional[str] = None
    file_id: Optional[str] = None
    file_name: Optional[str] = None
    document_content: Optional[str] = None
    notes: Dict[str, str] = Field(default_factory=dict)

    def describe(self) -> str:
        """Short plain-text description used by classifiers and the planner."""
        parts = []
        if self.folder_id:
            parts.append(f"Current folder id: {self.folder_id}")
        if self.file_id:
            label = f" ({self.file_name})" if self.file_name else ""
            parts.append(f"Open file id: {self.file_id}{label}")
        return "\n".join(parts)


class RouteDecision(BaseModel):
    """Which agent owns the turn, and why."""

    agent_type: AgentType
    confidence: float = Field(ge=0.0, le=1.0)
    source: RouteSource
    reason: str = ""
