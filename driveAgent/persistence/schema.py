"""Persisted conversation records."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from driveAgent.agents.schema import AgentType, RouteDecision
from driveAgent.planning.schema import TaskPlan

MessageRole = Literal["user", "assistant", "tool"]
TITLE_MAX_CHARS = 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ToolCall(BaseModel):
    """One executed (or intercepted) operation. Append-only."""

    tool_name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    result: str = ""
    is_error: bool = False


class Message(BaseModel):
    """Immutable once appended to a conversation."""

    role: MessageRole
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    timestamp: datetime = Field(default_factory=utcnow)


class Summary(BaseModel):
    """Digest of ``messages[start_index:end_index]``."""

    content: str
    start_index: int = Field(ge=0)
    end_index: int = Field(ge=0)
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def message_count(self) -> int:
        return self.end_index - self.start_index


class Conversation(BaseModel):
    """One chat thread, read and written as a whole per turn."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str
    title: str = "New conversation"
    messages: List[Message] = Field(default_factory=list)
    agent_type: Optional[AgentType] = None
    active_plan: Optional[TaskPlan] = None
    summaries: List[Summary] = Field(default_factory=list)
    last_route: Optional[RouteDecision] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def append(self, message: Message) -> None:
        if not self.messages and message.role == "user" and message.content:
            self.title = message.content.strip()[:TITLE_MAX_CHARS] or self.title
        self.messages.append(message)
        self.updated_at = utcnow()


class ConversationListItem(BaseModel):
    id: str
    title: str
    last_message: str
    message_count: int
    updated_at: datetime
