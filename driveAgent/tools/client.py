"""Tool-invocation interface shared by the agent loop and approval execution."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol

IDENTITY_ARGUMENT = "userId"


@dataclass
class ToolDefinition:
    """Named, schema-described backend operation."""

    name: str
    description: str = ""
    input_schema: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    def model_schema(self) -> Dict[str, Any]:
        """Input schema with the caller-identity argument removed."""
        schema = copy.deepcopy(self.input_schema) or {"type": "object", "properties": {}}
        properties = schema.get("properties")
        if isinstance(properties, dict):
            properties.pop(IDENTITY_ARGUMENT, None)
        required = schema.get("required")
        if isinstance(required, list):
            schema["required"] = [r for r in required if r != IDENTITY_ARGUMENT]
        return schema

    def to_openai_tool(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.model_schema(),
            },
        }


@dataclass
class ToolCallResult:
    content: List[str] = field(default_factory=list)
    is_error: bool = False

    @property
    def text(self) -> str:
        return "\n".join(self.content)


class ToolClient(Protocol):
    async def list_tools(self) -> List[ToolDefinition]:
        ...

    async def call_tool(self, name: str, args: Dict[str, Any]) -> ToolCallResult:
        ...
