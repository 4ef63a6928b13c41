"""Tool-invocation layer: client protocol, cached catalog and argument validation."""

from .catalog import ToolCatalog
from .client import IDENTITY_ARGUMENT, ToolCallResult, ToolClient, ToolDefinition
from .validation import validate_tool_arguments

__all__ = [
    "IDENTITY_ARGUMENT",
    "ToolCatalog",
    "ToolCallResult",
    "ToolClient",
    "ToolDefinition",
    "validate_tool_arguments",
]
