"""Conversation persistence."""

from .conversation_store import ConversationStore
from .schema import Conversation, ConversationListItem, Message, Summary, ToolCall

__all__ = [
    "ConversationStore",
    "Conversation",
    "ConversationListItem",
    "Message",
    "Summary",
    "ToolCall",
]
