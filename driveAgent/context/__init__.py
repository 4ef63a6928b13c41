"""Conversation memory management."""

from .memory_manager import MemoryManager, MemoryState

__all__ = ["MemoryManager", "MemoryState"]
