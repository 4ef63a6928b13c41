"""Task planning, plan tracking and multi-step orchestration."""

from .schema import TaskPlan, TaskStep

__all__ = ["TaskPlan", "TaskStep"]
