"""Task plan schema and the shape the planner model is asked to return."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from driveAgent.agents.schema import AgentType

TaskStatus = Literal["pending", "in-progress", "completed", "failed", "skipped"]
TERMINAL_STATUSES = frozenset({"completed", "failed", "skipped"})


class TaskStep(BaseModel):
    """Single atomic step of a plan."""

    id: int = Field(ge=1)
    title: str
    description: str = ""
    status: TaskStatus = "pending"
    agent_type: Optional[AgentType] = None
    result: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class TaskPlan(BaseModel):
    """Ordered decomposition of a request.

    ``current_step`` names the first non-terminal step; it goes stale once
    ``is_complete`` is set.
    """

    goal: str
    steps: List[TaskStep] = Field(min_length=1, max_length=8)
    current_step: int = 1
    is_complete: bool = False
    summary: Optional[str] = None

    def get_step(self, step_id: int) -> Optional[TaskStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def agent_types(self) -> List[str]:
        seen: List[str] = []
        for step in self.steps:
            if step.agent_type and step.agent_type not in seen:
                seen.append(step.agent_type)
        return seen


class StepDraft(BaseModel):
    """Step as returned by the planner model, before validation."""

    title: str = Field(min_length=1)
    description: str = ""
    agentType: Optional[str] = None


class PlanDraft(BaseModel):
    """Plan as returned by the planner model, before validation."""

    goal: str = ""
    steps: List[StepDraft] = Field(default_factory=list)
