"""Task plan state transitions and presentation."""

from __future__ import annotations

import logging
from typing import Optional

from .schema import TaskPlan, TaskStep

LOGGER = logging.getLogger(__name__)

RESULT_PREVIEW_CHARS = 120

STATUS_ICONS = {
    "completed": "✅",
    "in-progress": "🔄",
    "failed": "❌",
    "skipped": "⏭️",
    "pending": "⬜",
}


class TaskPlanTracker:
    """Pure transition functions over ``TaskPlan``.

    Every method returns a new plan and leaves its argument untouched. Steps only
    move forward (pending -> in-progress -> terminal); a transition requested on a
    terminal step is ignored with a warning.
    """

    def _current(self, plan: TaskPlan) -> Optional[TaskStep]:
        if plan.is_complete:
            return None
        return plan.get_step(plan.current_step)

    def _advance(self, plan: TaskPlan) -> TaskPlan:
        next_pending = next((s for s in plan.steps if s.status == "pending"), None)
        if next_pending is not None:
            plan.current_step = next_pending.id
        else:
            plan.is_complete = True
            plan.summary = self.get_progress_summary(plan)
        return plan

    def start_current_step(self, plan: TaskPlan) -> TaskPlan:
        updated = plan.model_copy(deep=True)
        step = self._current(updated)
        if step is None:
            LOGGER.warning("start_current_step called on a completed plan")
            return updated
        if step.status != "pending":
            LOGGER.warning(f"Step {step.id} is {step.status}, not starting it again")
            return updated
        step.status = "in-progress"
        return updated

    def _finish(self, plan: TaskPlan, status: str, result: Optional[str] = None, error: Optional[str] = None) -> TaskPlan:
        updated = plan.model_copy(deep=True)
        step = self._current(updated)
        if step is None:
            LOGGER.warning(f"Cannot mark a step {status}: plan is already complete")
            return updated
        if step.is_terminal:
            LOGGER.warning(f"Step {step.id} is already {step.status}, ignoring transition to {status}")
            return updated

        step.status = status
        if result is not None:
            step.result = result
        if error is not None:
            step.error = error
        return self._advance(updated)

    def complete_current_step(self, plan: TaskPlan, result: Optional[str] = None) -> TaskPlan:
        return self._finish(plan, "completed", result=result)

    def fail_current_step(self, plan: TaskPlan, error: str) -> TaskPlan:
        # Failures advance like completions; later steps still run.
        return self._finish(plan, "failed", error=error)

    def skip_current_step(self, plan: TaskPlan, reason: Optional[str] = None) -> TaskPlan:
        return self._finish(plan, "skipped", result=reason or "Skipped")

    def get_progress_summary(self, plan: TaskPlan) -> str:
        completed = sum(1 for s in plan.steps if s.status == "completed")
        failed = sum(1 for s in plan.steps if s.status == "failed")

        parts = [f"Progress: {completed}/{len(plan.steps)} completed"]
        if failed > 0:
            parts.append(f"{failed} failed")

        if plan.is_complete:
            parts.append("- Plan complete!")
        else:
            current = plan.get_step(plan.current_step)
            if current is not None:
                parts.append(f"- Current: {current.title}")

        return " ".join(parts)

    def format_plan_for_user(self, plan: TaskPlan) -> str:
        lines = [f"📋 **Task Plan**: {plan.goal}", ""]

        for step in plan.steps:
            line = f"{STATUS_ICONS.get(step.status, '⬜')} **Step {step.id}**: {step.title}"
            if step.status == "completed" and step.result:
                line += f"\n   _{step.result[:RESULT_PREVIEW_CHARS]}_"
            if step.status == "failed" and step.error:
                line += f"\n   ⚠️ _{step.error[:RESULT_PREVIEW_CHARS]}_"
            lines.append(line)

        lines.append("")
        lines.append(self.get_progress_summary(plan))
        return "\n".join(lines)
