"""Step-by-step execution of multi-step or multi-agent task plans."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from driveAgent.agents.base_agent import BaseAgent
from driveAgent.agents.schema import AgentContext
from driveAgent.hitl.schema import PendingApproval
from driveAgent.persistence.schema import Message, Summary, ToolCall
from driveAgent.utils.error_handler import BackendUnavailableError
from driveAgent.utils.logging_utils import log_step_execution

from .schema import TaskPlan, TaskStep
from .tracker import TaskPlanTracker

LOGGER = logging.getLogger(__name__)

RESULT_DIGEST_CHARS = 200
PREVIOUS_RESULT_CHARS = 800


@dataclass
class StepResult:
    step_id: int
    title: str
    success: bool
    content: str = ""
    error: Optional[str] = None


@dataclass
class OrchestratorResult:
    content: str
    plan: TaskPlan
    tool_calls: List[ToolCall] = field(default_factory=list)
    pending_approvals: List[PendingApproval] = field(default_factory=list)
    updated_summaries: List[Summary] = field(default_factory=list)
    step_results: List[StepResult] = field(default_factory=list)
    paused: bool = False


class TaskOrchestrator:
    """Drives a plan one step at a time, one agent run per step.

    Steps that are not pending are skipped, so a partially run plan resumes
    where it stopped. A failing step is recorded and the next one still runs;
    a step that requests approval pauses the plan with that step left pending.
    """

    def __init__(self, agents: Mapping[str, BaseAgent], tracker: Optional[TaskPlanTracker] = None):
        self.agents: Dict[str, BaseAgent] = dict(agents)
        self.tracker = tracker or TaskPlanTracker()

    def needs_orchestration(self, plan: Optional[TaskPlan]) -> bool:
        if plan is None:
            return False
        return len(plan.agent_types()) > 1 or len(plan.steps) > 1

    async def execute_plan(
        self,
        plan: TaskPlan,
        context: AgentContext,
        history: List[Message],
        conversation_id: str,
        base_agent_type: str,
        summaries: Optional[List[Summary]] = None,
    ) -> OrchestratorResult:
        """Execute the plan's pending steps in order.

        Raises:
            BackendUnavailableError: If no model is configured
        """
        current_plan = plan
        current_summaries = list(summaries or [])
        tool_calls: List[ToolCall] = []
        pending: List[PendingApproval] = []
        results: List[StepResult] = []
        last_content: Optional[str] = None
        paused = False

        pending_ids = [s.id for s in plan.steps if s.status == "pending"]
        for step_id in pending_ids:
            if current_plan.is_complete:
                break
            step = current_plan.get_step(step_id)
            if step is None or step.status != "pending" or current_plan.current_step != step_id:
                LOGGER.debug(f"Skipping step {step_id}: not the current pending step")
                continue

            agent_type = step.agent_type or base_agent_type
            agent = self.agents.get(agent_type)
            if agent is None:
                error = f"No agent available for type: {agent_type}"
                LOGGER.error(error)
                current_plan = self.tracker.fail_current_step(current_plan, error)
                results.append(StepResult(step_id=step.id, title=step.title, success=False, error=error))
                continue

            log_step_execution(LOGGER, step.model_dump(), len(current_plan.steps), agent_type)
            before_start = current_plan
            current_plan = self.tracker.start_current_step(current_plan)

            extra = self.build_step_messages(current_plan, step, results)
            try:
                run = await agent.run(
                    context.model_copy(update={"type": agent_type}),
                    history,
                    conversation_id,
                    summaries=current_summaries,
                    active_plan=current_plan,
                    extra_messages=extra,
                )
            except BackendUnavailableError:
                raise
            except Exception as e:
                error = getattr(e, "user_message", None) or str(e)
                LOGGER.error(f"Step {step.id} ({step.title}) failed: {e}")
                current_plan = self.tracker.fail_current_step(current_plan, error)
                results.append(StepResult(step_id=step.id, title=step.title, success=False, error=error))
                continue

            tool_calls.extend(run.tool_calls)
            current_summaries = run.updated_summaries or current_summaries

            if run.pending_approvals:
                pending.extend(run.pending_approvals)
                current_plan = before_start
                last_content = run.content
                paused = True
                LOGGER.info(
                    f"Step {step.id} is waiting for {len(run.pending_approvals)} approval(s), pausing the plan"
                )
                break

            current_plan = self.tracker.complete_current_step(current_plan, run.content[:RESULT_DIGEST_CHARS])
            results.append(StepResult(step_id=step.id, title=step.title, success=True, content=run.content))
            last_content = run.content

        content = self.compose_response(current_plan, results, last_content)
        LOGGER.info(f"Plan execution stopped: {self.tracker.get_progress_summary(current_plan)}")
        return OrchestratorResult(
            content=content,
            plan=current_plan,
            tool_calls=tool_calls,
            pending_approvals=pending,
            updated_summaries=current_summaries,
            step_results=results,
            paused=paused,
        )

    def build_step_messages(self, plan: TaskPlan, step: TaskStep, previous: List[StepResult]) -> List[BaseMessage]:
        """Step-scoped input appended after the conversation history."""
        messages: List[BaseMessage] = []
        if previous:
            parts = []
            for result in previous:
                if result.success:
                    parts.append(
                        f"[Step {result.step_id} - {result.title}] ✅ Result:\n{result.content[:PREVIOUS_RESULT_CHARS]}"
                    )
                else:
                    parts.append(f"[Step {result.step_id} - {result.title}] ❌ Failed: {result.error}")
            messages.append(AIMessage(content="I've completed the following steps so far:\n\n" + "\n\n".join(parts)))

        position = next((i for i, s in enumerate(plan.steps, start=1) if s.id == step.id), step.id)
        instruction = "\n".join(
            [
                f"[Task Plan - Step {position} of {len(plan.steps)}]",
                f"Overall goal: {plan.goal}",
                f"Current step: {step.title}",
                f"Instruction: {step.description or step.title}",
                "",
                "Please execute ONLY this step. Use the results from previous steps if needed.",
            ]
        )
        messages.append(HumanMessage(content=instruction))
        return messages

    def compose_response(self, plan: TaskPlan, results: List[StepResult], last_content: Optional[str]) -> str:
        if last_content:
            body = last_content
        elif any(not r.success for r in results):
            lines = ["I encountered errors while executing the task plan. Here's what happened:"]
            lines.extend(f"- Step {r.step_id} ({r.title}): {r.error}" for r in results if not r.success)
            body = "\n".join(lines)
        else:
            body = ""

        footer = self.tracker.format_plan_for_user(plan)
        return f"{body}\n\n---\n{footer}" if body else footer
