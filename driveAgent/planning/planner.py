"""Task planning: decide whether a request needs a plan, and generate one."""

from __future__ import annotations

import logging
from typing import Optional

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import ValidationError

from driveAgent.agents.factory import extract_json_object, invoke_classifier
from driveAgent.agents.prompts import COMPLEXITY_CLASSIFIER_PROMPT, PLANNER_PROMPT
from driveAgent.agents.schema import is_agent_type
from driveAgent.config.patterns import PatternConfig, count_matches
from driveAgent.models import ModelRegistry
from driveAgent.runtime.model_resolver import ModelResolver
from driveAgent.utils.logging_utils import log_plan_created

from .schema import PlanDraft, TaskPlan, TaskStep

LOGGER = logging.getLogger(__name__)


class TaskPlanner:
    """Decides on and produces task plans.

    ``should_plan_task`` is biased toward "no plan": templated or short requests
    are rejected without a model call, and a failing classifier means no plan.
    """

    def __init__(
        self,
        patterns: PatternConfig,
        model_registry: ModelRegistry,
        model_resolver: ModelResolver,
        complexity_threshold: int = 1,
        max_steps: int = 8,
    ):
        self.patterns = patterns
        self.model_registry = model_registry
        self.model_resolver = model_resolver
        self.complexity_threshold = complexity_threshold
        self.max_steps = max_steps

    # ------------------------------------------------------------------
    # Heuristics
    # ------------------------------------------------------------------

    def is_simple_request(self, message: str) -> bool:
        text = message.strip()
        if len(text) < self.patterns.simple_max_length:
            return True
        return any(p.search(text) for p in self.patterns.simple)

    def needs_task_planning(self, message: str) -> bool:
        """True when enough multi-step phrasing patterns match."""
        hits = count_matches(self.patterns.multi_step, message)
        LOGGER.debug(f"Multi-step pattern hits: {hits} (threshold {self.complexity_threshold})")
        return hits >= self.complexity_threshold

    def is_continuation(self, message: str) -> bool:
        """True when the message asks to resume an unfinished plan."""
        text = message.strip()
        return any(p.search(text) for p in self.patterns.continuation)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def should_plan_task(self, message: str, context_text: Optional[str] = None) -> bool:
        if self.is_simple_request(message):
            LOGGER.debug("Simple request, no plan")
            return False
        if self.needs_task_planning(message):
            LOGGER.info("Multi-step phrasing detected, planning")
            return True
        return await self.classify_complexity(message, context_text)

    async def classify_complexity(self, message: str, context_text: Optional[str] = None) -> bool:
        messages = [SystemMessage(content=COMPLEXITY_CLASSIFIER_PROMPT)]
        if context_text:
            messages.append(SystemMessage(content=f"Current context:\n{context_text}"))
        messages.append(HumanMessage(content=f'Classify this request:\n"{message}"'))

        try:
            text = await invoke_classifier(
                model_registry=self.model_registry,
                model_resolver=self.model_resolver,
                messages=messages,
                phase="classify",
            )
        except Exception as e:
            LOGGER.warning(f"Complexity classifier unavailable, not planning: {e}")
            return False

        parsed = extract_json_object(text)
        if parsed is None:
            LOGGER.warning(f"Complexity classifier returned no JSON: {text[:200]}")
            return False

        needs_plan = parsed.get("needs_plan") is True
        LOGGER.info(f"Complexity classifier: needs_plan={needs_plan} ({parsed.get('reason', '')})")
        return needs_plan

    async def generate_task_plan(self, message: str, context_text: Optional[str] = None) -> Optional[TaskPlan]:
        """Decompose ``message`` into steps; None unless a complete valid plan comes back."""
        messages = [SystemMessage(content=PLANNER_PROMPT.format(max_steps=self.max_steps))]
        if context_text:
            messages.append(SystemMessage(content=f"Current context:\n{context_text}"))
        messages.append(HumanMessage(content=f'Break down this request into steps:\n"{message}"'))

        try:
            text = await invoke_classifier(
                model_registry=self.model_registry,
                model_resolver=self.model_resolver,
                messages=messages,
                phase="plan",
            )
        except Exception as e:
            LOGGER.warning(f"Planner unavailable: {e}")
            return None

        parsed = extract_json_object(text)
        if parsed is None:
            LOGGER.warning(f"Planner returned no JSON: {text[:200]}")
            return None

        try:
            draft = PlanDraft.model_validate(parsed)
        except ValidationError as e:
            LOGGER.warning(f"Planner returned an invalid plan: {e}")
            return None

        if not draft.steps:
            LOGGER.info("Planner returned no steps")
            return None
        if len(draft.steps) > self.max_steps:
            LOGGER.warning(f"Planner returned {len(draft.steps)} steps (max {self.max_steps}), discarding")
            return None

        steps = []
        for index, step in enumerate(draft.steps, start=1):
            agent_type = step.agentType
            if agent_type is not None and not is_agent_type(agent_type):
                LOGGER.warning(f"Planner used unknown agent type {agent_type!r} in step {index}, leaving it unassigned")
                agent_type = None
            steps.append(
                TaskStep(
                    id=index,
                    title=step.title,
                    description=step.description,
                    agent_type=agent_type,
                )
            )

        plan = TaskPlan(goal=draft.goal or message, steps=steps, current_step=1, is_complete=False)
        log_plan_created(LOGGER, plan.model_dump())
        return plan
